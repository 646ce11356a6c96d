import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from storefront.orders import service as orders_service
from storefront.orders import status as orders_status
from storefront.orders.models import (
    AddNoteRequest,
    BulkFulfillmentRequest,
    CreateOrderRequest,
    FulfillmentStatus,
    PaymentStatus,
    UpdateOrderStatusRequest,
    serialize_note,
    serialize_order,
    serialize_public_order,
)
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_store_access

logger = logging.getLogger(__name__)

storefront_router = APIRouter(prefix="/api/storefront", tags=["Storefront Orders"])
staff_router = APIRouter(prefix="/api/stores/{store_id}/orders", tags=["Store Orders (staff)"])

# module storefront.orders.views
@storefront_router.post("/{slug}/orders", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_storefront_order(slug: str, payload: CreateOrderRequest):
    """
    Checkout public: crée une commande pending/pending.
    - Les prix viennent du catalogue, jamais du client.
    - 201 {success, data: order}; 400/404/429 selon le cas.
    """
    order = orders_service.create_order(
        slug=slug,
        customer=payload.customer.model_dump(),
        shipping_address=payload.shipping_address.model_dump(),
        items=[i.model_dump(by_alias=True) for i in payload.items],
        shipping=payload.shipping,
        payment_method=payload.payment_method.value,
    )
    return JSONResponse(status_code=201, content={"success": True, "data": serialize_order(order)})

@storefront_router.get("/{slug}/orders/{order_ref}")
def get_storefront_order(slug: str, order_ref: str):
    store = orders_service.resolve_store(slug)
    order = orders_service.get_store_order(str(store["id"]), order_ref)
    return {"success": True, "data": serialize_public_order(order)}

@staff_router.get("")
def list_orders(
    store_id: str,
    payment_status: Optional[PaymentStatus] = Query(default=None, alias="paymentStatus"),
    fulfillment_status: Optional[FulfillmentStatus] = Query(default=None, alias="fulfillmentStatus"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: Dict[str, Any] = Depends(require_store_access),
):
    result = orders_service.list_store_orders(
        store_id,
        payment_status.value if payment_status else None,
        fulfillment_status.value if fulfillment_status else None,
        page,
        limit,
    )
    return {
        "success": True,
        "data": [serialize_order(o) for o in result["orders"]],
        "pagination": result["pagination"],
    }

@staff_router.post("/bulk-fulfillment")
def bulk_fulfillment(
    store_id: str,
    payload: BulkFulfillmentRequest,
    user: Dict[str, Any] = Depends(require_store_access),
):
    result = orders_status.bulk_update_fulfillment(
        store_id=store_id,
        order_refs=payload.order_ids,
        fulfillment_status=payload.fulfillment_status.value,
        staff=user,
    )
    logger.info(
        "orders.bulk_fulfillment store_id=%s status=%s updated=%s failed=%s",
        store_id, payload.fulfillment_status.value, len(result["updated"]), len(result["failed"]),
    )
    return {"success": True, "data": result}

@staff_router.get("/{order_ref}")
def get_order(store_id: str, order_ref: str, user: Dict[str, Any] = Depends(require_store_access)):
    result = orders_service.get_order_with_notes(store_id, order_ref)
    return {"success": True, "data": serialize_order(result["order"], notes=result["notes"])}

@staff_router.patch("/{order_ref}")
def update_order_status(
    store_id: str,
    order_ref: str,
    payload: UpdateOrderStatusRequest,
    user: Dict[str, Any] = Depends(require_store_access),
):
    """
    Mise à jour staff: {paymentStatus?, fulfillmentStatus?}.
    - paymentStatus: seul 'refunded' depuis 'paid' est accepté (409 sinon)
    - fulfillmentStatus: transitions pending->fulfilled|cancelled, fulfilled->shipped
    """
    order = orders_status.update_order_status(
        store_id=store_id,
        order_ref=order_ref,
        staff=user,
        payment_status=payload.payment_status,
        fulfillment_status=payload.fulfillment_status,
    )
    return {"success": True, "data": serialize_order(order)}

@staff_router.post("/{order_ref}/notes")
def add_order_note(
    store_id: str,
    order_ref: str,
    payload: AddNoteRequest,
    user: Dict[str, Any] = Depends(require_store_access),
):
    note = orders_status.add_note(store_id=store_id, order_ref=order_ref, text=payload.text, staff=user)
    return JSONResponse(status_code=201, content={"success": True, "data": serialize_note(note)})
