import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from storefront.errors import ConflictError
from storefront.orders.models import InitiatePaymentRequest, VerifyPaymentRequest
from storefront.orders.service import resolve_store
from storefront.payments import service as payments_service
from storefront.utils.rate_limit import optional_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/storefront", tags=["Storefront Payments"])
webhook_router = APIRouter(prefix="/api/payments", tags=["Payments Webhooks"])

# module storefront.payments.views
@router.post("/{slug}/orders/{order_ref}/payment", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def initiate_payment(slug: str, order_ref: str, payload: InitiatePaymentRequest | None = None):
    """
    Ouvre le paiement Razorpay d'une commande pending.
    - Retour: {amount, currency, keyId, testMode, gatewayOrderId|gatewaySubscriptionId}
    - Commande COD: 409 (aucun paiement en ligne)
    - Passerelle indisponible: 502 retryable, commande inchangée
    """
    store = resolve_store(slug)
    data = payments_service.initiate_payment(
        store_id=str(store["id"]),
        order_ref=order_ref,
        plan_id=payload.plan_id if payload else None,
    )
    if data is None:
        raise ConflictError("Cash-on-delivery orders do not require online payment")
    return {"success": True, "data": data}

@router.post("/{slug}/orders/{order_ref}/verify", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def verify_payment(slug: str, order_ref: str, payload: VerifyPaymentRequest):
    """
    Vérifie le retour du widget de checkout et passe la commande à 'paid'.
    Idempotent: une commande déjà payée renvoie 200 sans nouvelle écriture.
    """
    store = resolve_store(slug)
    result = payments_service.verify_payment(
        store_id=str(store["id"]),
        order_ref=order_ref,
        gateway_order_id=payload.gateway_order_id,
        gateway_subscription_id=payload.gateway_subscription_id,
        gateway_payment_id=payload.gateway_payment_id,
        gateway_signature=payload.gateway_signature,
    )
    order = result["order"]
    return {
        "success": True,
        "data": {
            "orderId": order.get("order_id"),
            "paymentStatus": order.get("payment_status"),
            "alreadyVerified": result["alreadyVerified"],
        },
    }

@webhook_router.post("/razorpay/webhook", include_in_schema=False)
async def razorpay_webhook(request: Request):
    """
    Webhook Razorpay: signature HMAC (X-Razorpay-Signature) vérifiée sur le corps brut.
    - Réponses: {"status": "ok" | "noop" | "ignored"}
    - Erreurs: 400 si signature ou payload invalide
    """
    raw_body = await request.body()
    result = payments_service.handle_webhook(raw_body, request.headers.get("X-Razorpay-Signature"))
    return JSONResponse(result)
