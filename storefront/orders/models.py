# module storefront.orders.models
"""Schémas et énumérations des commandes boutique.
- Les corps de requête sont validés par pydantic avant d'atteindre les services.
- serialize_order convertit une ligne BD (snake_case) en représentation API (camelCase).
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class PaymentMethod(str, Enum):
    RAZORPAY = "razorpay"
    COD = "cod"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class FulfillmentStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    SHIPPED = "shipped"
    CANCELLED = "cancelled"


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class CustomerIn(_ApiModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class ShippingAddressIn(_ApiModel):
    name: str = Field(min_length=1)
    address1: str = Field(min_length=1)
    address2: Optional[str] = None
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip: str = Field(min_length=1)
    country: str = Field(min_length=1)
    phone: str = Field(min_length=1)


class OrderItemIn(_ApiModel):
    product_id: str = Field(alias="productId", min_length=1)
    quantity: int = Field(ge=1)
    variant: Optional[str] = None

    @field_validator("variant")
    @classmethod
    def _blank_variant_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class CreateOrderRequest(_ApiModel):
    """Corps de POST /api/storefront/{slug}/orders. Montants en unités mineures (paise)."""
    customer: CustomerIn
    shipping_address: ShippingAddressIn = Field(alias="shippingAddress")
    # Liste vide acceptée ici: le service lève InvalidOrderError sans rien persister
    items: List[OrderItemIn]
    shipping: int = Field(default=0, ge=0)
    payment_method: PaymentMethod = Field(default=PaymentMethod.RAZORPAY, alias="paymentMethod")


class InitiatePaymentRequest(_ApiModel):
    plan_id: Optional[str] = Field(default=None, alias="planId")


class VerifyPaymentRequest(_ApiModel):
    """Valeurs renvoyées par le widget de checkout (facultatives seulement en mode test)."""
    gateway_order_id: Optional[str] = None
    gateway_subscription_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    gateway_signature: Optional[str] = None


class UpdateOrderStatusRequest(_ApiModel):
    payment_status: Optional[PaymentStatus] = Field(default=None, alias="paymentStatus")
    fulfillment_status: Optional[FulfillmentStatus] = Field(default=None, alias="fulfillmentStatus")


class AddNoteRequest(_ApiModel):
    text: str = Field(min_length=1, max_length=1000)


class BulkFulfillmentRequest(_ApiModel):
    order_ids: List[str] = Field(alias="orderIds", min_length=1)
    fulfillment_status: FulfillmentStatus = Field(alias="fulfillmentStatus")


def serialize_note(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "text": row.get("text"),
        "addedBy": row.get("added_by"),
        "addedAt": row.get("added_at"),
    }


def serialize_order(row: Dict[str, Any], notes: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """
    Représentation API d'une commande.
    - _id: identifiant interne; orderId: identifiant lisible (ORD-YYYYMMDD-NNN)
    - notes incluses seulement si fournies (vues staff)
    """
    out: Dict[str, Any] = {
        "_id": row.get("id"),
        "orderId": row.get("order_id"),
        "storeId": row.get("store_id"),
        "customer": row.get("customer") or {},
        "shippingAddress": row.get("shipping_address") or {},
        "items": row.get("items") or [],
        "subtotal": row.get("subtotal"),
        "shipping": row.get("shipping"),
        "total": row.get("total"),
        "currency": row.get("currency"),
        "paymentMethod": row.get("payment_method"),
        "paymentStatus": row.get("payment_status"),
        "fulfillmentStatus": row.get("fulfillment_status"),
        "createdAt": row.get("created_at"),
        "updatedAt": row.get("updated_at"),
    }
    # Références passerelle uniquement pour les paiements en ligne
    if row.get("payment_method") == PaymentMethod.RAZORPAY.value:
        out["gatewayOrderId"] = row.get("gateway_order_id")
        out["gatewaySubscriptionId"] = row.get("gateway_subscription_id")
        out["gatewayPaymentId"] = row.get("gateway_payment_id")
    if notes is not None:
        out["notes"] = [serialize_note(n) for n in notes]
    return out


def serialize_public_order(row: Dict[str, Any]) -> Dict[str, Any]:
    """Vue client (page de confirmation): ni coordonnées ni notes internes."""
    return {
        "orderId": row.get("order_id"),
        "items": row.get("items") or [],
        "subtotal": row.get("subtotal"),
        "shipping": row.get("shipping"),
        "total": row.get("total"),
        "currency": row.get("currency"),
        "paymentMethod": row.get("payment_method"),
        "paymentStatus": row.get("payment_status"),
        "fulfillmentStatus": row.get("fulfillment_status"),
        "createdAt": row.get("created_at"),
    }
