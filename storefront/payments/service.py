"""
Cas d'usage 'payments': initiation du paiement Razorpay, vérification de la signature
du widget et traitement des webhooks. Orchestre razorpay_client et le repository commandes.

Invariants:
- au plus une référence passerelle attachée par commande (update conditionnel)
- pending -> paid / pending -> failed uniquement via update conditionnel
- une commande déjà payée n'est jamais re-vérifiée ni re-créditée
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from storefront import config
from storefront.commissions import service as commissions_service
from storefront.errors import (
    AlreadyVerifiedError,
    ConflictError,
    OrderNotFoundError,
    SignatureMismatchError,
    ValidationError,
)
from storefront.orders import repository as orders_repository
from storefront.orders.models import PaymentMethod, PaymentStatus
from storefront.payments import razorpay_client

logger = logging.getLogger(__name__)

CAPTURE_EVENTS = ("payment.captured", "order.paid", "subscription.charged")
FAILURE_EVENTS = ("payment.failed",)

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def _load_order(store_id: str, order_ref: str) -> Dict[str, Any]:
    order = orders_repository.get_order(store_id, order_ref)
    if not order:
        raise OrderNotFoundError()
    return order

def _handle_payload(order: Dict[str, Any], test_mode: bool) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "amount": order.get("total"),
        "currency": order.get("currency"),
        "keyId": razorpay_client.get_key_id(),
        "testMode": test_mode,
    }
    if order.get("gateway_subscription_id"):
        payload["gatewaySubscriptionId"] = order["gateway_subscription_id"]
    else:
        payload["gatewayOrderId"] = order.get("gateway_order_id")
    return payload

def _after_paid(order: Dict[str, Any]) -> None:
    # La commission ne doit jamais faire échouer la confirmation de paiement
    try:
        commissions_service.create_store_order_commission(order)
    except Exception:
        logger.exception("payments.after_paid commission failed order_id=%s", order.get("id"))

# module storefront.payments.service
def initiate_payment(*, store_id: str, order_ref: str, plan_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Demande une référence passerelle (order, ou subscription si plan_id) pour une commande pending.
    - COD: aucune action, retourne None.
    - Idempotent: une référence déjà attachée est renvoyée sans rappeler Razorpay.
    - Le montant est toujours order.total (jamais fourni par le client).
    - En cas d'échec passerelle: GatewayUnavailableError, la commande n'est pas modifiée.
    """
    order = _load_order(store_id, order_ref)
    if order.get("payment_method") == PaymentMethod.COD.value:
        return None
    test_mode = config.PAYMENT_TEST_MODE

    if order.get("payment_status") != PaymentStatus.PENDING.value:
        raise ConflictError("Order payment already processed")
    if order.get("gateway_order_id") or order.get("gateway_subscription_id"):
        return _handle_payload(order, test_mode)

    field = "gateway_subscription_id" if plan_id else "gateway_order_id"
    if test_mode:
        handle = f"{'sub' if plan_id else 'order'}_test_{uuid4().hex[:14]}"
    else:
        notes = {"store_order_id": str(order["id"]), "store_id": str(store_id), "order_id": str(order.get("order_id"))}
        if plan_id:
            handle = razorpay_client.create_subscription(plan_id=plan_id, notes=notes)["id"]
        else:
            handle = razorpay_client.create_order(
                amount=order["total"],
                currency=order.get("currency") or config.DEFAULT_CURRENCY,
                receipt=str(order.get("order_id")),
                notes=notes,
            )["id"]

    stored = orders_repository.set_gateway_handle(order["id"], field, handle)
    if stored is None:
        # Une requête concurrente a attaché sa propre référence: on renvoie celle-ci
        current = orders_repository.get_order_by_id(order["id"]) or {}
        if current.get("gateway_order_id") or current.get("gateway_subscription_id"):
            logger.info("payments.initiate lost race order_id=%s discarded_handle=%s", order["id"], handle)
            return _handle_payload(current, test_mode)
        raise ConflictError("Order payment already processed")

    logger.info("payments.initiate order_id=%s %s=%s test_mode=%s", order["id"], field, handle, test_mode)
    return _handle_payload(stored, test_mode)

def _assert_verifiable(order: Dict[str, Any]) -> None:
    if order.get("payment_method") == PaymentMethod.COD.value:
        raise ConflictError("Cash-on-delivery orders are not verified online")
    status = order.get("payment_status")
    if status == PaymentStatus.PAID.value:
        raise AlreadyVerifiedError("Order already paid")
    if status != PaymentStatus.PENDING.value:
        raise ConflictError(f"Order payment is {status}")

def verify_payment(
    *,
    store_id: str,
    order_ref: str,
    gateway_order_id: Optional[str] = None,
    gateway_subscription_id: Optional[str] = None,
    gateway_payment_id: Optional[str] = None,
    gateway_signature: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Vérifie le retour du widget et passe la commande à 'paid'.
    - Signature: HMAC-SHA256(order_id|payment_id) (ou payment_id|subscription_id), vérifiée par le SDK Razorpay.
    - Mode test: approbation immédiate sans contrôle de signature.
    - Déjà payée: no-op, retourne l'état courant (alreadyVerified=True).
    - Signature invalide: statut inchangé, SignatureMismatchError.
    Retour: {"order": <ligne>, "alreadyVerified": bool}
    """
    order = _load_order(store_id, order_ref)
    try:
        _assert_verifiable(order)
    except AlreadyVerifiedError:
        logger.info("payments.verify already paid order_id=%s", order["id"])
        return {"order": order, "alreadyVerified": True}

    if config.PAYMENT_TEST_MODE:
        payment_id = gateway_payment_id or f"pay_test_{uuid4().hex[:14]}"
        logger.warning("payments.verify TEST MODE auto-approval order_id=%s", order["id"])
    else:
        if not gateway_payment_id or not gateway_signature or not (gateway_order_id or gateway_subscription_id):
            raise ValidationError("Missing payment verification data")
        subscription = bool(gateway_subscription_id)
        handle = gateway_subscription_id if subscription else gateway_order_id
        stored = order.get("gateway_subscription_id") if subscription else order.get("gateway_order_id")
        if not stored or handle != stored:
            logger.warning(
                "payments.verify handle mismatch store_id=%s order_id=%s supplied=%s stored=%s",
                store_id, order["id"], handle, stored,
            )
            raise SignatureMismatchError("Order ID mismatch")
        if not razorpay_client.verify_payment_signature(handle, gateway_payment_id, gateway_signature, subscription=subscription):
            logger.warning(
                "payments.verify signature mismatch store_id=%s order_id=%s gateway_handle=%s payment_id=%s",
                store_id, order["id"], handle, gateway_payment_id,
            )
            raise SignatureMismatchError()
        payment_id = gateway_payment_id

    updated = orders_repository.transition_payment_status(
        order["id"],
        PaymentStatus.PENDING.value,
        PaymentStatus.PAID.value,
        {"gateway_payment_id": payment_id, "paid_at": _now_iso()},
    )
    if updated is None:
        current = orders_repository.get_order_by_id(order["id"]) or {}
        if current.get("payment_status") == PaymentStatus.PAID.value:
            return {"order": current, "alreadyVerified": True}
        raise ConflictError(f"Order payment is {current.get('payment_status')}")

    logger.info("payments.verify paid order_id=%s payment_id=%s", updated.get("id"), payment_id)
    _after_paid(updated)
    return {"order": updated, "alreadyVerified": False}

def _entity(event: Dict[str, Any], name: str) -> Dict[str, Any]:
    return ((event.get("payload") or {}).get(name) or {}).get("entity") or {}

def _find_event_order(event: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """
    Retrouve la commande visée par l'événement.
    - order: payment.order_id ou order.id
    - abonnement: payment.subscription_id ou subscription.id (l'order_id est généré par Razorpay)
    """
    payment = _entity(event, "payment")
    gateway_order_id = payment.get("order_id") or _entity(event, "order").get("id")
    order = orders_repository.get_order_by_gateway_order_id(gateway_order_id) if gateway_order_id else None
    if order:
        return order, gateway_order_id
    subscription_id = payment.get("subscription_id") or _entity(event, "subscription").get("id")
    if subscription_id:
        return orders_repository.get_order_by_gateway_subscription_id(subscription_id), subscription_id
    return None, gateway_order_id

def handle_webhook(raw_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """
    Webhook Razorpay signé (X-Razorpay-Signature sur le corps brut).
    - payment.captured / order.paid / subscription.charged: pending -> paid
    - payment.failed: pending -> failed
    - autres événements ou commande inconnue: {"status": "ignored"}
    Les rejeux sont des no-op ({"status": "noop"}).
    """
    if not razorpay_client.verify_webhook_signature(raw_body, signature or ""):
        logger.warning("payments.webhook signature mismatch")
        raise SignatureMismatchError("Invalid webhook signature")
    try:
        event = json.loads((raw_body or b"").decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise ValidationError("Invalid webhook payload")

    event_type = (event or {}).get("event") or ""
    if event_type not in CAPTURE_EVENTS + FAILURE_EVENTS:
        return {"status": "ignored"}

    order, gateway_handle = _find_event_order(event)
    if not order:
        logger.info("payments.webhook unknown gateway_handle=%s event=%s", gateway_handle, event_type)
        return {"status": "ignored"}

    payment = _entity(event, "payment")
    if event_type in CAPTURE_EVENTS:
        extra = {"paid_at": _now_iso()}
        if payment.get("id"):
            extra["gateway_payment_id"] = payment["id"]
        updated = orders_repository.transition_payment_status(
            order["id"], PaymentStatus.PENDING.value, PaymentStatus.PAID.value, extra
        )
        if updated:
            _after_paid(updated)
    else:
        updated = orders_repository.transition_payment_status(
            order["id"], PaymentStatus.PENDING.value, PaymentStatus.FAILED.value
        )

    logger.info("payments.webhook event=%s order_id=%s applied=%s", event_type, order["id"], bool(updated))
    return {"status": "ok" if updated else "noop"}
