"""Opérations staff sur une commande: statuts de paiement/expédition et notes.
- fulfillmentStatus suit une table de transitions explicite (désactivable via
  STRICT_FULFILLMENT_TRANSITIONS=false pour les corrections manuelles).
- paymentStatus ne peut être passé qu'à 'refunded', et seulement depuis 'paid'.
- Les notes sont uniquement ajoutées, jamais modifiées ni supprimées.
Aucune notification externe n'est déclenchée ici.
"""
import logging
from typing import Any, Dict, List, Optional

from storefront import config
from storefront.commissions import service as commissions_service
from storefront.errors import ConflictError, StorefrontError, ValidationError
from storefront.orders import repository
from storefront.orders.models import FulfillmentStatus, PaymentStatus
from storefront.orders.service import get_store_order

logger = logging.getLogger(__name__)

FULFILLMENT_TRANSITIONS: Dict[str, set] = {
    FulfillmentStatus.PENDING.value: {FulfillmentStatus.FULFILLED.value, FulfillmentStatus.CANCELLED.value},
    FulfillmentStatus.FULFILLED.value: {FulfillmentStatus.SHIPPED.value},
    FulfillmentStatus.SHIPPED.value: set(),
    FulfillmentStatus.CANCELLED.value: set(),
}

NOTE_MAX_LENGTH = 1000

def _value(status) -> Optional[str]:
    return getattr(status, "value", status)

def can_transition_fulfillment(current: str, target: str, strict: Optional[bool] = None) -> bool:
    strict = config.STRICT_FULFILLMENT_TRANSITIONS if strict is None else strict
    if target not in FULFILLMENT_TRANSITIONS:
        return False
    if current == target or not strict:
        return True
    return target in FULFILLMENT_TRANSITIONS.get(current, set())

def _check_payment_change(order: Dict[str, Any], target: str) -> bool:
    """Retourne True si un update est nécessaire; lève ConflictError si interdit."""
    current = order.get("payment_status")
    if target == current:
        return False
    if target != PaymentStatus.REFUNDED.value:
        raise ConflictError(f"Payment status cannot be set to {target} manually")
    if current != PaymentStatus.PAID.value:
        raise ConflictError(f"Only paid orders can be refunded (current: {current})")
    return True

def _check_fulfillment_change(order: Dict[str, Any], target: str) -> bool:
    current = order.get("fulfillment_status")
    if target == current:
        return False
    if not can_transition_fulfillment(current, target):
        raise ConflictError(f"Cannot change fulfillment status from {current} to {target}")
    return True

def _refund(order: Dict[str, Any], staff_id: str) -> Dict[str, Any]:
    updated = repository.transition_payment_status(order["id"], PaymentStatus.PAID.value, PaymentStatus.REFUNDED.value)
    if updated is None:
        current = repository.get_order_by_id(order["id"]) or {}
        if current.get("payment_status") != PaymentStatus.REFUNDED.value:
            raise ConflictError(f"Only paid orders can be refunded (current: {current.get('payment_status')})")
        return current
    logger.info("orders.status refunded order_id=%s by=%s", order["id"], staff_id)
    try:
        commissions_service.revoke_store_order_commission(order["id"])
    except Exception:
        logger.exception("orders.status commission revoke failed order_id=%s", order["id"])
    return updated

def _set_fulfillment(order: Dict[str, Any], target: str, staff_id: str) -> Dict[str, Any]:
    current = order.get("fulfillment_status")
    # En mode strict, l'update est conditionné au statut lu (pas d'écrasement concurrent)
    from_status = current if config.STRICT_FULFILLMENT_TRANSITIONS else None
    updated = repository.transition_fulfillment_status(order["id"], from_status, target)
    if updated is None:
        raise ConflictError("Order was modified concurrently, please reload")
    logger.info("orders.status fulfillment order_id=%s %s->%s by=%s", order["id"], current, target, staff_id)
    return updated

# module storefront.orders.status
def update_order_status(
    *,
    store_id: str,
    order_ref: str,
    staff: Dict[str, Any],
    payment_status: Optional[str] = None,
    fulfillment_status: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Change paymentStatus et/ou fulfillmentStatus d'une commande.
    Les deux demandes sont validées avant toute écriture.
    Si le remboursement perd une course après l'écriture du fulfillment,
    la ConflictError le signale dans son message.
    """
    payment_status = _value(payment_status)
    fulfillment_status = _value(fulfillment_status)
    if payment_status is None and fulfillment_status is None:
        raise ValidationError("paymentStatus or fulfillmentStatus is required")

    order = get_store_order(store_id, order_ref)
    refund = payment_status is not None and _check_payment_change(order, payment_status)
    fulfil = fulfillment_status is not None and _check_fulfillment_change(order, fulfillment_status)

    staff_id = str(staff.get("id") or "")
    # Le remboursement (irréversible) est écrit en dernier
    if fulfil:
        order = _set_fulfillment(order, fulfillment_status, staff_id)
    if refund:
        try:
            order = _refund(order, staff_id)
        except ConflictError as e:
            if not fulfil:
                raise
            raise ConflictError(f"{e.message}; fulfillment status was already updated to {fulfillment_status}") from e
    return order

def add_note(*, store_id: str, order_ref: str, text: str, staff: Dict[str, Any]) -> Dict[str, Any]:
    text = (text or "").strip()
    if not text:
        raise ValidationError("Note text is required")
    if len(text) > NOTE_MAX_LENGTH:
        raise ValidationError(f"Note text cannot exceed {NOTE_MAX_LENGTH} characters")
    order = get_store_order(store_id, order_ref)
    note = repository.insert_note(order["id"], text, str(staff.get("id") or ""))
    if not note:
        raise StorefrontError("Impossible d'ajouter la note")
    return note

def bulk_update_fulfillment(
    *,
    store_id: str,
    order_refs: List[str],
    fulfillment_status: str,
    staff: Dict[str, Any],
) -> Dict[str, Any]:
    """Applique le même fulfillmentStatus à plusieurs commandes; chaque commande est validée séparément."""
    updated: List[str] = []
    failed: List[Dict[str, str]] = []
    for ref in order_refs:
        try:
            order = update_order_status(
                store_id=store_id, order_ref=ref, staff=staff, fulfillment_status=fulfillment_status
            )
            updated.append(order.get("order_id") or ref)
        except StorefrontError as e:
            failed.append({"id": ref, "error": e.message})
    return {"updated": updated, "failed": failed}
