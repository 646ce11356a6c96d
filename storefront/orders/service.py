"""Couche service de la création et de la consultation des commandes boutique.
Rôles:
- Valider le panier contre le catalogue actif de la boutique et figer les prix.
- Calculer subtotal/total en unités mineures et persister la commande (pending/pending).
- Générer un orderId lisible unique par boutique (ORD-YYYYMMDD-NNN).
Le paiement en ligne est initié séparément (storefront.payments.service);
une commande COD ne passe jamais par la passerelle.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from storefront import config
from storefront.errors import InvalidOrderError, OrderNotFoundError, RateLimitError, StorefrontError, StoreNotFoundError
from storefront.orders import cart as cart_logic
from storefront.orders import repository
from storefront.orders.models import FulfillmentStatus, PaymentMethod, PaymentStatus
from storefront.products import repository as products_repository
from storefront.stores import repository as stores_repository

logger = logging.getLogger(__name__)

MAX_ORDER_ID_ATTEMPTS = 5

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

def next_order_id(store_id: str, now: Optional[datetime] = None) -> str:
    """
    Prochain orderId du jour pour la boutique: ORD-<yyyymmdd>-<seq sur 3 chiffres>.
    La séquence repart à 1 chaque jour (UTC).
    """
    now = now or _utcnow()
    prefix = f"ORD-{now:%Y%m%d}-"
    last = repository.latest_order_id_with_prefix(store_id, prefix)
    seq = 1
    if last:
        try:
            seq = int(last.rsplit("-", 1)[1]) + 1
        except (IndexError, ValueError):
            seq = 1
    return f"{prefix}{seq:03d}"

def resolve_store(slug: str) -> Dict[str, Any]:
    store = stores_repository.get_active_store_by_slug(slug)
    if not store:
        raise StoreNotFoundError()
    return store

def check_daily_order_limit(store_id: str) -> int:
    """Lève RateLimitError si la boutique a atteint son plafond de commandes du jour; retourne le restant."""
    start_of_day = _utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    count = repository.count_orders_since(store_id, start_of_day.isoformat())
    if count >= config.MAX_ORDERS_PER_DAY_PER_STORE:
        raise RateLimitError("Daily order limit reached. Please try again tomorrow.")
    return config.MAX_ORDERS_PER_DAY_PER_STORE - count

def create_order(
    *,
    slug: str,
    customer: Dict[str, Any],
    shipping_address: Dict[str, Any],
    items: List[Dict[str, Any]],
    shipping: int = 0,
    payment_method: str = PaymentMethod.RAZORPAY.value,
) -> Dict[str, Any]:
    """
    Crée une commande pending/pending pour la boutique `slug`.
    Étapes:
      1) Panier non vide, quantités >= 1 (InvalidOrderError sinon, rien n'est écrit)
      2) Boutique active (StoreNotFoundError) et plafond journalier (RateLimitError)
      3) Chaque ligne référence un produit actif de la boutique (ProductNotFoundError)
      4) Prix unitaire (variante > base), subtotal et total
      5) Insertion unique; en cas de collision d'orderId, recalcul et nouvel essai
      6) Décrément des stocks suivis (best-effort)
    Retour: la ligne persistée (incluant son id interne).
    """
    lines = cart_logic.merge_lines(items)
    if payment_method not in (PaymentMethod.RAZORPAY.value, PaymentMethod.COD.value):
        raise InvalidOrderError(f"Unsupported payment method: {payment_method}")

    store = resolve_store(slug)
    store_id = str(store["id"])
    check_daily_order_limit(store_id)

    products = products_repository.get_products_map(store_id, [l["productId"] for l in lines])
    order_items = cart_logic.build_order_items(lines, products)
    totals = cart_logic.compute_totals(order_items, shipping)
    if totals["total"] != totals["subtotal"] + totals["shipping"]:
        raise InvalidOrderError("Order totals are inconsistent")

    row: Dict[str, Any] = {
        "store_id": store_id,
        "customer": customer,
        "shipping_address": shipping_address,
        "items": order_items,
        "subtotal": totals["subtotal"],
        "shipping": totals["shipping"],
        "total": totals["total"],
        "currency": (store.get("currency") or config.DEFAULT_CURRENCY).upper(),
        "payment_method": payment_method,
        "payment_status": PaymentStatus.PENDING.value,
        "fulfillment_status": FulfillmentStatus.PENDING.value,
    }

    created: Optional[dict] = None
    for attempt in range(1, MAX_ORDER_ID_ATTEMPTS + 1):
        row["order_id"] = next_order_id(store_id)
        try:
            created = repository.insert_order(row)
            break
        except repository.DuplicateOrderIdError:
            logger.info("orders.create_order order_id collision store_id=%s order_id=%s attempt=%s", store_id, row["order_id"], attempt)
    else:
        raise StorefrontError("Could not allocate an order number, please retry")

    if not created:
        raise StorefrontError("Impossible de créer la commande")

    for item in order_items:
        product = products.get(item["productId"]) or {}
        if product.get("inventory_tracking") and item.get("variant"):
            products_repository.decrement_variant_inventory(item["productId"], item["variant"], item["quantity"])

    logger.info(
        "orders.create_order created store_id=%s order_id=%s total=%s method=%s",
        store_id, created.get("order_id"), created.get("total"), payment_method,
    )
    return created

def get_store_order(store_id: str, ref: str) -> Dict[str, Any]:
    order = repository.get_order(store_id, ref)
    if not order:
        raise OrderNotFoundError()
    return order

def get_order_with_notes(store_id: str, ref: str) -> Dict[str, Any]:
    order = get_store_order(store_id, ref)
    return {"order": order, "notes": repository.list_notes(order["id"])}

def list_store_orders(
    store_id: str,
    payment_status: Optional[str] = None,
    fulfillment_status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    page = max(1, int(page or 1))
    limit = min(100, max(1, int(limit or 20)))
    rows, total = repository.list_orders(store_id, payment_status, fulfillment_status, page, limit)
    return {
        "orders": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }
