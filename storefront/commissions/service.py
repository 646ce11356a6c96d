# module storefront.commissions.service
"""Commissions d'affiliation sur les commandes boutique payées.
- Le propriétaire de la boutique a pu être parrainé par un affilié: chaque commande
  payée de sa boutique génère une commission 'pending' pour cet affilié.
- Un remboursement révoque la commission (si elle n'est pas déjà versée).
"""
import logging
import math
from typing import Any, Dict, Optional

from storefront import config
from storefront.commissions import repository
from storefront.stores import repository as stores_repository

logger = logging.getLogger(__name__)

def calculate_commission(amount: int, rate: float) -> int:
    # Arrondi inférieur: jamais de fraction de paise
    return int(math.floor(int(amount) * float(rate)))

def _store_order_rate(affiliate: Dict[str, Any]) -> float:
    custom = (affiliate.get("custom_commission_rates") or {}).get("store_order")
    return float(custom) if custom is not None else config.STORE_ORDER_COMMISSION_RATE

def create_store_order_commission(order: Dict[str, Any]) -> Optional[dict]:
    """
    Crée la commission d'une commande payée, si la boutique a un affilié actif.
    Idempotent: une seule commission par commande.
    """
    store = stores_repository.get_store_by_id(order.get("store_id"))
    owner_id = (store or {}).get("owner_id")
    if not owner_id:
        return None

    referral = repository.get_converted_referral(owner_id)
    affiliate = (referral or {}).get("affiliates") or {}
    if not affiliate or affiliate.get("status") != "active":
        return None
    # Auto-parrainage refusé
    if str(affiliate.get("user_id")) == str(owner_id):
        return None

    existing = repository.get_commission_for_order(order["id"])
    if existing:
        return existing

    rate = _store_order_rate(affiliate)
    amount = calculate_commission(order.get("total") or 0, rate)
    if amount <= 0:
        return None

    commission = repository.insert_commission({
        "affiliate_id": affiliate.get("id"),
        "referred_user_id": owner_id,
        "purchase_type": "store_order",
        "store_order_id": order["id"],
        "purchase_amount": order.get("total"),
        "commission_rate": rate,
        "commission_amount": amount,
        "status": "pending",
    })
    if commission:
        logger.info(
            "commissions.created affiliate_id=%s store_order_id=%s amount=%s",
            affiliate.get("id"), order["id"], amount,
        )
    return commission

def revoke_store_order_commission(store_order_id: str, reason: str = "Order refunded") -> Optional[dict]:
    revoked = repository.revoke_commission(store_order_id, reason)
    if revoked:
        logger.info("commissions.revoked store_order_id=%s reason=%s", store_order_id, reason)
    return revoked
