"""
Accès aux données des commandes boutique (tables 'store_orders' et 'store_order_notes').
Toutes les transitions de statut sont des updates conditionnels côté BD
(filtre sur le statut courant), jamais des lecture-puis-écriture.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging

from postgrest.exceptions import APIError

import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

ORDERS_TABLE = "store_orders"
NOTES_TABLE = "store_order_notes"
UNIQUE_VIOLATION = "23505"


class DuplicateOrderIdError(Exception):
    """L'orderId généré existe déjà pour la boutique (index unique)."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def _first(res) -> Optional[dict]:
    data = getattr(res, "data", None)
    if isinstance(data, list):
        return data[0] if data else None
    if isinstance(data, dict):
        return data
    return None

def _is_uuid(value: str) -> bool:
    try:
        UUID(str(value))
        return True
    except (TypeError, ValueError):
        return False

# module storefront.orders.repository
def insert_order(row: Dict[str, Any]) -> Optional[dict]:
    """
    Insère une commande complète en une seule écriture (pas de document partiel).
    - Soulève DuplicateOrderIdError si (store_id, order_id) existe déjà.
    - Retourne None en cas d'autre erreur (loggée).
    """
    try:
        res = supabase_client.get_service_supabase().table(ORDERS_TABLE).insert(row).execute()
        return _first(res)
    except APIError as e:
        if getattr(e, "code", None) == UNIQUE_VIOLATION:
            raise DuplicateOrderIdError(row.get("order_id")) from e
        logger.exception("orders.repository.insert_order failed store_id=%s order_id=%s", row.get("store_id"), row.get("order_id"))
        return None
    except Exception:
        logger.exception("orders.repository.insert_order failed store_id=%s order_id=%s", row.get("store_id"), row.get("order_id"))
        return None

def latest_order_id_with_prefix(store_id: str, prefix: str) -> Optional[str]:
    """
    Dernier orderId créé par la boutique avec ce prefix (ex: 'ORD-20250101-').
    Tri sur created_at: un tri texte placerait ORD-...-999 après ORD-...-1000.
    """
    res = (
        supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .select("order_id")
        .eq("store_id", store_id)
        .like("order_id", f"{prefix}%")
        .order("created_at", desc=True)
        .limit(1)
        .execute()
    )
    row = _first(res)
    return (row or {}).get("order_id")

def count_orders_since(store_id: str, since_iso: str) -> int:
    res = (
        supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .select("id", count="exact")
        .eq("store_id", store_id)
        .gte("created_at", since_iso)
        .execute()
    )
    if getattr(res, "count", None) is not None:
        return int(res.count)
    return len(res.data or [])

def get_order(store_id: str, ref: str) -> Optional[dict]:
    """
    Commande d'une boutique par identifiant interne (uuid) ou orderId lisible.
    """
    if not ref:
        return None
    column = "id" if _is_uuid(ref) else "order_id"
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .select("*")
            .eq("store_id", store_id)
            .eq(column, ref)
            .limit(1)
            .execute()
        )
        return _first(res)
    except Exception:
        logger.exception("orders.repository.get_order failed store_id=%s ref=%s", store_id, ref)
        raise

def get_order_by_id(order_id: str) -> Optional[dict]:
    res = (
        supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .select("*")
        .eq("id", order_id)
        .limit(1)
        .execute()
    )
    return _first(res)

def get_order_by_gateway_order_id(gateway_order_id: str) -> Optional[dict]:
    if not gateway_order_id:
        return None
    res = (
        supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .select("*")
        .eq("gateway_order_id", gateway_order_id)
        .limit(1)
        .execute()
    )
    return _first(res)

def get_order_by_gateway_subscription_id(gateway_subscription_id: str) -> Optional[dict]:
    if not gateway_subscription_id:
        return None
    res = (
        supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .select("*")
        .eq("gateway_subscription_id", gateway_subscription_id)
        .limit(1)
        .execute()
    )
    return _first(res)

def set_gateway_handle(order_id: str, field: str, handle: str) -> Optional[dict]:
    """
    Attache la référence passerelle si aucune n'est encore présente et que le paiement est pending.
    Retourne la ligne mise à jour, ou None si une autre requête a gagné la course.
    """
    if field not in ("gateway_order_id", "gateway_subscription_id"):
        raise ValueError(f"unknown gateway field: {field}")
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .update({field: handle, "updated_at": _now_iso()})
            .eq("id", order_id)
            .eq("payment_status", "pending")
            .is_("gateway_order_id", "null")
            .is_("gateway_subscription_id", "null")
            .execute()
        )
        return _first(res)
    except Exception:
        logger.exception("orders.repository.set_gateway_handle failed id=%s field=%s", order_id, field)
        raise

def transition_payment_status(
    order_id: str,
    from_status: str,
    to_status: str,
    extra: Optional[Dict[str, Any]] = None,
) -> Optional[dict]:
    """
    UPDATE ... SET payment_status=to_status WHERE id=order_id AND payment_status=from_status.
    Retourne None si la condition n'a pas été satisfaite (statut déjà modifié).
    """
    data = dict(extra or {})
    data.update({"payment_status": to_status, "updated_at": _now_iso()})
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .update(data)
            .eq("id", order_id)
            .eq("payment_status", from_status)
            .execute()
        )
        return _first(res)
    except Exception:
        logger.exception(
            "orders.repository.transition_payment_status failed id=%s %s->%s", order_id, from_status, to_status
        )
        raise

def transition_fulfillment_status(order_id: str, from_status: Optional[str], to_status: str) -> Optional[dict]:
    """
    Met à jour fulfillment_status; si from_status est fourni, l'update est conditionnel.
    """
    try:
        query = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .update({"fulfillment_status": to_status, "updated_at": _now_iso()})
            .eq("id", order_id)
        )
        if from_status is not None:
            query = query.eq("fulfillment_status", from_status)
        return _first(query.execute())
    except Exception:
        logger.exception(
            "orders.repository.transition_fulfillment_status failed id=%s %s->%s", order_id, from_status, to_status
        )
        raise

def list_orders(
    store_id: str,
    payment_status: Optional[str] = None,
    fulfillment_status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[dict], int]:
    """Commandes d'une boutique, plus récentes d'abord, avec total pour la pagination."""
    offset = (page - 1) * limit
    query = (
        supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .select("*", count="exact")
        .eq("store_id", store_id)
    )
    if payment_status:
        query = query.eq("payment_status", payment_status)
    if fulfillment_status:
        query = query.eq("fulfillment_status", fulfillment_status)
    res = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
    rows = res.data or []
    total = res.count if getattr(res, "count", None) is not None else len(rows)
    return rows, int(total)

def insert_note(order_id: str, text: str, added_by: str) -> Optional[dict]:
    """Ajoute une note (insert seul: les notes ne sont jamais modifiées ni supprimées)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(NOTES_TABLE)
            .insert({"order_id": order_id, "text": text, "added_by": added_by, "added_at": _now_iso()})
            .execute()
        )
        return _first(res)
    except Exception:
        logger.exception("orders.repository.insert_note failed order_id=%s", order_id)
        return None

def list_notes(order_id: str) -> List[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(NOTES_TABLE)
            .select("text, added_by, added_at")
            .eq("order_id", order_id)
            .order("added_at")
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("orders.repository.list_notes failed order_id=%s", order_id)
        return []
