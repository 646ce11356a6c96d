from typing import Any, Dict, Optional
import logging
import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

# module storefront.commissions.repository
def get_converted_referral(referred_user_id: str) -> Optional[dict]:
    """
    Parrainage converti du propriétaire de boutique, avec l'affilié joint.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("referral_tracking")
            .select("id, referred_user_id, affiliate_id, affiliates(id, user_id, status, custom_commission_rates)")
            .eq("referred_user_id", referred_user_id)
            .eq("status", "converted")
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("commissions.repository.get_converted_referral failed user_id=%s", referred_user_id)
        return None

def get_commission_for_order(store_order_id: str) -> Optional[dict]:
    res = (
        supabase_client.get_service_supabase()
        .table("affiliate_commissions")
        .select("*")
        .eq("store_order_id", store_order_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def insert_commission(data: Dict[str, Any]) -> Optional[dict]:
    try:
        res = supabase_client.get_service_supabase().table("affiliate_commissions").insert(data).execute()
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("commissions.repository.insert_commission failed store_order_id=%s", data.get("store_order_id"))
        return None

def revoke_commission(store_order_id: str, reason: str) -> Optional[dict]:
    """Passe la commission en 'revoked' sauf si elle est déjà versée à l'affilié."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("affiliate_commissions")
            .update({"status": "revoked", "revoked_reason": reason})
            .eq("store_order_id", store_order_id)
            .in_("status", ["pending", "approved"])
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("commissions.repository.revoke_commission failed store_order_id=%s", store_order_id)
        return None
