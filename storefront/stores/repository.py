from typing import Optional
import logging
import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

STORE_COLUMNS = "id, owner_id, name, slug, currency, status"

# module storefront.stores.repository
def get_active_store_by_slug(slug: str) -> Optional[dict]:
    """
    Boutique active par slug (insensible à la casse, comme à la création).
    - Retourne None si absente, inactive ou en cas d'erreur.
    """
    slug = (slug or "").strip().lower()
    if not slug:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("stores")
            .select(STORE_COLUMNS)
            .eq("slug", slug)
            .eq("status", "active")
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("stores.repository.get_active_store_by_slug failed slug=%s", slug)
        return None

def get_store_by_id(store_id: str) -> Optional[dict]:
    if not store_id:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("stores")
            .select(STORE_COLUMNS)
            .eq("id", store_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("stores.repository.get_store_by_id failed id=%s", store_id)
        return None
