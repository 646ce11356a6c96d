"""
Accès aux produits d'une boutique (lecture pour le checkout, décrément de stock).
"""
from typing import Dict, Any, Iterable, List
import logging
import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

# module storefront.products.repository
def fetch_active_products(store_id: str, ids: List[str]) -> List[dict]:
    """
    Produits actifs de la boutique parmi ids (table 'store_products').
    - Les produits d'une autre boutique ou en brouillon ne sont jamais retournés.
    - Les erreurs d'accès remontent: une panne BD ne doit pas ressembler à un produit manquant.
    """
    if not ids:
        return []
    res = (
        supabase_client.get_service_supabase()
        .table("store_products")
        .select("id, store_id, title, base_price, status, variants, inventory_tracking")
        .eq("store_id", store_id)
        .eq("status", "active")
        .in_("id", [str(i) for i in ids])
        .execute()
    )
    return res.data or []

def get_products_map(store_id: str, ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Retourne un dict {id: produit} à partir d'une liste d'IDs."""
    products = fetch_active_products(store_id, list(ids))
    return {str(p.get("id")): p for p in products}

def decrement_variant_inventory(product_id: str, variant: str, quantity: int) -> bool:
    """
    Décrément atomique du stock d'une variante (fonction Postgres).
    Retourne False en cas d'échec (loggé), sans lever.
    """
    try:
        (
            supabase_client.get_service_supabase()
            .rpc("decrement_variant_inventory", {
                "p_product_id": product_id,
                "p_variant_name": variant,
                "p_quantity": quantity,
            })
            .execute()
        )
        return True
    except Exception:
        logger.exception(
            "products.repository.decrement_variant_inventory failed product_id=%s variant=%s qty=%s",
            product_id, variant, quantity,
        )
        return False
