"""
Logique panier pure (pas de passerelle, pas de BD): prix unitaires et totaux.
Tous les montants sont des entiers en unités mineures (paise/cents).
"""
from typing import Any, Dict, List, Optional, Tuple

from storefront.errors import InvalidOrderError, ProductNotFoundError

# module storefront.orders.cart
def merge_lines(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Fusionne les lignes [{productId, variant, quantity}] portant sur le même produit+variante.
    - L'ordre de première apparition est conservé.
    - Soulève InvalidOrderError si le panier est vide ou contient une quantité < 1.
    """
    if not items:
        raise InvalidOrderError("At least one item is required")
    merged: Dict[Tuple[str, Optional[str]], Dict[str, Any]] = {}
    for it in items:
        product_id = str(it.get("productId") or "").strip()
        variant = it.get("variant") or None
        qty = int(it.get("quantity") or 0)
        if not product_id:
            raise InvalidOrderError("Product ID is required")
        if qty < 1:
            raise InvalidOrderError("Quantity must be at least 1")
        key = (product_id, variant)
        if key in merged:
            merged[key]["quantity"] += qty
        else:
            merged[key] = {"productId": product_id, "variant": variant, "quantity": qty}
    return list(merged.values())

def find_variant(product: Dict[str, Any], name: str) -> Optional[Dict[str, Any]]:
    for v in product.get("variants") or []:
        if v.get("name") == name:
            return v
    return None

def resolve_unit_price(product: Dict[str, Any], variant: Optional[str]) -> int:
    """
    Prix unitaire d'une ligne: le prix de la variante remplace le prix de base s'il est défini.
    - Soulève InvalidOrderError si la variante n'existe pas ou si le prix est invalide.
    """
    price = product.get("base_price")
    if variant:
        v = find_variant(product, variant)
        if v is None:
            raise InvalidOrderError(f"Variant {variant} not found for product")
        if v.get("price") is not None:
            price = v.get("price")
    try:
        price = int(price)
    except (TypeError, ValueError):
        raise InvalidOrderError(f"Product {product.get('id')} has no valid price")
    if price < 0:
        raise InvalidOrderError(f"Product {product.get('id')} has no valid price")
    return price

def check_inventory(product: Dict[str, Any], variant: Optional[str], quantity: int) -> None:
    """
    Contrôle de stock si le suivi est actif:
    - un produit avec variantes exige une variante
    - un stock de variante fini (non null) doit couvrir la quantité
    """
    if not product.get("inventory_tracking"):
        return
    if variant:
        v = find_variant(product, variant)
        if v is None:
            raise InvalidOrderError(f"Variant {variant} not found for product")
        stock = v.get("inventory")
        if stock is not None and int(stock) < quantity:
            raise InvalidOrderError(f"Insufficient inventory for variant {variant}")
    elif product.get("variants"):
        raise InvalidOrderError("Variant is required for this product")

def build_order_items(lines: List[Dict[str, Any]], products_by_id: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Construit les lignes de commande figées (snapshot titre + prix au moment de l'achat).
    - Soulève ProductNotFoundError pour tout productId absent/inactif de la boutique.
    """
    order_items: List[Dict[str, Any]] = []
    for line in lines:
        product = products_by_id.get(line["productId"])
        if not product:
            raise ProductNotFoundError(f"Product {line['productId']} not found")
        variant = line.get("variant")
        check_inventory(product, variant, line["quantity"])
        item = {
            "productId": str(product.get("id")),
            "title": product.get("title") or "Article",
            "quantity": line["quantity"],
            "price": resolve_unit_price(product, variant),
        }
        if variant:
            item["variant"] = variant
        order_items.append(item)
    return order_items

def compute_totals(order_items: List[Dict[str, Any]], shipping: int) -> Dict[str, int]:
    """subtotal = Σ(price × quantity); total = subtotal + shipping (entiers, exacts)."""
    if shipping is None or int(shipping) < 0:
        raise InvalidOrderError("Shipping must be a non-negative amount")
    subtotal = sum(int(it["price"]) * int(it["quantity"]) for it in order_items)
    shipping = int(shipping)
    return {"subtotal": subtotal, "shipping": shipping, "total": subtotal + shipping}
