from typing import Any, Dict

from fastapi import Depends, Request

from storefront.errors import AuthError, ForbiddenError, StoreNotFoundError
from storefront.stores import repository as stores_repository

COOKIE_NAME = "sb_access"

def get_current_user(request: Request) -> Dict[str, Any]:
    # Hybride: priorité au Bearer, fallback cookie
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(COOKIE_NAME)

    if not token:
        raise AuthError("Authentication required")

    try:
        from storefront.auth.service import get_user_from_token
        user = get_user_from_token(token)
    except Exception:
        raise AuthError("Session expired, please sign in again")
    if not user.get("id"):
        raise AuthError("Session expired, please sign in again")
    return user

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

def require_admin(user: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise ForbiddenError("Access denied")
    return user

def require_store_access(store_id: str, user: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    """
    Accès staff à une boutique: propriétaire de la boutique ou rôle admin.
    Le paramètre store_id est lu depuis le chemin (/api/stores/{store_id}/...).
    """
    store = stores_repository.get_store_by_id(store_id)
    if not store:
        raise StoreNotFoundError("Store not found")
    if user.get("role") == "admin" or str(store.get("owner_id")) == str(user.get("id")):
        return user
    raise ForbiddenError("You do not have access to this store")
