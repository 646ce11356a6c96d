"""
Résolution des sessions: token Supabase -> utilisateur normalisé {id, email, metadata, role, token}.
Aucune inscription/connexion ici: les comptes vivent côté Supabase Auth.
"""
from typing import Any, Dict, Optional

import storefront.infra.supabase_client as supabase_client

def determine_role(metadata: Optional[Dict[str, Any]]) -> str:
    role_lower = str((metadata or {}).get("role", "")).lower()
    if role_lower == "admin":
        return "admin"
    return "user"

def _raw_user_from_token(access_token: str) -> Dict[str, Any]:
    res = supabase_client.get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None) or {}
    if not isinstance(user, dict):
        user = {
            "id": getattr(user, "id", None),
            "email": getattr(user, "email", None),
            "user_metadata": getattr(user, "user_metadata", None),
        }
    return user or {}

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    raw = _raw_user_from_token(access_token)
    metadata = raw.get("user_metadata") or {}
    return {
        "id": raw.get("id"),
        "email": raw.get("email"),
        "metadata": metadata,
        "role": determine_role(metadata),
        "token": access_token,
    }
