import logging
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request

import shop_backend.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

COOKIE_NAME = "sb_access"

def token_from_request(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME) or None

def determine_role(user: Any) -> str:
    """Rôle applicatif depuis app_metadata (prioritaire) puis user_metadata."""
    app_meta = getattr(user, "app_metadata", None) or {}
    user_meta = getattr(user, "user_metadata", None) or {}
    role = str(app_meta.get("role") or user_meta.get("role") or "").lower()
    return "admin" if role == "admin" else "user"

def user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise l'utilisateur issu de supabase.auth.get_user(access_token): {id, email, role, token}."""
    res = supabase_client.get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None)
    if not user:
        return {}
    return {
        "id": getattr(user, "id", None),
        "email": getattr(user, "email", None),
        "role": determine_role(user),
        "token": access_token,
    }

def get_session_user(request: Request) -> Optional[Dict[str, Any]]:
    """
    Utilisateur de la session ou None (jamais d'exception).
    Le tunnel de paiement traduit l'absence d'utilisateur en 400 (MissingUser).
    """
    token = token_from_request(request)
    if not token:
        return None
    try:
        user = user_from_token(token)
    except Exception as e:
        logger.warning("session token rejected: %s", e)
        return None
    return user if user.get("id") else None

def require_user(user: Optional[Dict[str, Any]] = Depends(get_session_user)) -> Dict[str, Any]:
    if not user:
        raise HTTPException(status_code=401, detail="Non authentifié")
    return user

def require_admin(user: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Accès interdit")
    return user
