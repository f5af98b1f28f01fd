"""
Accès au panier persistant (tables 'carts' / 'cart_items').
Le client service-role est utilisé: l'utilisateur est déjà authentifié par la vue.
"""
import logging
from typing import Any, Dict, Optional

import shop_backend.infra.supabase_client as supabase_client
from shop_backend.checkout.errors import CartInvalidationError, PersistenceError

logger = logging.getLogger(__name__)

def get_cart_items(user_id: str) -> Optional[Dict[str, Any]]:
    """
    Panier de l'utilisateur avec ses lignes:
    {"id": ..., "user_id": ..., "cart_items": [{id, cart_id, product_id, quantity, color, custom_product}, ...]}
    Retourne None si l'utilisateur n'a pas de panier.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("carts")
            .select("id, user_id, cart_items(id, cart_id, product_id, quantity, color, custom_product)")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
    except Exception as exc:
        logger.exception("cart.repository.get_cart_items failed user_id=%s", user_id)
        raise PersistenceError() from exc
    rows = res.data or []
    return rows[0] if rows else None

def delete_cart(user_id: str) -> None:
    """Supprime le panier de l'utilisateur (les lignes suivent par ON DELETE CASCADE)."""
    try:
        (
            supabase_client.get_service_supabase()
            .table("carts")
            .delete()
            .eq("user_id", user_id)
            .execute()
        )
    except Exception as exc:
        raise CartInvalidationError() from exc
