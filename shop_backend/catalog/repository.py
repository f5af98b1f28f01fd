"""
Accès au catalogue produits (lecture seule).
"""
import logging
from typing import Any, Dict, Optional

from postgrest.exceptions import APIError

import shop_backend.infra.supabase_client as supabase_client
from shop_backend.checkout.errors import PersistenceError

logger = logging.getLogger(__name__)

# Code Postgres "invalid_text_representation" (ex: identifiant non UUID)
_INVALID_ID_CODE = "22P02"

def get_product_with_images(product_id: str) -> Optional[Dict[str, Any]]:
    """
    Produit courant + images (tables 'products' / 'product_images').
    - Retourne None si le produit n'existe pas ou si l'identifiant est mal formé.
    - Lève PersistenceError si la base est injoignable.
    """
    if not product_id:
        return None
    try:
        res = (
            supabase_client.get_supabase()
            .table("products")
            .select("id, title, slug, base_price, offer_price, product_images(url)")
            .eq("id", str(product_id))
            .limit(1)
            .execute()
        )
    except APIError as exc:
        if getattr(exc, "code", None) == _INVALID_ID_CODE:
            return None
        logger.exception("catalog.repository.get_product_with_images failed product_id=%s", product_id)
        raise PersistenceError() from exc
    except Exception as exc:
        logger.exception("catalog.repository.get_product_with_images failed product_id=%s", product_id)
        raise PersistenceError() from exc
    rows = res.data or []
    return rows[0] if rows else None
