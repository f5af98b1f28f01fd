import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from shop_backend.checkout import service as checkout_service
from shop_backend.config import CHECKOUT_COOKIE_NAME, COOKIE_SECURE
from shop_backend.utils.rate_limit import optional_rate_limit
from shop_backend.utils.security import get_session_user, require_admin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payment", tags=["Payment API"])

# module shop_backend.checkout.views
@router.post("", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_payment_order(request: Request, user: Optional[Dict[str, Any]] = Depends(get_session_user)):
    """
    Crée la transaction passerelle et la commande pour l'intention du cookie 'checkout'
    ou, à défaut, pour le panier persistant de l'utilisateur.
    - Entrée JSON: { "addressId": "<id adresse de livraison>" }
    - En-tête optionnel: Idempotency-Key
    - Réponse: { id, currency, amount, orderId, clientSecret }
    - Erreurs: 400 {message} (adresse/utilisateur manquant, jeton invalide, produit introuvable, panier vide),
      409 {message} (paiement déjà en cours), 500 {} (passerelle/base)
    """
    try:
        body = await request.json()
    except ValueError:
        body = {}
    address_id = body.get("addressId") if isinstance(body, dict) else None
    checkout_token = request.cookies.get(CHECKOUT_COOKIE_NAME)

    result = await run_in_threadpool(
        checkout_service.place_order,
        user_id=(user or {}).get("id"),
        address_id=address_id,
        checkout_token=checkout_token,
        idempotency_key=request.headers.get("Idempotency-Key"),
    )
    response = JSONResponse(result)
    if checkout_token:
        # Intention « acheter maintenant » à usage unique
        response.delete_cookie(CHECKOUT_COOKIE_NAME, path="/", secure=COOKIE_SECURE, httponly=True, samesite="lax")
    return response

@router.post("/reconcile")
async def reconcile_pending_orders(user: Dict[str, Any] = Depends(require_admin)):
    """Admin: finalise ou libère les commandes restées 'pending'. Réponse: {finalized, released, failed}."""
    summary = await run_in_threadpool(checkout_service.reconcile_pending_orders)
    logger.info("checkout.reconcile requested_by=%s", user.get("id"))
    return JSONResponse(summary)
