"""
Résolution de la source du checkout: intention directe (cookie) ou panier persistant.
"""
import logging
from typing import Optional, Union

from pydantic import ValidationError

from shop_backend.cart import repository as cart_repository
from .errors import EmptyCart, PersistenceError
from .intent_token import decode_checkout_token
from .models import CartCheckout, CartItem, CheckoutIntent, DirectCheckout

logger = logging.getLogger(__name__)


def direct_source(intent: CheckoutIntent) -> DirectCheckout:
    return DirectCheckout(intent=intent)


def cart_source(user_id: str) -> CartCheckout:
    """Panier persistant de l'utilisateur; panier inexistant ou vide => EmptyCart."""
    cart = cart_repository.get_cart_items(user_id)
    rows = (cart or {}).get("cart_items") or []
    if not rows:
        raise EmptyCart()
    try:
        items = [CartItem.model_validate(row) for row in rows]
    except ValidationError as exc:
        logger.exception("checkout.resolver invalid cart rows user_id=%s", user_id)
        raise PersistenceError() from exc
    return CartCheckout(user_id=user_id, cart_id=(cart or {}).get("id"), items=items)


def resolve_source(checkout_token: Optional[str], user_id: str) -> Union[DirectCheckout, CartCheckout]:
    """
    - jeton présent: DirectCheckout (le panier n'est ni lu ni vidé);
      jeton invalide => InvalidCheckoutToken, sans repli sur le panier
    - jeton absent: CartCheckout; panier inexistant ou vide => EmptyCart
    """
    if checkout_token:
        return direct_source(decode_checkout_token(checkout_token))
    return cart_source(user_id)
