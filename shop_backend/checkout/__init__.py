"""
Module 'checkout' (feature-first): point d'entrée public.
Réunit jeton d'intention, résolution de source, normalisation, tarification,
passerelle Stripe, persistance des commandes et orchestration.
"""

from .errors import (
    CheckoutError,
    MissingAddress,
    MissingUser,
    InvalidCheckoutToken,
    ProductNotFound,
    EmptyCart,
    CheckoutInProgress,
    PaymentGatewayError,
    PersistenceError,
    CartInvalidationError,
)
from .intent_token import decode_checkout_token, encode_checkout_token
from .pricing import aggregate_total, to_minor_units, from_minor_units
from .repository import derive_order_code
from .service import place_order, invalidate_cart, reconcile_pending_orders

__all__ = [
    # errors
    "CheckoutError",
    "MissingAddress",
    "MissingUser",
    "InvalidCheckoutToken",
    "ProductNotFound",
    "EmptyCart",
    "CheckoutInProgress",
    "PaymentGatewayError",
    "PersistenceError",
    "CartInvalidationError",
    # intention
    "decode_checkout_token",
    "encode_checkout_token",
    # tarification
    "aggregate_total",
    "to_minor_units",
    "from_minor_units",
    # persistance
    "derive_order_code",
    # services
    "place_order",
    "invalidate_cart",
    "reconcile_pending_orders",
]
