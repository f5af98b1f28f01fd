"""
Cas d'usage 'checkout': orchestre résolution, normalisation, agrégation, passerelle, persistance
et vidage du panier.

Séquence (jamais réordonnée):
  jeton décodé -> verrou utilisateur -> source -> lignes -> total -> idempotence/réservation
  -> passerelle -> persistance -> vidage du panier (chemin panier uniquement)
"""
import hashlib
import json
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

from shop_backend.cart import repository as cart_repository
from shop_backend.config import (
    CHECKOUT_CURRENCY,
    IDEMPOTENCY_WINDOW_SECONDS,
    PENDING_ORDER_MAX_AGE_SECONDS,
)
from . import gateway
from . import normalizer
from . import pricing
from . import repository
from . import resolver
from .errors import (
    CartInvalidationError,
    CheckoutInProgress,
    MissingAddress,
    MissingUser,
    PaymentGatewayError,
    PersistenceError,
)
from .intent_token import decode_checkout_token
from .locks import user_checkout_lock
from .models import CartCheckout, DirectCheckout, GatewayOrder

logger = logging.getLogger(__name__)


def _source_snapshot(source: Optional[Union[DirectCheckout, CartCheckout]]) -> Any:
    if source is None:
        return None
    if isinstance(source, DirectCheckout):
        return {"direct": source.intent.model_dump(mode="json", by_alias=True, exclude_none=True)}
    return {"cart": [item.model_dump(mode="json", exclude_none=True) for item in source.items]}


def derive_idempotency_key(
    user_id: str,
    address_id: str,
    source: Optional[Union[DirectCheckout, CartCheckout]] = None,
    *,
    header_key: Optional[str] = None,
    now: Optional[float] = None,
) -> str:
    """
    Clé d'idempotence d'une tentative.
    - en-tête Idempotency-Key fourni: haché avec l'utilisateur (pas de collision entre comptes)
    - sinon: empreinte {utilisateur, adresse, source, tranche de IDEMPOTENCY_WINDOW_SECONDS}
    """
    if header_key:
        digest = hashlib.sha256(f"{user_id}:{header_key}".encode("utf-8")).hexdigest()
        return f"hdr_{digest[:48]}"
    bucket = int((now if now is not None else time.time()) // max(IDEMPOTENCY_WINDOW_SECONDS, 1))
    fingerprint = json.dumps(
        {"user": user_id, "address": address_id, "source": _source_snapshot(source), "bucket": bucket},
        sort_keys=True,
        separators=(",", ":"),
    )
    return f"chk_{hashlib.sha256(fingerprint.encode('utf-8')).hexdigest()[:48]}"


def _response(gateway_order: GatewayOrder, order_code: str) -> Dict[str, Any]:
    return {
        "id": gateway_order.id,
        "currency": gateway_order.currency,
        "amount": gateway_order.amount,
        "orderId": order_code,
        "clientSecret": gateway_order.client_secret,
    }


def _replay_if_known(key: str) -> Optional[Dict[str, Any]]:
    existing = repository.find_order_by_idempotency_key(key)
    if not existing:
        return None
    if existing.get("status") != repository.STATUS_CREATED or not existing.get("gateway_order_id"):
        raise CheckoutInProgress()
    gateway_order = gateway.retrieve_gateway_order(existing["gateway_order_id"])
    logger.info("checkout.order replayed order_code=%s", existing.get("order_code"))
    return _response(gateway_order, existing.get("order_code") or repository.derive_order_code(gateway_order.id))


def invalidate_cart(user_id: str) -> bool:
    """Vide le panier après persistance. Un échec est journalisé sans annuler la commande."""
    try:
        cart_repository.delete_cart(user_id)
        return True
    except CartInvalidationError:
        logger.exception("checkout.cart invalidation failed user_id=%s", user_id)
        return False


def place_order(
    *,
    user_id: Optional[str],
    address_id: Optional[str],
    checkout_token: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Exécute un checkout complet et retourne {id, currency, amount, orderId, clientSecret}.
    Erreurs: MissingAddress, MissingUser, InvalidCheckoutToken, ProductNotFound, EmptyCart (400),
    CheckoutInProgress (409), PaymentGatewayError, PersistenceError (500).
    """
    if not address_id:
        raise MissingAddress()
    if not user_id:
        raise MissingUser()

    # Jeton validé avant le verrou et tout appel externe
    intent = decode_checkout_token(checkout_token) if checkout_token else None

    with user_checkout_lock(user_id):
        if idempotency_key:
            # Rejeu client: vérifié avant la résolution (le panier a pu être vidé depuis)
            key = derive_idempotency_key(user_id, address_id, header_key=idempotency_key)
            replayed = _replay_if_known(key)
            if replayed is not None:
                return replayed

        source = resolver.direct_source(intent) if intent is not None else resolver.cart_source(user_id)
        items = normalizer.normalize_source(source)
        total = pricing.aggregate_total(items)

        if not idempotency_key:
            key = derive_idempotency_key(user_id, address_id, source)
            replayed = _replay_if_known(key)
            if replayed is not None:
                return replayed

        receipt = gateway.receipt_for_key(key)
        repository.reserve_pending_order(
            receipt=receipt,
            idempotency_key=key,
            user_id=user_id,
            address_id=address_id,
            total_amount=total,
            currency=CHECKOUT_CURRENCY,
            items=items,
        )
        try:
            gateway_order = gateway.create_gateway_order(
                pricing.to_minor_units(total),
                CHECKOUT_CURRENCY,
                receipt,
                idempotency_key=key,
                metadata={"user_id": user_id},
            )
        except PaymentGatewayError:
            repository.release_pending_order(receipt)
            raise

        order_code = repository.persist_order(
            gateway_order.id,
            total,
            user_id,
            address_id,
            items,
            receipt=receipt,
            currency=gateway_order.currency or CHECKOUT_CURRENCY,
            idempotency_key=key,
        )

        if isinstance(source, CartCheckout):
            invalidate_cart(user_id)

    logger.info(
        "checkout.order created order_code=%s user_id=%s source=%s items=%s amount=%s",
        order_code, user_id, "cart" if isinstance(source, CartCheckout) else "direct", len(items), gateway_order.amount,
    )
    return _response(gateway_order, order_code)


def reconcile_pending_orders(max_age_seconds: Optional[int] = None, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Reprend les réservations 'pending' plus anciennes que max_age_seconds:
    - PaymentIntent trouvé (metadata.receipt) -> commande finalisée depuis l'instantané
    - sinon -> réservation supprimée
    Retour: {"finalized": n, "released": n, "failed": n}
    """
    age = PENDING_ORDER_MAX_AGE_SECONDS if max_age_seconds is None else max_age_seconds
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(seconds=age)
    summary = {"finalized": 0, "released": 0, "failed": 0}
    for row in repository.list_stale_pending_orders(cutoff):
        receipt = row.get("receipt")
        try:
            gateway_order = gateway.find_gateway_order_by_receipt(receipt)
            if gateway_order:
                repository.finalize_pending_order(row, gateway_order)
                summary["finalized"] += 1
            elif repository.release_pending_order(receipt):
                summary["released"] += 1
            else:
                summary["failed"] += 1
        except (PaymentGatewayError, PersistenceError, ValueError):
            logger.exception("checkout.reconcile failed receipt=%s", receipt)
            summary["failed"] += 1
    logger.info("checkout.reconcile summary=%s", summary)
    return summary
