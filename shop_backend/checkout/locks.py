"""
Verrou de checkout par utilisateur (Redis SET NX PX).
Sérialise lecture panier -> agrégation -> paiement -> persistance -> vidage pour un même utilisateur.
"""
import logging
import secrets
from contextlib import contextmanager
from typing import Iterator, Optional

from redis.exceptions import RedisError

from shop_backend.config import CHECKOUT_LOCK_ENABLED, CHECKOUT_LOCK_TTL_SECONDS
from shop_backend.infra import redis_client
from .errors import CheckoutInProgress

logger = logging.getLogger(__name__)


def lock_key(user_id: str) -> str:
    return f"checkout:lock:{user_id}"


def _release(client, key: str, token: str) -> None:
    try:
        if client.get(key) == token:
            client.delete(key)
    except RedisError as exc:
        logger.warning("checkout.lock release failed key=%s: %s", key, exc)


@contextmanager
def user_checkout_lock(user_id: str, ttl_seconds: Optional[int] = None) -> Iterator[None]:
    """
    - verrou déjà détenu -> CheckoutInProgress (409)
    - Redis indisponible -> avertissement et exécution sans verrou
    - expiration automatique après ttl_seconds (CHECKOUT_LOCK_TTL_SECONDS par défaut)
    """
    if not CHECKOUT_LOCK_ENABLED:
        yield
        return

    key = lock_key(user_id)
    token = secrets.token_hex(16)
    ttl_ms = int((ttl_seconds or CHECKOUT_LOCK_TTL_SECONDS) * 1000)
    client = None
    try:
        client = redis_client.get_redis()
        acquired = client.set(key, token, nx=True, px=ttl_ms)
    except RedisError as exc:
        logger.warning("checkout.lock unavailable, proceeding without lock user_id=%s: %s", user_id, exc)
        client = None
        acquired = True

    if not acquired:
        raise CheckoutInProgress()
    try:
        yield
    finally:
        if client is not None:
            _release(client, key, token)
