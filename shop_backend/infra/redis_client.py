"""
Client Redis synchrone pour le verrou de checkout par utilisateur.
Le rate limiting (fastapi-limiter) utilise son propre client asynchrone, créé dans le lifespan.
"""
import os
from typing import Optional

import redis

from shop_backend.config import CHECKOUT_LOCK_REDIS_URL

try:
    import fakeredis  # tests only
except Exception:
    fakeredis = None

_redis: Optional[redis.Redis] = None

def get_redis() -> redis.Redis:
    global _redis
    if _redis is None:
        if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
            if not fakeredis:
                raise RuntimeError("USE_FAKE_REDIS_FOR_TESTS=1 mais fakeredis n'est pas installé.")
            _redis = fakeredis.FakeRedis(decode_responses=True)
        else:
            _redis = redis.from_url(CHECKOUT_LOCK_REDIS_URL, encoding="utf-8", decode_responses=True)
    return _redis
