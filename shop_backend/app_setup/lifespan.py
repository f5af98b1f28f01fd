"""
Lifespan FastAPI: initialisation des ressources partagées.
- Initialise FastAPILimiter (Redis) avec options de test (fakeredis).
- Réconcilie les commandes 'pending' orphelines au démarrage si RECONCILE_ON_STARTUP=1.
Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement le rate limiting (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: garde un rate limiting local si l'init Redis échoue
"""
import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter
from starlette.concurrency import run_in_threadpool

from shop_backend.config import RATE_LIMIT_REDIS_URL, RECONCILE_ON_STARTUP

try:
    from fakeredis.aioredis import FakeRedis  # tests only
except Exception:
    FakeRedis = None

logger = logging.getLogger("uvicorn.error")

async def _init_rate_limiter(app: FastAPI) -> None:
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        return
    try:
        if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
            if not FakeRedis:
                raise RuntimeError("USE_FAKE_REDIS_FOR_TESTS=1 mais fakeredis n'est pas installé.")
            r = FakeRedis(decode_responses=True)
        else:
            r = aioredis.from_url(RATE_LIMIT_REDIS_URL, encoding="utf-8", decode_responses=True)
        await FastAPILimiter.init(r)
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            app.state.rate_limit_enabled = True
            logger.warning(f"Rate limiting falling back to local in-memory due to init error: {e}")
        else:
            app.state.rate_limit_enabled = False
            logger.warning(f"Rate limiting disabled due to init error: {e}")

async def _reconcile_on_startup() -> None:
    from shop_backend.checkout import service as checkout_service
    try:
        summary = await run_in_threadpool(checkout_service.reconcile_pending_orders)
        logger.info("Startup reconciliation done: %s", summary)
    except Exception as e:
        # Le service démarre même si la base ou Stripe sont indisponibles
        logger.warning(f"Startup reconciliation skipped: {e}")

@asynccontextmanager
async def lifespan(app: FastAPI):
    await _init_rate_limiter(app)
    if RECONCILE_ON_STARTUP:
        await _reconcile_on_startup()
    yield
