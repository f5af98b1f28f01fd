"""
Factory d'application utilisée par les entrypoints (shop_backend.app, shop_backend.asgi).
"""
from fastapi import FastAPI

from .exceptions import register_exception_handlers
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_no_store_middleware
from .routers import register_routers

def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - middlewares (CORS, TrustedHost, no-store)
      - gestionnaires d'exceptions
      - routers (paiement, health)
    """
    app = FastAPI(title="Fastener Shop Checkout", lifespan=lifespan)
    register_basic_middlewares(app)
    register_no_store_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
