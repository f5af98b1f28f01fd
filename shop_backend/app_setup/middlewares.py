"""
Middlewares transverses de l'application.
- register_basic_middlewares: CORS et TrustedHost.
- register_no_store_middleware: aucune mise en cache des réponses du tunnel de paiement.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from shop_backend.config import ALLOWED_HOSTS, CORS_ORIGINS

NO_STORE_PREFIXES = ("/api/v1/payment",)

def register_basic_middlewares(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=ALLOWED_HOSTS + ["*"] if "*" in CORS_ORIGINS else ALLOWED_HOSTS,
    )

def register_no_store_middleware(app: FastAPI) -> None:
    """Les réponses de paiement (client_secret, montants) ne doivent jamais être mises en cache."""
    @app.middleware("http")
    async def no_store_for_payment(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"
            response.headers["Pragma"] = "no-cache"
        return response
