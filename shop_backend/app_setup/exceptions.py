"""
Gestionnaires d'exceptions du tunnel de paiement.
- CheckoutError < 500: {"message": ...} avec le code de l'erreur (400/409)
- CheckoutError >= 500 et toute exception non gérée: corps opaque {} (détails uniquement dans les logs)
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shop_backend.checkout.errors import CheckoutError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CheckoutError)
    async def checkout_error_handler(request: Request, exc: CheckoutError):
        if exc.status_code >= 500:
            logger.error("checkout failed path=%s error=%s", request.url.path, type(exc).__name__)
            return JSONResponse(status_code=exc.status_code, content={})
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error path=%s", request.url.path)
        return JSONResponse(status_code=500, content={})
