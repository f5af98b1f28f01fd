"""
Registre central des routers.
- API v1: paiement (checkout + réconciliation admin)
- Health: /health
"""
from fastapi import FastAPI

from shop_backend.checkout import views as checkout_views
from shop_backend.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    app.include_router(checkout_views.router)
    app.include_router(health_router)
