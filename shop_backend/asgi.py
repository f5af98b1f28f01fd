"""
ASGI entrypoint: expose `app` pour les process managers (ex: uvicorn shop_backend.asgi:app).
Toute la configuration FastAPI est centralisée dans shop_backend.app_setup.factory.
"""

from shop_backend.app import app

if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(
        "shop_backend.asgi:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
