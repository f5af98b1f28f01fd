"""
Diagnostics des dépendances du tunnel de paiement: Supabase (tables) et Stripe (configuration).
"""
import socket
from typing import Any, Dict
from urllib.parse import urlparse

import shop_backend.infra.supabase_client as supabase_client
from shop_backend.config import CHECKOUT_CURRENCY, STRIPE_SECRET_KEY, SUPABASE_URL

CHECKOUT_TABLES = ["products", "carts", "cart_items", "orders", "order_items"]

def _probe_table(client, name: str) -> Dict[str, Any]:
    try:
        client.table(name).select("id").limit(1).execute()
        return {"ok": True}
    except Exception as e:
        return {"ok": False, "error": str(e)}

def health_supabase_info() -> Dict[str, Any]:
    hostname = urlparse(SUPABASE_URL).hostname if SUPABASE_URL else None
    info: Dict[str, Any] = {
        "hostname": hostname,
        "dns_ok": None,
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    if hostname:
        try:
            socket.getaddrinfo(hostname, 443)
            info["dns_ok"] = True
        except OSError as e:
            info["dns_ok"] = False
            info["error"] = str(e)
    try:
        client = supabase_client.get_service_supabase()
        info["tables"] = {t: _probe_table(client, t) for t in CHECKOUT_TABLES}
        info["connect_ok"] = all(t["ok"] for t in info["tables"].values())
    except Exception as e:
        info["error"] = str(e)
    return info

def health_gateway_info() -> Dict[str, Any]:
    # Aucune requête réseau: seule la configuration est vérifiée
    mode = None
    if STRIPE_SECRET_KEY.startswith("sk_test_"):
        mode = "test"
    elif STRIPE_SECRET_KEY.startswith("sk_live_"):
        mode = "live"
    return {"configured": bool(STRIPE_SECRET_KEY), "mode": mode, "currency": CHECKOUT_CURRENCY}
