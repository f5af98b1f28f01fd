# shop_backend.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du backend checkout.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe, Redis)
- Expose les réglages du tunnel de paiement (devise, cookie d'intention, délais, verrou)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _env_flag(name: str, default: str = "false") -> bool:
    return _clean_env(os.getenv(name, default)).lower() in ("1", "true", "yes")

def _env_int(name: str, default: int) -> int:
    raw = _clean_env(os.getenv(name) or "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default

# Supabase: URL et clés (anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Stripe: passerelle de paiement (PaymentIntent)
STRIPE_PUBLIC_KEY = _clean_env(os.getenv("STRIPE_PUBLIC_KEY") or "")
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")

# Tunnel de paiement
CHECKOUT_CURRENCY = _clean_env(os.getenv("CHECKOUT_CURRENCY") or "inr").lower()
CHECKOUT_COOKIE_NAME = _clean_env(os.getenv("CHECKOUT_COOKIE_NAME") or "checkout")
# Secret HMAC optionnel: si défini, le cookie d'intention doit être signé
CHECKOUT_TOKEN_SECRET = _clean_env(os.getenv("CHECKOUT_TOKEN_SECRET") or "")
GATEWAY_TIMEOUT_SECONDS = _env_int("GATEWAY_TIMEOUT_SECONDS", 10)
IDEMPOTENCY_WINDOW_SECONDS = _env_int("IDEMPOTENCY_WINDOW_SECONDS", 60)

# Verrou par utilisateur (Redis SET NX)
CHECKOUT_LOCK_ENABLED = _env_flag("CHECKOUT_LOCK_ENABLED", "true")
CHECKOUT_LOCK_TTL_SECONDS = _env_int("CHECKOUT_LOCK_TTL_SECONDS", 30)
RATE_LIMIT_REDIS_URL = _clean_env(os.getenv("RATE_LIMIT_REDIS_URL") or "redis://127.0.0.1:6379/0")
CHECKOUT_LOCK_REDIS_URL = _clean_env(os.getenv("CHECKOUT_LOCK_REDIS_URL") or "") or RATE_LIMIT_REDIS_URL

# Réconciliation des commandes restées en attente (pending)
PENDING_ORDER_MAX_AGE_SECONDS = _env_int("PENDING_ORDER_MAX_AGE_SECONDS", 900)
RECONCILE_ON_STARTUP = _env_flag("RECONCILE_ON_STARTUP")

# Cookies / sécurité
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]
