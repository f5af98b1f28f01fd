"""
Adaptateur Stripe: enregistrement de la transaction (PaymentIntent) auprès de la passerelle.

- Montant en unités mineures, devise CHECKOUT_CURRENCY, capture automatique
- Reçu (receipt) dérivé de la clé d'idempotence, stocké en metadata pour la réconciliation
- Clé d'idempotence transmise à Stripe: une relance envoie des paramètres identiques
- Délai borné par GATEWAY_TIMEOUT_SECONDS, aucune relance locale
Toute erreur (réseau, refus, délai) est traduite en PaymentGatewayError.
"""
import logging
from typing import Any, Dict, Optional

import stripe

from shop_backend.config import GATEWAY_TIMEOUT_SECONDS, STRIPE_SECRET_KEY
from .errors import PaymentGatewayError
from .models import GatewayOrder

logger = logging.getLogger(__name__)

_http_client_ready = False


def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - stripe.api_key depuis STRIPE_SECRET_KEY (sans clé, le SDK lève AuthenticationError)
    - client HTTP borné par GATEWAY_TIMEOUT_SECONDS, pas de relance réseau
    """
    global _http_client_ready
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    stripe.max_network_retries = 0
    if not _http_client_ready:
        stripe.default_http_client = stripe.RequestsClient(timeout=GATEWAY_TIMEOUT_SECONDS)
        _http_client_ready = True
    return stripe


def receipt_for_key(idempotency_key: str) -> str:
    """Reçu stable d'une tentative: même clé, même reçu, même requête Stripe."""
    return f"rcpt_{idempotency_key}"


def _to_gateway_order(intent: Any, receipt_id: Optional[str] = None) -> GatewayOrder:
    # StripeObject est dict-compatible
    data: Dict[str, Any] = dict(intent)
    metadata = data.get("metadata") or {}
    return GatewayOrder(
        id=str(data.get("id") or ""),
        currency=str(data.get("currency") or ""),
        amount=int(data.get("amount") or 0),
        client_secret=data.get("client_secret"),
        status=data.get("status"),
        receipt=receipt_id or metadata.get("receipt"),
    )


def create_gateway_order(
    amount_minor: int,
    currency: str,
    receipt_id: str,
    *,
    idempotency_key: Optional[str] = None,
    metadata: Optional[Dict[str, str]] = None,
) -> GatewayOrder:
    """
    Crée un PaymentIntent Stripe.
    Retour: GatewayOrder {id: "pi_...", currency, amount, client_secret}
    """
    if amount_minor <= 0:
        raise PaymentGatewayError("Montant de paiement non positif")
    params: Dict[str, Any] = {
        "amount": amount_minor,
        "currency": currency,
        "capture_method": "automatic",
        "metadata": {**(metadata or {}), "receipt": receipt_id},
    }
    if idempotency_key:
        params["idempotency_key"] = idempotency_key
    try:
        intent = require_stripe().PaymentIntent.create(**params)
    except Exception as exc:
        logger.exception("checkout.gateway create failed receipt=%s amount=%s", receipt_id, amount_minor)
        raise PaymentGatewayError() from exc
    order = _to_gateway_order(intent, receipt_id)
    if not order.id:
        raise PaymentGatewayError("Réponse passerelle sans identifiant")
    return order


def retrieve_gateway_order(gateway_order_id: str) -> GatewayOrder:
    try:
        intent = require_stripe().PaymentIntent.retrieve(gateway_order_id)
    except Exception as exc:
        logger.exception("checkout.gateway retrieve failed id=%s", gateway_order_id)
        raise PaymentGatewayError() from exc
    return _to_gateway_order(intent)


def find_gateway_order_by_receipt(receipt_id: str) -> Optional[GatewayOrder]:
    """Recherche le PaymentIntent d'une tentative via metadata['receipt'] (None si absent)."""
    try:
        result = require_stripe().PaymentIntent.search(query=f"metadata['receipt']:'{receipt_id}'", limit=1)
    except Exception as exc:
        logger.exception("checkout.gateway search failed receipt=%s", receipt_id)
        raise PaymentGatewayError() from exc
    data = getattr(result, "data", None)
    if data is None and isinstance(result, dict):
        data = result.get("data")
    if not data:
        return None
    return _to_gateway_order(data[0], receipt_id)
