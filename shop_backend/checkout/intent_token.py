"""
Codec du cookie d'intention « acheter maintenant ».

Format: JSON versionné.
- v2: {"v": 2, "kind": "catalog" | "custom", ...} validé par CheckoutIntent
- v1 (legacy, sans `v`): {isCustomProduct, productId, quantity, ...}, converti en v2 avant validation
- CHECKOUT_TOKEN_SECRET défini: jeton signé par itsdangerous (URLSafeSerializer, sel dédié)
- sans secret: base64 (standard ou URL-safe, padding optionnel) non signé, format du cookie legacy
Toute anomalie lève InvalidCheckoutToken (jamais de repli silencieux sur le panier).
"""
import base64
import json
import logging
from typing import Any, Dict, Mapping, Optional, Union

from itsdangerous import BadData, URLSafeSerializer
from pydantic import BaseModel, TypeAdapter, ValidationError

from shop_backend.config import CHECKOUT_TOKEN_SECRET
from .errors import InvalidCheckoutToken
from .models import CheckoutIntent

logger = logging.getLogger(__name__)

CURRENT_VERSION = 2
TOKEN_SALT = "checkout-intent"
_INTENT_ADAPTER = TypeAdapter(CheckoutIntent)


def _serializer(secret: str) -> URLSafeSerializer:
    return URLSafeSerializer(secret, salt=TOKEN_SALT)


def _b64decode(data: str) -> bytes:
    padded = data + "=" * (-len(data) % 4)
    if "-" in data or "_" in data:
        return base64.urlsafe_b64decode(padded)
    return base64.b64decode(padded, validate=True)


def _load_unsigned(raw: str) -> Any:
    try:
        return json.loads(_b64decode(raw).decode("utf-8"))
    except ValueError as exc:
        # binascii.Error, UnicodeDecodeError et JSONDecodeError dérivent de ValueError
        logger.warning("checkout.token undecodable: %s", exc)
        raise InvalidCheckoutToken() from exc


def _load_signed(raw: str, secret: str) -> Any:
    try:
        return _serializer(secret).loads(raw)
    except BadData as exc:
        # BadSignature (jeton altéré ou non signé) et BadPayload
        logger.warning("checkout.token signature rejected: %s", type(exc).__name__)
        raise InvalidCheckoutToken() from exc


def _upgrade_legacy(data: Dict[str, Any]) -> Dict[str, Any]:
    if data.get("isCustomProduct"):
        upgraded = {
            "v": CURRENT_VERSION,
            "kind": "custom",
            "quantity": data.get("quantity"),
            "basePrice": data.get("basePrice"),
            "offerPrice": data.get("offerPrice"),
            "title": data.get("title"),
            "image": data.get("image"),
            "color": data.get("color"),
            "customProductData": data.get("customProductData"),
        }
    else:
        upgraded = {
            "v": CURRENT_VERSION,
            "kind": "catalog",
            "productId": data.get("productId"),
            "quantity": data.get("quantity"),
            "color": data.get("color"),
        }
    # Les champs absents reprennent les valeurs par défaut du schéma
    return {k: v for k, v in upgraded.items() if v is not None}


def decode_checkout_token(token: Optional[str], secret: Optional[str] = None) -> CheckoutIntent:
    """
    Décode et valide le cookie d'intention.
    - secret: par défaut CHECKOUT_TOKEN_SECRET ("" => jetons non signés acceptés)
    Lève InvalidCheckoutToken si le jeton est vide, mal encodé, non signé/altéré,
    d'une version inconnue ou non conforme au schéma.
    """
    secret = CHECKOUT_TOKEN_SECRET if secret is None else secret
    raw = (token or "").strip()
    if not raw:
        raise InvalidCheckoutToken()

    data = _load_signed(raw, secret) if secret else _load_unsigned(raw)
    if not isinstance(data, dict):
        raise InvalidCheckoutToken()

    version = data.get("v")
    if version is None:
        data = _upgrade_legacy(data)
    elif version != CURRENT_VERSION:
        logger.warning("checkout.token unsupported version=%r", version)
        raise InvalidCheckoutToken()

    try:
        return _INTENT_ADAPTER.validate_python(data)
    except ValidationError as exc:
        logger.warning("checkout.token schema errors=%s", exc.error_count())
        raise InvalidCheckoutToken() from exc


def encode_checkout_token(intent: Union[BaseModel, Mapping[str, Any]], secret: Optional[str] = None) -> str:
    """Sérialise une intention (modèle ou dict) en jeton, signé si un secret est disponible."""
    secret = CHECKOUT_TOKEN_SECRET if secret is None else secret
    if isinstance(intent, BaseModel):
        data = intent.model_dump(mode="json", by_alias=True, exclude_none=True)
    else:
        data = dict(intent)
    if secret:
        return _serializer(secret).dumps(data)
    body = json.dumps(data, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(body).rstrip(b"=").decode("ascii")
