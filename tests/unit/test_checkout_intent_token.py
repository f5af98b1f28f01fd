import base64
import json
from decimal import Decimal

import pytest
from itsdangerous import BadSignature, URLSafeSerializer

from shop_backend.checkout.errors import InvalidCheckoutToken
from shop_backend.checkout.intent_token import TOKEN_SALT, decode_checkout_token, encode_checkout_token
from shop_backend.checkout.models import CatalogIntent, CustomIntent


def _b64(payload) -> str:
    # Même encodage que le cookie legacy (btoa: base64 standard avec padding)
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def test_decode_legacy_custom_intent():
    token = _b64({
        "isCustomProduct": True,
        "quantity": 0,
        "basePrice": 500,
        "offerPrice": 450,
        "title": "Boulon sur mesure",
        "customProductData": {"title": "Boulon M8", "image": "/img/m8.png", "options": {"length": "40mm"}},
    })
    intent = decode_checkout_token(token, secret="")
    assert isinstance(intent, CustomIntent)
    assert intent.quantity == 0
    assert intent.base_price == Decimal("500")
    assert intent.offer_price == Decimal("450")
    assert intent.custom_product.options == {"length": "40mm"}


def test_decode_legacy_catalog_intent():
    intent = decode_checkout_token(_b64({"productId": "P1", "quantity": 3, "color": "black"}), secret="")
    assert isinstance(intent, CatalogIntent)
    assert intent.product_id == "P1"
    assert intent.quantity == 3
    assert intent.color == "black"


def test_decode_v2_intent_from_encoder():
    token = encode_checkout_token({"v": 2, "kind": "catalog", "productId": "P9", "quantity": 1}, secret="")
    intent = decode_checkout_token(token, secret="")
    assert isinstance(intent, CatalogIntent)
    assert intent.product_id == "P9"


@pytest.mark.parametrize(
    "token",
    [
        "",
        "@@@",
        base64.b64encode(b"not json").decode("ascii"),
        _b64(["a", "list"]),
        _b64({"v": 3, "kind": "catalog", "productId": "P1"}),
        _b64({"v": 2, "kind": "gift", "productId": "P1"}),
        _b64({"v": 2, "kind": "catalog", "quantity": 1}),
        _b64({"v": 2, "kind": "custom", "quantity": -1, "offerPrice": 10}),
        _b64({"isCustomProduct": True, "offerPrice": -5}),
    ],
)
def test_decode_rejects_malformed_tokens(token):
    with pytest.raises(InvalidCheckoutToken):
        decode_checkout_token(token, secret="")


def test_signed_token_roundtrip_and_tampering():
    token = encode_checkout_token({"v": 2, "kind": "custom", "quantity": 2, "offerPrice": "450"}, secret="s3cret")
    assert decode_checkout_token(token, secret="s3cret").offer_price == Decimal("450")

    _, _, signature = token.rpartition(".")
    forged = encode_checkout_token({"v": 2, "kind": "custom", "quantity": 2, "offerPrice": "1"}, secret="")
    with pytest.raises(InvalidCheckoutToken):
        decode_checkout_token(f"{forged}.{signature}", secret="s3cret")
    with pytest.raises(InvalidCheckoutToken):
        decode_checkout_token(token, secret="autre-secret")


def test_signed_token_is_readable_by_itsdangerous_with_the_checkout_salt():
    token = encode_checkout_token({"v": 2, "kind": "catalog", "productId": "P1", "quantity": 1}, secret="s3cret")
    assert URLSafeSerializer("s3cret", salt=TOKEN_SALT).loads(token)["productId"] == "P1"
    with pytest.raises(BadSignature):
        URLSafeSerializer("s3cret", salt="autre-usage").loads(token)


def test_signed_legacy_payload_is_upgraded():
    token = URLSafeSerializer("s3cret", salt=TOKEN_SALT).dumps({"productId": "P1", "quantity": 2})
    intent = decode_checkout_token(token, secret="s3cret")
    assert isinstance(intent, CatalogIntent)
    assert intent.quantity == 2


def test_unsigned_token_rejected_when_secret_configured():
    token = _b64({"productId": "P1", "quantity": 1})
    with pytest.raises(InvalidCheckoutToken):
        decode_checkout_token(token, secret="s3cret")
