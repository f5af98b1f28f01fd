import os

# Avant tout import applicatif: pas de Redis réel pendant les tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
os.environ.setdefault("USE_FAKE_REDIS_FOR_TESTS", "1")

import re
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import MagicMock

import fakeredis
import pytest
import stripe
from fastapi.testclient import TestClient

from shop_backend.app import app as fastapi_app
from shop_backend.checkout.errors import CartInvalidationError, CheckoutInProgress
from shop_backend.utils.security import get_session_user, require_admin

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

TEST_USER: Dict[str, Any] = {
    "id": "test-user",
    "email": "test@example.com",
    "role": "user",
    "token": "fake-token",
}

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

# Simuler un utilisateur connecté pour le tunnel de paiement
@pytest.fixture(autouse=True)
def _override_session_user(app):
    app.dependency_overrides[get_session_user] = lambda: dict(TEST_USER)
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_session_user, None)

@pytest.fixture
def authenticated_admin_client(app, client):
    app.dependency_overrides[require_admin] = lambda: {"id": "admin-user-id", "role": "admin", "email": "admin@example.com"}
    yield client
    app.dependency_overrides.pop(require_admin, None)

# Aucun accès Supabase réel
@pytest.fixture(scope="function", autouse=True)
def mock_db_dependency(monkeypatch):
    monkeypatch.setattr("shop_backend.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("shop_backend.infra.supabase_client.get_service_supabase", lambda: MagicMock())

# Verrou de checkout sur un Redis en mémoire, neuf pour chaque test
@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    r = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr("shop_backend.infra.redis_client.get_redis", lambda: r)
    monkeypatch.setattr("shop_backend.checkout.locks.CHECKOUT_LOCK_ENABLED", True)
    return r


class FakeCheckoutStore:
    """
    Catalogue, panier, commandes et PaymentIntents Stripe en mémoire.
    Branché sur les fonctions d'accès des repositories et sur require_stripe().
    """

    def __init__(self):
        self.products: Dict[str, Dict[str, Any]] = {}
        self.carts: Dict[str, Dict[str, Any]] = {}
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.order_items: List[Dict[str, Any]] = []
        self.intents: Dict[str, Dict[str, Any]] = {}
        self.idempotent_requests: Dict[str, Any] = {}
        self.catalog_reads: List[str] = []
        self.cart_reads: List[str] = []
        self.deleted_carts: List[str] = []
        self.gateway_calls: List[Dict[str, Any]] = []
        self.gateway_error: Optional[Exception] = None
        # erreur levée après création du PaymentIntent (réponse perdue, ex: délai dépassé)
        self.gateway_error_after_create: Optional[Exception] = None
        self.persist_error: Optional[Exception] = None
        self.delete_cart_fails = False
        self.next_intent_id: Optional[str] = None
        self._intent_seq = 0

    # --- données de test ---
    def add_product(self, product_id: str, base_price, offer_price) -> None:
        self.products[product_id] = {
            "id": product_id,
            "title": f"Produit {product_id}",
            "base_price": base_price,
            "offer_price": offer_price,
            "product_images": [],
        }

    def set_cart(self, user_id: str, rows: List[Dict[str, Any]], cart_id: str = "cart-1") -> None:
        self.carts[user_id] = {"id": cart_id, "user_id": user_id, "cart_items": rows}

    # --- catalogue / panier ---
    def get_product_with_images(self, product_id):
        self.catalog_reads.append(product_id)
        return self.products.get(product_id)

    def get_cart_items(self, user_id):
        self.cart_reads.append(user_id)
        return self.carts.get(user_id)

    def delete_cart(self, user_id):
        if self.delete_cart_fails:
            raise CartInvalidationError()
        self.carts.pop(user_id, None)
        self.deleted_carts.append(user_id)

    # --- commandes ---
    def find_order_by_idempotency_key(self, key):
        for row in self.orders.values():
            if row["idempotency_key"] == key:
                return dict(row)
        return None

    def reserve_pending_order(self, **kw):
        if self.find_order_by_idempotency_key(kw["idempotency_key"]):
            raise CheckoutInProgress()
        row = {
            "receipt": kw["receipt"],
            "idempotency_key": kw["idempotency_key"],
            "user_id": kw["user_id"],
            "address_id": kw["address_id"],
            "total_amount": str(kw["total_amount"]),
            "currency": kw["currency"],
            "status": "pending",
            "order_code": None,
            "gateway_order_id": None,
            "items_snapshot": [item.to_order_item() for item in kw["items"]],
            "created_at": datetime.now(timezone.utc),
        }
        self.orders[kw["receipt"]] = row
        return row

    def release_pending_order(self, receipt):
        row = self.orders.get(receipt)
        if row and row["status"] == "pending":
            del self.orders[receipt]
        return True

    def create_order_with_items(self, params):
        if self.persist_error:
            raise self.persist_error
        receipt = params["p_receipt"]
        row = self.orders.get(receipt)
        if row is None or row["status"] != "pending":
            row = {
                "receipt": receipt,
                "idempotency_key": params["p_idempotency_key"],
                "user_id": params["p_user_id"],
                "address_id": params["p_address_id"],
                "items_snapshot": params["p_items"],
                "created_at": datetime.now(timezone.utc),
            }
            self.orders[receipt] = row
        row.update({
            "order_code": params["p_order_code"],
            "gateway_order_id": params["p_gateway_order_id"],
            "total_amount": params["p_total_amount"],
            "currency": params["p_currency"],
            "status": "created",
        })
        self.order_items.extend({"receipt": receipt, **item} for item in params["p_items"])
        return SimpleNamespace(data=receipt)

    def list_stale_pending_orders(self, older_than, limit: int = 100):
        rows = [r for r in self.orders.values() if r["status"] == "pending" and r["created_at"] < older_than]
        return [dict(r) for r in rows[:limit]]

    def orders_with_status(self, status: str) -> List[Dict[str, Any]]:
        return [r for r in self.orders.values() if r["status"] == status]

    # --- Stripe PaymentIntent ---
    def _create_intent(self, **params):
        self.gateway_calls.append(params)
        if self.gateway_error:
            raise self.gateway_error
        # Comme Stripe: une clé réutilisée rejoue la première réponse, avec des paramètres identiques uniquement
        key = params.get("idempotency_key")
        request = {k: v for k, v in params.items() if k != "idempotency_key"}
        if key and key in self.idempotent_requests:
            first_request, intent_id = self.idempotent_requests[key]
            if first_request != request:
                raise stripe.IdempotencyError(
                    "Keys for idempotent requests can only be used with the same parameters they were first used with."
                )
            return self.intents[intent_id]
        self._intent_seq += 1
        intent_id = self.next_intent_id or f"pi_3Nk{self._intent_seq:04d}q"
        intent = {
            "id": intent_id,
            "amount": params["amount"],
            "currency": params["currency"],
            "client_secret": f"{intent_id}_secret_test",
            "status": "requires_payment_method",
            "metadata": params.get("metadata") or {},
        }
        self.intents[intent_id] = intent
        if key:
            self.idempotent_requests[key] = (request, intent_id)
        if self.gateway_error_after_create:
            error, self.gateway_error_after_create = self.gateway_error_after_create, None
            raise error
        return intent

    def _retrieve_intent(self, intent_id):
        return self.intents[intent_id]

    def _search_intents(self, query, limit=1):
        receipt = re.search(r"metadata\['receipt'\]:'([^']*)'", query).group(1)
        found = [i for i in self.intents.values() if i["metadata"].get("receipt") == receipt]
        return {"data": found[:limit]}

    def fake_stripe(self):
        return SimpleNamespace(
            PaymentIntent=SimpleNamespace(
                create=self._create_intent,
                retrieve=self._retrieve_intent,
                search=self._search_intents,
            )
        )


@pytest.fixture
def checkout_store(monkeypatch) -> FakeCheckoutStore:
    store = FakeCheckoutStore()
    monkeypatch.setattr("shop_backend.catalog.repository.get_product_with_images", store.get_product_with_images)
    monkeypatch.setattr("shop_backend.cart.repository.get_cart_items", store.get_cart_items)
    monkeypatch.setattr("shop_backend.cart.repository.delete_cart", store.delete_cart)
    monkeypatch.setattr("shop_backend.checkout.repository.find_order_by_idempotency_key", store.find_order_by_idempotency_key)
    monkeypatch.setattr("shop_backend.checkout.repository.reserve_pending_order", store.reserve_pending_order)
    monkeypatch.setattr("shop_backend.checkout.repository.release_pending_order", store.release_pending_order)
    monkeypatch.setattr("shop_backend.checkout.repository._create_order_with_items", store.create_order_with_items)
    monkeypatch.setattr("shop_backend.checkout.repository.list_stale_pending_orders", store.list_stale_pending_orders)
    fake_stripe = store.fake_stripe()
    monkeypatch.setattr("shop_backend.checkout.gateway.require_stripe", lambda: fake_stripe)
    return store
