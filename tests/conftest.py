import os

# Avant tout import applicatif: pas de Redis ni de mode test paiement pendant les tests
os.environ["DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS"] = "1"
os.environ["PAYMENT_TEST_MODE"] = "0"
os.environ.setdefault("APP_ENV", "test")

import pytest
from typing import Generator, Dict, Any
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from storefront.app import app as fastapi_app
from storefront.utils.security import require_user, require_store_access

STORE = {"id": "store-1", "owner_id": "owner-1", "name": "Demo", "slug": "demo", "currency": "INR", "status": "active"}
STAFF_USER: Dict[str, Any] = {"id": "owner-1", "email": "owner@example.com", "role": "user", "metadata": {}, "token": "fake-token"}
ORDER_UUID = "0b6f8a52-4a55-4d0e-9d7a-1f1f3f0c2a11"

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/"):
            item.add_marker(pytest.mark.integration)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture
def staff_client(app, client):
    """Client API authentifié comme propriétaire de la boutique store-1."""
    app.dependency_overrides[require_user] = lambda: STAFF_USER
    app.dependency_overrides[require_store_access] = lambda: STAFF_USER
    yield client
    app.dependency_overrides.pop(require_user, None)
    app.dependency_overrides.pop(require_store_access, None)

@pytest.fixture
def make_order():
    """Fabrique de lignes store_orders (snake_case, comme renvoyées par Supabase)."""
    def _make(**overrides) -> Dict[str, Any]:
        row = {
            "id": ORDER_UUID,
            "store_id": STORE["id"],
            "order_id": "ORD-20250101-001",
            "customer": {"name": "Asha", "email": "asha@example.com", "phone": "9999999999"},
            "shipping_address": {
                "name": "Asha", "address1": "1 MG Road", "city": "Pune", "state": "MH",
                "zip": "411001", "country": "IN", "phone": "9999999999",
            },
            "items": [{"productId": "p1", "title": "Mug", "quantity": 2, "price": 500}],
            "subtotal": 1000,
            "shipping": 100,
            "total": 1100,
            "currency": "INR",
            "payment_method": "razorpay",
            "payment_status": "pending",
            "fulfillment_status": "pending",
            "gateway_order_id": None,
            "gateway_subscription_id": None,
            "gateway_payment_id": None,
            "created_at": "2025-01-01T10:00:00+00:00",
            "updated_at": "2025-01-01T10:00:00+00:00",
        }
        row.update(overrides)
        return row
    return _make

# Configuration paiement déterministe pour chaque test
@pytest.fixture(autouse=True)
def _payment_config(monkeypatch):
    import storefront.config as config
    from storefront.payments.razorpay_client import reset_razorpay_client

    monkeypatch.setattr(config, "PAYMENT_TEST_MODE", False)
    monkeypatch.setattr(config, "RAZORPAY_KEY_ID", "rzp_test_key")
    monkeypatch.setattr(config, "RAZORPAY_KEY_SECRET", "rzp_secret")
    monkeypatch.setattr(config, "RAZORPAY_WEBHOOK_SECRET", "rzp_webhook_secret")
    monkeypatch.setattr(config, "STRICT_FULFILLMENT_TRANSITIONS", True)
    monkeypatch.setattr(config, "MAX_ORDERS_PER_DAY_PER_STORE", 100)
    reset_razorpay_client()
    yield
    reset_razorpay_client()

# Aucun accès réseau à Supabase pendant les tests
@pytest.fixture(scope="function", autouse=True)
def mock_db_dependency(monkeypatch):
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: MagicMock())
    monkeypatch.setattr("storefront.health.service.health_supabase_info", lambda: {"connect_ok": True})
