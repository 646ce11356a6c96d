import pytest

STORE = {"id": "store-1", "owner_id": "owner-1", "slug": "demo", "currency": "INR", "status": "active"}
PRODUCTS = {"p1": {"id": "p1", "title": "Mug", "base_price": 500, "variants": []}}

def _payload(**overrides):
    body = {
        "customer": {"name": "Asha", "email": "Asha@Example.com", "phone": "9999999999"},
        "shippingAddress": {
            "name": "Asha", "address1": "1 MG Road", "city": "Pune", "state": "MH",
            "zip": "411001", "country": "IN", "phone": "9999999999",
        },
        "items": [{"productId": "p1", "quantity": 2}],
        "shipping": 100,
        "paymentMethod": "razorpay",
    }
    body.update(overrides)
    return body

@pytest.fixture
def catalog(monkeypatch):
    inserted = []

    def _insert(row):
        inserted.append(row)
        return {**row, "id": "0b6f8a52-4a55-4d0e-9d7a-1f1f3f0c2a11", "created_at": "2025-01-01T00:00:00+00:00"}

    monkeypatch.setattr("storefront.stores.repository.get_active_store_by_slug", lambda slug: STORE if slug == "demo" else None)
    monkeypatch.setattr("storefront.products.repository.get_products_map", lambda store_id, ids: {i: PRODUCTS[i] for i in ids if i in PRODUCTS})
    monkeypatch.setattr("storefront.orders.repository.count_orders_since", lambda store_id, since: 0)
    monkeypatch.setattr("storefront.orders.repository.latest_order_id_with_prefix", lambda store_id, prefix: None)
    monkeypatch.setattr("storefront.orders.repository.insert_order", _insert)
    return inserted

def test_create_order_201(client, catalog):
    r = client.post("/api/storefront/demo/orders", json=_payload())
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    data = body["data"]
    assert data["subtotal"] == 1000
    assert data["shipping"] == 100
    assert data["total"] == 1100
    assert data["paymentStatus"] == "pending"
    assert data["fulfillmentStatus"] == "pending"
    assert data["orderId"].startswith("ORD-")
    assert data["_id"] == "0b6f8a52-4a55-4d0e-9d7a-1f1f3f0c2a11"
    assert data["customer"]["email"] == "asha@example.com"
    assert data["items"] == [{"productId": "p1", "title": "Mug", "quantity": 2, "price": 500}]

def test_client_supplied_prices_are_ignored(client, catalog):
    r = client.post("/api/storefront/demo/orders", json=_payload(items=[{"productId": "p1", "quantity": 1, "price": 1}]))
    assert r.status_code == 201
    assert r.json()["data"]["subtotal"] == 500

def test_empty_cart_400_nothing_persisted(client, catalog):
    r = client.post("/api/storefront/demo/orders", json=_payload(items=[]))
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert r.json()["error"] == "At least one item is required"
    assert catalog == []

def test_zero_quantity_400_uniform_body(client, catalog):
    r = client.post("/api/storefront/demo/orders", json=_payload(items=[{"productId": "p1", "quantity": 0}]))
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["code"] == "validation_error"
    assert "quantity" in body["error"]
    assert catalog == []

def test_invalid_email_400(client, catalog):
    payload = _payload()
    payload["customer"]["email"] = "not-an-email"
    r = client.post("/api/storefront/demo/orders", json=payload)
    assert r.status_code == 400
    assert r.json()["success"] is False

def test_unknown_store_404(client, catalog):
    r = client.post("/api/storefront/ghost/orders", json=_payload())
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Store not found or not active", "code": "store_not_found"}

def test_unknown_product_404(client, catalog):
    r = client.post("/api/storefront/demo/orders", json=_payload(items=[{"productId": "nope", "quantity": 1}]))
    assert r.status_code == 404
    assert r.json()["error"] == "Product nope not found"

def test_daily_limit_429(client, catalog, monkeypatch):
    monkeypatch.setattr("storefront.orders.repository.count_orders_since", lambda store_id, since: 100)
    r = client.post("/api/storefront/demo/orders", json=_payload())
    assert r.status_code == 429
    assert r.json()["success"] is False

def test_public_order_status_hides_customer_data(client, monkeypatch, make_order):
    monkeypatch.setattr("storefront.stores.repository.get_active_store_by_slug", lambda slug: STORE)
    monkeypatch.setattr("storefront.orders.repository.get_order", lambda store_id, ref: make_order() if ref == "ORD-20250101-001" else None)

    r = client.get("/api/storefront/demo/orders/ORD-20250101-001")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["orderId"] == "ORD-20250101-001"
    assert data["paymentStatus"] == "pending"
    assert "customer" not in data
    assert "shippingAddress" not in data

    r404 = client.get("/api/storefront/demo/orders/ORD-20250101-999")
    assert r404.status_code == 404
    assert r404.json()["error"] == "Order not found"

def test_unexpected_error_500_uniform_body(app, monkeypatch):
    from fastapi.testclient import TestClient

    def _boom(slug):
        raise RuntimeError("db exploded")

    monkeypatch.setattr("storefront.stores.repository.get_active_store_by_slug", _boom)
    with TestClient(app, raise_server_exceptions=False) as c:
        r = c.post("/api/storefront/demo/orders", json=_payload())
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "Internal server error", "code": "internal_error"}

def test_unknown_route_uniform_404(client):
    r = client.get("/api/does-not-exist")
    assert r.status_code == 404
    assert r.json()["success"] is False
