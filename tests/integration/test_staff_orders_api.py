import pytest

BASE = "/api/stores/store-1/orders"

@pytest.fixture
def orders_db(monkeypatch, make_order):
    state = {"order": make_order(payment_status="paid"), "notes": [], "revoked": []}

    def _get_order(store_id, ref):
        o = state["order"]
        return dict(o) if store_id == o["store_id"] and ref in (o["id"], o["order_id"]) else None

    def _transition_payment(order_id, from_status, to_status, extra=None):
        if state["order"]["payment_status"] != from_status:
            return None
        state["order"]["payment_status"] = to_status
        return dict(state["order"])

    def _transition_fulfillment(order_id, from_status, to_status):
        if from_status is not None and state["order"]["fulfillment_status"] != from_status:
            return None
        state["order"]["fulfillment_status"] = to_status
        return dict(state["order"])

    def _insert_note(order_id, text, added_by):
        note = {"text": text, "added_by": added_by, "added_at": "2025-01-02T00:00:00+00:00"}
        state["notes"].append(note)
        return note

    monkeypatch.setattr("storefront.orders.repository.get_order", _get_order)
    monkeypatch.setattr("storefront.orders.repository.get_order_by_id", lambda order_id: dict(state["order"]))
    monkeypatch.setattr("storefront.orders.repository.transition_payment_status", _transition_payment)
    monkeypatch.setattr("storefront.orders.repository.transition_fulfillment_status", _transition_fulfillment)
    monkeypatch.setattr("storefront.orders.repository.insert_note", _insert_note)
    monkeypatch.setattr("storefront.orders.repository.list_notes", lambda order_id: list(state["notes"]))
    monkeypatch.setattr("storefront.commissions.service.revoke_store_order_commission", lambda order_id: state["revoked"].append(order_id))
    return state

def test_staff_routes_require_authentication(client):
    r = client.get(BASE)
    assert r.status_code == 401
    assert r.json()["success"] is False

def test_list_orders_with_filters(staff_client, monkeypatch, make_order):
    captured = {}

    def _list(store_id, payment_status, fulfillment_status, page, limit):
        captured.update(store_id=store_id, payment_status=payment_status, page=page, limit=limit)
        return [make_order()], 1

    monkeypatch.setattr("storefront.orders.repository.list_orders", _list)
    r = staff_client.get(BASE, params={"paymentStatus": "pending", "page": 1, "limit": 10})
    assert r.status_code == 200
    body = r.json()
    assert body["data"][0]["orderId"] == "ORD-20250101-001"
    assert body["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}
    assert captured == {"store_id": "store-1", "payment_status": "pending", "page": 1, "limit": 10}

def test_list_orders_rejects_unknown_status_filter(staff_client):
    r = staff_client.get(BASE, params={"paymentStatus": "stolen"})
    assert r.status_code == 400

def test_get_order_with_notes(staff_client, orders_db):
    orders_db["notes"].append({"text": "called customer", "added_by": "owner-1", "added_at": "2025-01-02T00:00:00+00:00"})
    r = staff_client.get(f"{BASE}/ORD-20250101-001")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["notes"] == [{"text": "called customer", "addedBy": "owner-1", "addedAt": "2025-01-02T00:00:00+00:00"}]
    assert data["gatewayOrderId"] is None

def test_get_order_by_internal_id(staff_client, orders_db):
    r = staff_client.get(f"{BASE}/{orders_db['order']['id']}")
    assert r.status_code == 200

def test_refund_paid_order(staff_client, orders_db):
    r = staff_client.patch(f"{BASE}/ORD-20250101-001", json={"paymentStatus": "refunded"})
    assert r.status_code == 200
    assert r.json()["data"]["paymentStatus"] == "refunded"
    assert orders_db["revoked"] == [orders_db["order"]["id"]]

def test_refund_pending_order_409(staff_client, orders_db):
    orders_db["order"]["payment_status"] = "pending"
    r = staff_client.patch(f"{BASE}/ORD-20250101-001", json={"paymentStatus": "refunded"})
    assert r.status_code == 409
    assert r.json()["success"] is False
    assert orders_db["order"]["payment_status"] == "pending"

def test_fulfillment_transitions(staff_client, orders_db):
    assert staff_client.patch(f"{BASE}/ORD-20250101-001", json={"fulfillmentStatus": "fulfilled"}).status_code == 200
    assert staff_client.patch(f"{BASE}/ORD-20250101-001", json={"fulfillmentStatus": "shipped"}).status_code == 200
    r = staff_client.patch(f"{BASE}/ORD-20250101-001", json={"fulfillmentStatus": "pending"})
    assert r.status_code == 409
    assert orders_db["order"]["fulfillment_status"] == "shipped"

def test_patch_unknown_value_400(staff_client, orders_db):
    r = staff_client.patch(f"{BASE}/ORD-20250101-001", json={"fulfillmentStatus": "teleported"})
    assert r.status_code == 400

def test_add_notes_append(staff_client, orders_db):
    r1 = staff_client.post(f"{BASE}/ORD-20250101-001/notes", json={"text": "first"})
    r2 = staff_client.post(f"{BASE}/ORD-20250101-001/notes", json={"text": "second"})
    assert r1.status_code == 201
    assert r2.json()["data"]["text"] == "second"
    assert [n["text"] for n in orders_db["notes"]] == ["first", "second"]

def test_add_note_too_long_400(staff_client, orders_db):
    r = staff_client.post(f"{BASE}/ORD-20250101-001/notes", json={"text": "x" * 1001})
    assert r.status_code == 400
    assert orders_db["notes"] == []

def test_bulk_fulfillment(staff_client, orders_db):
    r = staff_client.post(
        f"{BASE}/bulk-fulfillment",
        json={"orderIds": ["ORD-20250101-001", "ORD-20250101-404"], "fulfillmentStatus": "fulfilled"},
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["updated"] == ["ORD-20250101-001"]
    assert data["failed"][0]["id"] == "ORD-20250101-404"
