import hashlib
import hmac
import json

import pytest

from storefront.errors import SignatureMismatchError, ValidationError
from storefront.payments import service as payments_service

def _signed(event: dict):
    body = json.dumps(event).encode()
    sig = hmac.new(b"rzp_webhook_secret", body, hashlib.sha256).hexdigest()
    return body, sig

def _captured(order_id="order_1", payment_id="pay_9", event="payment.captured"):
    return {"event": event, "payload": {"payment": {"entity": {"id": payment_id, "order_id": order_id}}}}

@pytest.fixture
def webhook_db(monkeypatch, make_order):
    state = {"order": make_order(gateway_order_id="order_1"), "commissions": []}

    def _by_gateway(gateway_order_id):
        o = state["order"]
        return dict(o) if gateway_order_id == o["gateway_order_id"] else None

    def _transition(order_id, from_status, to_status, extra=None):
        o = state["order"]
        if o["payment_status"] != from_status:
            return None
        o.update(extra or {})
        o["payment_status"] = to_status
        return dict(o)

    def _by_subscription(gateway_subscription_id):
        o = state["order"]
        return dict(o) if gateway_subscription_id and gateway_subscription_id == o["gateway_subscription_id"] else None

    monkeypatch.setattr("storefront.orders.repository.get_order_by_gateway_order_id", _by_gateway)
    monkeypatch.setattr("storefront.orders.repository.get_order_by_gateway_subscription_id", _by_subscription)
    monkeypatch.setattr("storefront.orders.repository.transition_payment_status", _transition)
    monkeypatch.setattr(
        "storefront.commissions.service.create_store_order_commission",
        lambda order: state["commissions"].append(order["id"]),
    )
    return state

def test_webhook_captured_marks_paid(webhook_db):
    body, sig = _signed(_captured())
    assert payments_service.handle_webhook(body, sig) == {"status": "ok"}
    assert webhook_db["order"]["payment_status"] == "paid"
    assert webhook_db["order"]["gateway_payment_id"] == "pay_9"
    assert len(webhook_db["commissions"]) == 1

def test_webhook_replay_is_noop(webhook_db):
    body, sig = _signed(_captured())
    payments_service.handle_webhook(body, sig)
    assert payments_service.handle_webhook(body, sig) == {"status": "noop"}
    assert len(webhook_db["commissions"]) == 1

def test_webhook_order_paid_event_uses_order_entity(webhook_db):
    event = {"event": "order.paid", "payload": {"order": {"entity": {"id": "order_1"}}}}
    body, sig = _signed(event)
    assert payments_service.handle_webhook(body, sig)["status"] == "ok"
    assert webhook_db["order"]["payment_status"] == "paid"

def test_webhook_failed_marks_failed(webhook_db):
    body, sig = _signed(_captured(event="payment.failed"))
    assert payments_service.handle_webhook(body, sig) == {"status": "ok"}
    assert webhook_db["order"]["payment_status"] == "failed"
    assert webhook_db["commissions"] == []

def test_webhook_failed_after_paid_does_not_downgrade(webhook_db):
    webhook_db["order"]["payment_status"] = "paid"
    body, sig = _signed(_captured(event="payment.failed"))
    assert payments_service.handle_webhook(body, sig) == {"status": "noop"}
    assert webhook_db["order"]["payment_status"] == "paid"

def test_webhook_bad_signature(webhook_db):
    body, _ = _signed(_captured())
    with pytest.raises(SignatureMismatchError):
        payments_service.handle_webhook(body, "deadbeef")
    assert webhook_db["order"]["payment_status"] == "pending"

def test_webhook_unknown_event_and_order_are_ignored(webhook_db):
    body, sig = _signed({"event": "refund.created", "payload": {}})
    assert payments_service.handle_webhook(body, sig) == {"status": "ignored"}

    body, sig = _signed(_captured(order_id="order_unknown"))
    assert payments_service.handle_webhook(body, sig) == {"status": "ignored"}

def test_webhook_invalid_json(webhook_db):
    body = b"not-json"
    sig = hmac.new(b"rzp_webhook_secret", body, hashlib.sha256).hexdigest()
    with pytest.raises(ValidationError):
        payments_service.handle_webhook(body, sig)

def test_webhook_subscription_payment_matched_by_subscription_id(webhook_db):
    webhook_db["order"].update(gateway_order_id=None, gateway_subscription_id="sub_1")
    event = {
        "event": "payment.captured",
        "payload": {"payment": {"entity": {"id": "pay_5", "order_id": "order_auto", "subscription_id": "sub_1"}}},
    }
    body, sig = _signed(event)
    assert payments_service.handle_webhook(body, sig) == {"status": "ok"}
    assert webhook_db["order"]["payment_status"] == "paid"
    assert webhook_db["order"]["gateway_payment_id"] == "pay_5"

def test_webhook_subscription_charged_event(webhook_db):
    webhook_db["order"].update(gateway_order_id=None, gateway_subscription_id="sub_1")
    event = {
        "event": "subscription.charged",
        "payload": {
            "subscription": {"entity": {"id": "sub_1"}},
            "payment": {"entity": {"id": "pay_6", "order_id": "order_auto"}},
        },
    }
    body, sig = _signed(event)
    assert payments_service.handle_webhook(body, sig) == {"status": "ok"}
    assert webhook_db["order"]["payment_status"] == "paid"
