from __future__ import annotations

from app.payments.ingest import notification_signature
from app.store.base import BOOKINGS, ORDERS, TRANSACTIONS
from services import metrics
from tests.conftest import TEST_SERVER_KEY, seed_order


def _notification(order_id: str, transaction_status: str, *, status_code="200", gross_amount="150000.00", **extra):
    body = {
        "order_id": order_id,
        "transaction_status": transaction_status,
        "status_code": status_code,
        "gross_amount": gross_amount,
        "fraud_status": "accept",
        **extra,
    }
    body["signature_key"] = notification_signature(order_id, status_code, gross_amount, TEST_SERVER_KEY)
    return body


def test_settlement_notification_confirms_order(client, store):
    seed_order(store, "ORD-1", user_id="u1", booking_id="BOOK-1")

    r = client.post("/v1/notifications", json=_notification("ORD-1", "settlement"))

    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert body["data"] == {
        "order_id": "ORD-1",
        "transaction_status": "settlement",
        "outcome": "applied",
        "status": "confirmed",
    }
    assert store.get(ORDERS, "ORD-1")["payment_status"] == "success"
    assert store.get(BOOKINGS, "BOOK-1")["status"] == "confirmed"
    assert store.get(TRANSACTIONS, "ORD-1")["provider_payload"]["transaction_status"] == "settlement"


def test_duplicate_delivery_is_acknowledged_without_write(client, store):
    seed_order(store, "ORD-2", user_id="u1")

    first = client.post("/v1/notifications/midtrans", json=_notification("ORD-2", "capture"))
    second = client.post("/v1/notifications/midtrans", json=_notification("ORD-2", "capture"))

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["data"]["outcome"] == "unchanged"
    assert store.commit_count == 1


def test_late_pending_after_expire_is_acknowledged_as_stale(client, store):
    seed_order(store, "ORD-3", user_id="u1")

    client.post("/v1/notifications", json=_notification("ORD-3", "expire", status_code="407"))
    r = client.post("/v1/notifications", json=_notification("ORD-3", "pending", status_code="201"))

    assert r.status_code == 200
    assert r.json()["data"]["outcome"] == "stale"
    assert r.json()["data"]["status"] == "cancelled"
    assert store.get(ORDERS, "ORD-3")["status"] == "cancelled"


def test_unknown_order_returns_404_so_provider_retries(client):
    r = client.post("/v1/notifications", json=_notification("ORD-missing", "settlement"))

    assert r.status_code == 404
    body = r.json()
    assert body["success"] is False
    assert body["error"]["code"] == "TRANSACTION_NOT_FOUND"
    assert metrics.get_counter("webhook_events_total", {"signature_valid": "true", "outcome": "record_not_found"}) == 1


def test_bad_signature_is_rejected(client, store):
    seed_order(store, "ORD-4", user_id="u1")
    payload = _notification("ORD-4", "settlement")
    payload["gross_amount"] = "1.00"

    r = client.post("/v1/notifications", json=payload)

    assert r.status_code == 401
    assert r.json()["error"]["code"] == "INVALID_SIGNATURE"
    assert store.get(ORDERS, "ORD-4")["status"] == "pending"


def test_missing_signature_is_rejected(client, store):
    seed_order(store, "ORD-5", user_id="u1")
    payload = _notification("ORD-5", "settlement")
    payload.pop("signature_key")

    r = client.post("/v1/notifications", json=payload)

    assert r.status_code == 401
    assert r.json()["error"]["code"] == "MISSING_SIGNATURE"


def test_missing_fields_are_a_validation_error(client):
    r = client.post("/v1/notifications", json=_notification("", "settlement"))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


def test_non_json_body_is_a_validation_error(client):
    r = client.post("/v1/notifications", content=b"not-json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400


def test_unrecognized_status_is_acknowledged(client, store):
    seed_order(store, "ORD-6", user_id="u1")

    r = client.post("/v1/notifications", json=_notification("ORD-6", "refund"))

    assert r.status_code == 200
    assert r.json()["data"]["outcome"] == "unrecognized"
    assert store.commit_count == 0
