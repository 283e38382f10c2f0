from __future__ import annotations

import pytest

from app.payments.gateway import SnapToken, TransactionGateway, build_snap_payload
from app.providers.mock import MockProvider
from app.store.base import TRANSACTIONS
from app.store.memory import InMemoryDocumentStore
from services import metrics
from services.errors import InvalidProviderResponse, ProviderError, ProviderNotFound


def _gateway(provider=None, store=None):
    return TransactionGateway(provider or MockProvider(), store or InMemoryDocumentStore())


def test_payload_uses_integer_amount_and_default_customer():
    payload = build_snap_payload("ORD-1", "150000.00", None, booking_id="BOOK-1")

    assert payload["transaction_details"] == {"order_id": "ORD-1", "gross_amount": 150000}
    assert payload["customer_details"] == {
        "first_name": "Customer",
        "email": "customer@example.com",
        "phone": "08123456789",
    }
    assert payload["item_details"][0]["id"] == "BOOK-1"
    assert payload["item_details"][0]["price"] == 150000
    assert "enabled_payments" not in payload


def test_payload_restricts_to_known_payment_type():
    assert build_snap_payload("ORD-1", 1000, {}, "gopay")["enabled_payments"] == ["gopay"]


@pytest.mark.parametrize("payment_type", ["all", "bitcoin", "", None])
def test_payload_allows_all_methods_for_unknown_hint(payment_type):
    assert "enabled_payments" not in build_snap_payload("ORD-1", 1000, {}, payment_type)


def test_ensure_transaction_creates_once_and_reuses_token():
    provider = MockProvider()
    store = InMemoryDocumentStore()
    gateway = _gateway(provider, store)

    first = gateway.ensure_transaction("ORD-1", 150000, {"name": "Budi"}, booking_id="BOOK-1", user_id="u1")
    second = gateway.ensure_transaction("ORD-1", 150000, {"name": "Budi"}, booking_id="BOOK-1", user_id="u1")

    assert first.created is True
    assert second.token == first.token
    assert second.redirect_url == first.redirect_url
    assert len(provider.create_calls) == 1
    # stored token short-circuits the second call entirely
    assert provider.status_calls == ["ORD-1"]

    tx = store.get(TRANSACTIONS, "ORD-1")
    assert tx["token"] == first.token
    assert tx["status"] == "pending"
    assert tx["payment_status"] == "unpaid"
    assert tx["user_id"] == "u1"


def test_existing_provider_transaction_is_adopted_without_create():
    provider = MockProvider()
    provider.seed("ORD-2", token="existing-token", redirect_url="https://pay.example/existing-token")
    store = InMemoryDocumentStore()

    snap = _gateway(provider, store).ensure_transaction("ORD-2", 1000, {}, booking_id="BOOK-2", user_id="u1")

    assert snap.token == "existing-token"
    assert snap.created is False
    assert provider.create_calls == []
    assert store.get(TRANSACTIONS, "ORD-2")["token"] == "existing-token"


def test_existing_provider_transaction_without_token_is_invalid():
    provider = MockProvider()
    provider.seed("ORD-3", token=None, redirect_url=None)

    with pytest.raises(InvalidProviderResponse):
        _gateway(provider).ensure_transaction("ORD-3", 1000, {}, booking_id="BOOK-3", user_id="u1")
    assert provider.create_calls == []


def test_create_response_without_token_is_invalid():
    provider = MockProvider(omit_token=True)
    store = InMemoryDocumentStore()

    with pytest.raises(InvalidProviderResponse) as exc:
        _gateway(provider, store).ensure_transaction("ORD-4", 1000, {}, booking_id="BOOK-4", user_id="u1")

    assert exc.value.status_code == 502
    assert store.get(TRANSACTIONS, "ORD-4") is None


def test_create_failure_raises_retryable_provider_error():
    provider = MockProvider(fail_create=True, failure_http_status=503)

    with pytest.raises(ProviderError) as exc:
        _gateway(provider).ensure_transaction("ORD-5", 1000, {}, booking_id="BOOK-5", user_id="u1")

    assert exc.value.code == "PAYMENT_PROVIDER_ERROR"
    assert exc.value.retryable is True
    assert metrics.get_counter("provider_calls_total", {"operation": "create", "result": "error"}) == 1


def test_query_status_distinguishes_not_found_from_failure():
    provider = MockProvider()
    gateway = _gateway(provider)

    with pytest.raises(ProviderNotFound):
        gateway.query_status("ORD-6")

    provider.fail_status = True
    with pytest.raises(ProviderError):
        gateway.query_status("ORD-6")


def test_stored_token_is_never_replaced():
    store = InMemoryDocumentStore()
    store.put(TRANSACTIONS, "ORD-7", {"order_id": "ORD-7", "token": None, "status": "pending"})
    gateway = _gateway(MockProvider(), store)

    snap = gateway.ensure_transaction("ORD-7", 1000, {}, booking_id="BOOK-7", user_id="u1")
    assert store.get(TRANSACTIONS, "ORD-7")["token"] == snap.token

    store.put(TRANSACTIONS, "ORD-8", {"order_id": "ORD-8", "token": "winner", "redirect_url": "https://pay/winner"})
    kept = gateway._persist(
        SnapToken(token="loser", redirect_url="https://pay/loser", created=True),
        order_id="ORD-8",
        amount=1000,
        customer_details={},
        payment_type=None,
        booking_id="BOOK-8",
        user_id="u1",
    )
    assert kept.token == "winner"
    assert store.get(TRANSACTIONS, "ORD-8")["token"] == "winner"
