# tests/conftest.py

import os

os.environ.setdefault("ENV", "dev")
os.environ.setdefault("PAYMENT_PROVIDER", "mock")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("JWT_SECRET", "test-secret-0123456789abcdef")
os.environ.setdefault("MIDTRANS_SERVER_KEY", "SB-Mid-server-test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "0")

import uuid
from typing import Any, Dict, Optional

import pytest
from fastapi.testclient import TestClient

import rate_limit
from app.payments.status_mapper import INITIAL_STATE, PaymentState
from app.providers.mock import MockProvider
from app.store.base import BILLING_STATEMENTS, BOOKINGS, ORDERS, TRANSACTIONS
from app.store.memory import InMemoryDocumentStore
from main import create_app
from security import create_access_token
from services import metrics


TEST_SERVER_KEY = os.environ["MIDTRANS_SERVER_KEY"]


@pytest.fixture(autouse=True)
def _reset_process_state():
    metrics.reset()
    rate_limit._limiter = rate_limit.InMemoryRateLimiter()
    yield


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def client(store: InMemoryDocumentStore, provider: MockProvider) -> TestClient:
    # Needed so tests can assert 500s instead of pytest re-raising server exceptions
    return TestClient(create_app(store=store, provider=provider), raise_server_exceptions=False)


def _auth_headers(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def user_id() -> str:
    return f"user-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def auth_headers(user_id: str) -> Dict[str, str]:
    return _auth_headers(user_id)


def seed_order(
    store: InMemoryDocumentStore,
    order_id: str,
    *,
    user_id: str,
    booking_id: Optional[str] = None,
    state: PaymentState = INITIAL_STATE,
    token: Optional[str] = "snap-token-1",
    amount: int = 150000,
    skip: tuple = (),
) -> Dict[str, Any]:
    """
    Writes the four records of one order directly into the store.
    `skip` names collections to leave out.
    """
    booking_id = booking_id or f"BOOK-{order_id}"
    common = {"order_id": order_id, "booking_id": booking_id, "user_id": user_id, "amount": amount, **state.as_fields()}
    docs = {
        ORDERS: (order_id, dict(common)),
        BILLING_STATEMENTS: (order_id, dict(common)),
        TRANSACTIONS: (
            order_id,
            {
                **common,
                "token": token,
                "redirect_url": f"https://app.sandbox.midtrans.com/snap/v2/vtweb/{token}" if token else None,
                "provider_payload": None,
            },
        ),
        BOOKINGS: (booking_id, {"booking_id": booking_id, "user_id": user_id, **state.as_fields()}),
    }
    for collection, (doc_id, data) in docs.items():
        if collection in skip:
            continue
        store.put(collection, doc_id, data)
    return {"order_id": order_id, "booking_id": booking_id}


def seed_booking(store: InMemoryDocumentStore, booking_id: str, *, user_id: str) -> None:
    store.put(BOOKINGS, booking_id, {"booking_id": booking_id, "user_id": user_id, **INITIAL_STATE.as_fields()})
