# app/providers/mock.py
from __future__ import annotations

import uuid
from threading import Lock
from typing import Any, Optional

from app.providers.base import SnapResult, StatusResult


class MockProvider:
    """
    Test/dev provider.

    Keeps created transactions in memory so the gateway's "query, then
    create if absent" flow behaves like the real Snap API. Statuses for an
    order can be scripted with `set_status`.

    IMPORTANT:
    - `fail_create` / `fail_status` simulate a provider outage (HTTP 5xx).
    - `omit_token` simulates a 2xx create response with no token.
    """

    name = "mock"

    def __init__(
        self,
        *,
        fail_create: bool = False,
        fail_status: bool = False,
        omit_token: bool = False,
        failure_http_status: int = 503,
    ):
        self.fail_create = fail_create
        self.fail_status = fail_status
        self.omit_token = omit_token
        self.failure_http_status = failure_http_status

        self._lock = Lock()
        self._transactions: dict[str, dict[str, Any]] = {}
        self.create_calls: list[dict[str, Any]] = []
        self.status_calls: list[str] = []

    def create_transaction(self, payload: dict[str, Any]) -> SnapResult:
        order_id = str((payload.get("transaction_details") or {}).get("order_id") or "")
        with self._lock:
            self.create_calls.append(payload)

            if self.fail_create:
                return SnapResult(
                    ok=False,
                    response={"http_status": self.failure_http_status, "mock": True},
                    error="Service unavailable",
                    http_status=self.failure_http_status,
                )

            if self.omit_token:
                return SnapResult(ok=True, response={"http_status": 201, "mock": True}, http_status=201)

            token = f"mock-{uuid.uuid4()}"
            tx = {
                "order_id": order_id,
                "token": token,
                "redirect_url": f"https://app.sandbox.midtrans.com/snap/v2/vtweb/{token}",
                "transaction_status": "pending",
                "gross_amount": (payload.get("transaction_details") or {}).get("gross_amount"),
            }
            self._transactions[order_id] = tx
            return SnapResult(
                ok=True,
                token=tx["token"],
                redirect_url=tx["redirect_url"],
                response={"http_status": 201, "mock": True},
                http_status=201,
            )

    def get_status(self, order_id: str) -> StatusResult:
        with self._lock:
            self.status_calls.append(order_id)

            if self.fail_status:
                return StatusResult(
                    found=False,
                    order_id=order_id,
                    error="Server error",
                    http_status=self.failure_http_status,
                )

            tx = self._transactions.get(order_id)
            if tx is None:
                return StatusResult(found=False, order_id=order_id, http_status=404)

            raw = {
                "order_id": order_id,
                "transaction_status": tx["transaction_status"],
                "fraud_status": tx.get("fraud_status"),
                "gross_amount": tx.get("gross_amount"),
                "status_code": "200",
                "mock": True,
            }
            return StatusResult(
                found=True,
                order_id=order_id,
                transaction_status=tx["transaction_status"],
                fraud_status=tx.get("fraud_status"),
                token=tx.get("token"),
                redirect_url=tx.get("redirect_url"),
                raw=raw,
                http_status=200,
            )

    def set_status(self, order_id: str, transaction_status: str, *, fraud_status: Optional[str] = None) -> None:
        with self._lock:
            tx = self._transactions.setdefault(order_id, {"order_id": order_id})
            tx["transaction_status"] = transaction_status
            if fraud_status is not None:
                tx["fraud_status"] = fraud_status

    def seed(self, order_id: str, *, token: Optional[str], redirect_url: Optional[str], transaction_status: str = "pending") -> None:
        """Register a transaction that exists at the provider but not locally."""
        with self._lock:
            self._transactions[order_id] = {
                "order_id": order_id,
                "token": token,
                "redirect_url": redirect_url,
                "transaction_status": transaction_status,
            }
