# app/providers/base.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol


@dataclass(frozen=True)
class SnapResult:
    """
    Outcome of a create-transaction call.
    ok=True only when the provider answered 2xx; token/redirect_url may
    still be missing and must be checked by the caller.
    """

    ok: bool
    token: Optional[str] = None
    redirect_url: Optional[str] = None
    response: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    http_status: Optional[int] = None

    # None => let the gateway classify from http_status
    retryable: Optional[bool] = None


@dataclass(frozen=True)
class StatusResult:
    """
    Outcome of a status query.
    found=False with error=None is the normal "no such transaction" answer.
    """

    found: bool
    order_id: str
    transaction_status: Optional[str] = None
    fraud_status: Optional[str] = None
    token: Optional[str] = None
    redirect_url: Optional[str] = None
    raw: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    http_status: Optional[int] = None
    retryable: Optional[bool] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class PaymentProvider(Protocol):
    name: str

    def create_transaction(self, payload: dict[str, Any]) -> SnapResult: ...
    def get_status(self, order_id: str) -> StatusResult: ...
