# app/payments/status_mapper.py
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Literal, Optional

Status = Literal["pending", "confirmed", "cancelled"]
PaymentStatus = Literal["unpaid", "success", "failed"]
BillingStatus = Literal["unpaid", "success", "failed"]


@dataclass(frozen=True)
class PaymentState:
    """
    The status triple replicated on order, billing statement, transaction
    and booking.
    """

    status: Status
    payment_status: PaymentStatus
    billing_status: BillingStatus

    def as_fields(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: dict) -> Optional["PaymentState"]:
        status = record.get("status")
        payment_status = record.get("payment_status")
        billing_status = record.get("billing_status")
        if not (status and payment_status and billing_status):
            return None
        return cls(status=status, payment_status=payment_status, billing_status=billing_status)


CONFIRMED = PaymentState(status="confirmed", payment_status="success", billing_status="success")
PENDING = PaymentState(status="pending", payment_status="unpaid", billing_status="unpaid")
CANCELLED = PaymentState(status="cancelled", payment_status="failed", billing_status="failed")

# provider transaction_status -> domain state
STATUS_MAP: dict[str, PaymentState] = {
    "capture": CONFIRMED,
    "settlement": CONFIRMED,
    "pending": PENDING,
    "cancel": CANCELLED,
    "deny": CANCELLED,
    "expire": CANCELLED,
}

INITIAL_STATE = STATUS_MAP["pending"]


def map_provider_status(provider_status: str | None) -> Optional[PaymentState]:
    """
    None means the provider status is not one we act on (e.g. refund,
    authorize); callers must leave stored state unchanged.
    """
    key = (provider_status or "").strip().lower()
    return STATUS_MAP.get(key)
