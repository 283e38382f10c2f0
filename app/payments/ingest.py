# app/payments/ingest.py
from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any, Optional

from app.payments.gateway import TransactionGateway
from app.payments.reconcile import ReconcileResult, ReconciliationCoordinator
from app.store.base import BILLING_STATEMENTS, BOOKINGS, ORDERS, TRANSACTIONS, DocumentStore
from services.errors import (
    AccessDenied,
    ConcurrentUpdate,
    InvalidSignature,
    PayloadValidationError,
    ProviderError,
    ProviderNotFound,
    RecordNotFound,
)
from services.metrics import increment_webhook_event
from services.redaction import redact_dict


logger = logging.getLogger("klinikpay.ingest")


def notification_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def _unwrap_payload(payload: Any) -> Any:
    """
    Some relays wrap payloads like {"data": {...}}.
    """
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict) and "order_id" not in payload:
        return payload["data"]
    return payload


class WebhookIngestor:
    """
    Push path: provider notification -> reconcile.

    Every reconcile outcome (including a no-op or a stale event) is
    acknowledged so the provider stops re-delivering; a missing record is an
    error so the provider retries later.
    """

    def __init__(self, coordinator: ReconciliationCoordinator, *, server_key: str = "", verify_signature: bool = True):
        self.coordinator = coordinator
        self.server_key = server_key
        self.verify_signature = verify_signature

    def verify(self, notification: dict[str, Any]) -> None:
        if not self.verify_signature:
            return
        if not self.server_key:
            increment_webhook_event(False, "secret_not_configured")
            raise InvalidSignature(code="WEBHOOK_SECRET_NOT_CONFIGURED")

        signature = str(notification.get("signature_key") or "").strip()
        if not signature:
            increment_webhook_event(False, "missing_signature")
            raise InvalidSignature(code="MISSING_SIGNATURE")

        expected = notification_signature(
            str(notification.get("order_id") or ""),
            str(notification.get("status_code") or ""),
            str(notification.get("gross_amount") or ""),
            self.server_key,
        )
        if not hmac.compare_digest(expected, signature.lower()):
            increment_webhook_event(False, "invalid_signature")
            raise InvalidSignature()

    def handle(self, payload: Any) -> ReconcileResult:
        notification = _unwrap_payload(payload)
        if not isinstance(notification, dict):
            raise PayloadValidationError("notification body must be a JSON object")

        self.verify(notification)

        order_id = str(notification.get("order_id") or "").strip()
        transaction_status = str(notification.get("transaction_status") or "").strip()
        if not order_id or not transaction_status:
            increment_webhook_event(True, "invalid_payload")
            raise PayloadValidationError("order_id and transaction_status are required")

        logger.info(
            "notification_received order_id=%s transaction_status=%s fraud_status=%s payload=%s",
            order_id,
            transaction_status,
            notification.get("fraud_status"),
            redact_dict(notification),
        )

        try:
            result = self.coordinator.reconcile(order_id, transaction_status, notification, source="webhook")
        except RecordNotFound:
            increment_webhook_event(True, "record_not_found")
            raise

        increment_webhook_event(True, result.outcome)
        return result


@dataclass(frozen=True)
class StatusView:
    order_id: str
    status: Optional[str]
    payment_status: Optional[str]
    billing_status: Optional[str]
    is_local_status: bool
    order: Optional[dict[str, Any]]
    billing_statement: Optional[dict[str, Any]]
    booking: Optional[dict[str, Any]]
    transaction: dict[str, Any]


class StatusPoller:
    """
    Pull path: ask the provider for the live status when the transaction is
    linked to one, reconcile, then answer from a fresh read of the store.
    Provider failures fall back to the stored state.
    """

    def __init__(self, store: DocumentStore, gateway: TransactionGateway, coordinator: ReconciliationCoordinator):
        self.store = store
        self.gateway = gateway
        self.coordinator = coordinator

    def check(self, order_id: str, user_id: str) -> StatusView:
        transaction = self.store.get(TRANSACTIONS, order_id)
        if transaction is None:
            raise RecordNotFound("transaction", order_id)
        if transaction.get("user_id") != user_id:
            raise AccessDenied(f"transaction {order_id} belongs to another user")

        if self.store.get(ORDERS, order_id) is None:
            raise RecordNotFound("order", order_id)

        is_local = True
        if transaction.get("token"):
            try:
                live = self.gateway.query_status(order_id)
                self.coordinator.reconcile(order_id, live.transaction_status or "", live.raw, source="poll")
                is_local = False
            except (ProviderError, ProviderNotFound, RecordNotFound, ConcurrentUpdate) as exc:
                logger.warning("status_check_fallback order_id=%s code=%s err=%s", order_id, exc.code, exc)

        return self._view(order_id, is_local=is_local)

    def _view(self, order_id: str, *, is_local: bool) -> StatusView:
        transaction = self.store.get(TRANSACTIONS, order_id)
        if transaction is None:
            raise RecordNotFound("transaction", order_id)
        order = self.store.get(ORDERS, order_id)
        billing = self.store.get(BILLING_STATEMENTS, order_id)
        booking_id = (order or {}).get("booking_id")
        booking = self.store.get(BOOKINGS, str(booking_id)) if booking_id else None
        if booking is not None and booking.get("user_id") != transaction.get("user_id"):
            booking = None

        return StatusView(
            order_id=order_id,
            status=transaction.get("status"),
            payment_status=transaction.get("payment_status"),
            billing_status=transaction.get("billing_status"),
            is_local_status=is_local,
            order=order,
            billing_statement=billing,
            booking=booking,
            transaction=transaction,
        )
