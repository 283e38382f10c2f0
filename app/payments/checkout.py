# app/payments/checkout.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from app.payments.gateway import SnapToken, TransactionGateway
from app.payments.status_mapper import INITIAL_STATE
from app.store.base import BILLING_STATEMENTS, BOOKINGS, ORDERS, TRANSACTIONS, DocumentStore, Write
from services.errors import AccessDenied, ProviderError, RecordNotFound


logger = logging.getLogger("klinikpay.checkout")


@dataclass(frozen=True)
class CheckoutRequest:
    order_id: str
    booking_id: str
    amount: int
    user_id: str
    customer_details: dict[str, Any]
    payment_type: Optional[str] = None


@dataclass(frozen=True)
class CheckoutResult:
    order: dict[str, Any]
    billing_statement: dict[str, Any]
    transaction: dict[str, Any]
    snap: SnapToken


class CheckoutService:
    """
    Create-or-reuse flow: order and billing statement are created if
    absent, then the gateway links a provider transaction. When the provider
    step fails, records created by this call are deleted again.
    """

    def __init__(self, store: DocumentStore, gateway: TransactionGateway):
        self.store = store
        self.gateway = gateway

    def create_or_reuse(self, req: CheckoutRequest) -> CheckoutResult:
        self._check_booking(req)
        order, created_order = self._ensure_order(req)
        billing, created_billing = self._ensure_billing(req)

        existing_tx = self.store.get(TRANSACTIONS, req.order_id)
        if existing_tx is not None and existing_tx.get("user_id") != req.user_id:
            raise AccessDenied(f"transaction {req.order_id} belongs to another user")

        try:
            snap = self.gateway.ensure_transaction(
                req.order_id,
                req.amount,
                req.customer_details,
                req.payment_type,
                booking_id=req.booking_id,
                user_id=req.user_id,
            )
        except ProviderError:
            self._compensate(req.order_id, created_order=created_order, created_billing=created_billing)
            raise

        transaction = self.store.get(TRANSACTIONS, req.order_id)
        if transaction is None:
            raise RecordNotFound("transaction", req.order_id)

        logger.info(
            "checkout order_id=%s created_order=%s created_billing=%s provider_created=%s",
            req.order_id,
            created_order,
            created_billing,
            snap.created,
        )
        return CheckoutResult(order=order, billing_statement=billing, transaction=transaction, snap=snap)

    def payment_url(self, order_id: str, user_id: str) -> SnapToken:
        transaction = self.store.get(TRANSACTIONS, order_id)
        if transaction is None:
            raise RecordNotFound("transaction", order_id)
        if transaction.get("user_id") != user_id:
            raise AccessDenied(f"transaction {order_id} belongs to another user")

        if transaction.get("token"):
            return SnapToken(token=transaction["token"], redirect_url=transaction.get("redirect_url") or "")

        order = self.store.get(ORDERS, order_id)
        if order is None:
            raise RecordNotFound("order", order_id)

        return self.gateway.ensure_transaction(
            order_id,
            order.get("amount") or transaction.get("amount") or 0,
            transaction.get("customer_details") or {},
            transaction.get("payment_type"),
            booking_id=str(order.get("booking_id") or transaction.get("booking_id") or ""),
            user_id=user_id,
        )

    def _check_booking(self, req: CheckoutRequest) -> None:
        """
        The booking must exist and belong to the caller; checked before any
        record is created or the provider is called.
        """
        booking = self.store.get(BOOKINGS, req.booking_id)
        if booking is None:
            raise RecordNotFound("booking", req.booking_id)
        if booking.get("user_id") != req.user_id:
            raise AccessDenied(f"booking {req.booking_id} belongs to another user")

    def _ensure_order(self, req: CheckoutRequest) -> tuple[dict[str, Any], bool]:
        data = {
            "order_id": req.order_id,
            "booking_id": req.booking_id,
            "amount": req.amount,
            "user_id": req.user_id,
            **INITIAL_STATE.as_fields(),
        }
        created = self.store.create(ORDERS, req.order_id, data)
        order = self.store.get(ORDERS, req.order_id)
        if order is None:
            raise RecordNotFound("order", req.order_id)
        if order.get("user_id") != req.user_id:
            raise AccessDenied(f"order {req.order_id} belongs to another user")
        return order, created

    def _ensure_billing(self, req: CheckoutRequest) -> tuple[dict[str, Any], bool]:
        data = {
            "order_id": req.order_id,
            "booking_id": req.booking_id,
            "amount": req.amount,
            "user_id": req.user_id,
            **INITIAL_STATE.as_fields(),
        }
        created = self.store.create(BILLING_STATEMENTS, req.order_id, data)
        billing = self.store.get(BILLING_STATEMENTS, req.order_id)
        if billing is None:
            raise RecordNotFound("billing_statement", req.order_id)
        return billing, created

    def _compensate(self, order_id: str, *, created_order: bool, created_billing: bool) -> None:
        writes = []
        if created_order:
            writes.append(Write.delete(ORDERS, order_id))
        if created_billing:
            writes.append(Write.delete(BILLING_STATEMENTS, order_id))
        if not writes:
            return
        self.store.commit(writes)
        logger.warning(
            "checkout_compensated order_id=%s deleted_order=%s deleted_billing=%s",
            order_id,
            created_order,
            created_billing,
        )
