# app/payments/reconcile.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal, Optional

from app.payments.state_machine import InvalidTransition, assert_transition
from app.payments.status_mapper import PaymentState, map_provider_status
from app.store.base import (
    BILLING_STATEMENTS,
    BOOKINGS,
    ORDERS,
    TRANSACTIONS,
    DocumentMissing,
    DocumentStore,
    PreconditionFailed,
    Write,
)
from services.errors import ConcurrentUpdate, RecordNotFound
from services.metrics import increment_reconcile


logger = logging.getLogger("klinikpay.reconcile")

Outcome = Literal["applied", "unchanged", "stale", "unrecognized"]
Source = Literal["webhook", "poll"]

MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class RecordSet:
    transaction: dict[str, Any]
    order: dict[str, Any]
    billing_statement: dict[str, Any]
    booking: dict[str, Any]

    @property
    def booking_id(self) -> str:
        return str(self.order["booking_id"])

    def all(self) -> tuple[dict[str, Any], ...]:
        return (self.transaction, self.order, self.billing_statement, self.booking)


@dataclass(frozen=True)
class ReconcileResult:
    order_id: str
    outcome: Outcome
    provider_status: str
    state: Optional[PaymentState]
    previous: Optional[PaymentState]

    @property
    def changed(self) -> bool:
        return self.outcome == "applied"


class ReconciliationCoordinator:
    """
    Single writer of the status triple on the four records of an order.

    Both ingestion paths call `reconcile`; nothing else updates status,
    payment_status or billing_status after creation.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def load(self, order_id: str) -> RecordSet:
        """
        Read transaction, order, billing statement and booking, failing with
        a kind-specific RecordNotFound before anything is written.
        """
        transaction = self.store.get(TRANSACTIONS, order_id)
        if transaction is None:
            raise RecordNotFound("transaction", order_id)

        order = self.store.get(ORDERS, order_id)
        if order is None:
            raise RecordNotFound("order", order_id)

        billing = self.store.get(BILLING_STATEMENTS, order_id)
        if billing is None:
            raise RecordNotFound("billing_statement", order_id)

        booking_id = order.get("booking_id")
        booking = self.store.get(BOOKINGS, str(booking_id)) if booking_id else None
        if booking is None:
            raise RecordNotFound("booking", str(booking_id or ""))

        return RecordSet(transaction=transaction, order=order, billing_statement=billing, booking=booking)

    def reconcile(
        self,
        order_id: str,
        provider_status: str,
        provider_payload: Optional[dict[str, Any]] = None,
        *,
        source: Source = "webhook",
    ) -> ReconcileResult:
        target = map_provider_status(provider_status)

        for attempt in range(1, MAX_ATTEMPTS + 1):
            records = self.load(order_id)
            previous = PaymentState.from_record(records.transaction)
            current_status = records.transaction.get("status")

            if target is None:
                return self._finish(order_id, "unrecognized", provider_status, previous, previous, source)

            try:
                assert_transition(current_status, target.status)
            except InvalidTransition:
                # an older or contradicting event after a terminal state; stored state wins
                logger.warning(
                    "reconcile_stale order_id=%s source=%s stored=%s provider_status=%s",
                    order_id,
                    source,
                    current_status,
                    provider_status,
                )
                return self._finish(order_id, "stale", provider_status, previous, previous, source)

            if all(PaymentState.from_record(r) == target for r in records.all()):
                if provider_payload and provider_payload != records.transaction.get("provider_payload"):
                    # triple already in place; only the latest raw payload is kept
                    try:
                        self.store.commit(
                            [
                                Write.update(
                                    TRANSACTIONS,
                                    order_id,
                                    {"provider_payload": provider_payload},
                                    expect={"status": current_status},
                                )
                            ]
                        )
                    except PreconditionFailed:
                        continue
                return self._finish(order_id, "unchanged", provider_status, target, previous, source)

            writes = self._build_writes(order_id, records, target, provider_payload, expected_status=current_status)
            try:
                self.store.commit(writes)
            except PreconditionFailed as exc:
                # another reconciliation committed between our read and write
                logger.info(
                    "reconcile_retry order_id=%s source=%s attempt=%s reason=%s",
                    order_id,
                    source,
                    attempt,
                    exc,
                )
                continue
            except DocumentMissing as exc:
                raise RecordNotFound(_kind_for(exc.collection), exc.doc_id) from exc

            return self._finish(order_id, "applied", provider_status, target, previous, source)

        raise ConcurrentUpdate(f"order {order_id!r} kept changing during reconciliation")

    @staticmethod
    def _build_writes(
        order_id: str,
        records: RecordSet,
        target: PaymentState,
        provider_payload: Optional[dict[str, Any]],
        *,
        expected_status: Optional[str],
    ) -> list[Write]:
        fields = target.as_fields()
        return [
            Write.update(
                TRANSACTIONS,
                order_id,
                {**fields, "provider_payload": provider_payload or {}},
                expect={"status": expected_status},
            ),
            Write.update(ORDERS, order_id, fields),
            Write.update(BILLING_STATEMENTS, order_id, fields),
            Write.update(BOOKINGS, records.booking_id, fields),
        ]

    @staticmethod
    def _finish(
        order_id: str,
        outcome: Outcome,
        provider_status: str,
        state: Optional[PaymentState],
        previous: Optional[PaymentState],
        source: Source,
    ) -> ReconcileResult:
        increment_reconcile(source, outcome)
        logger.info(
            "reconcile order_id=%s source=%s provider_status=%s outcome=%s status=%s",
            order_id,
            source,
            provider_status,
            outcome,
            state.status if state else None,
        )
        return ReconcileResult(
            order_id=order_id,
            outcome=outcome,
            provider_status=provider_status,
            state=state,
            previous=previous,
        )


def _kind_for(collection: str) -> str:
    return {
        TRANSACTIONS: "transaction",
        ORDERS: "order",
        BILLING_STATEMENTS: "billing_statement",
        BOOKINGS: "booking",
    }.get(collection, collection)
