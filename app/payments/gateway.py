# app/payments/gateway.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from app.payments.status_mapper import INITIAL_STATE
from app.providers.base import PaymentProvider, SnapResult, StatusResult
from app.providers.http import is_retryable_http
from app.store.base import TRANSACTIONS, DocumentStore, PreconditionFailed, Write
from services.errors import InvalidProviderResponse, ProviderError, ProviderNotFound
from services.metrics import increment_provider_call


logger = logging.getLogger("klinikpay.gateway")

VALID_PAYMENT_TYPES = (
    "credit_card",
    "mandiri_clickpay",
    "cimb_clicks",
    "bca_klikbca",
    "bca_klikpay",
    "bri_epay",
    "echannel",
    "permata_va",
    "bca_va",
    "bni_va",
    "other_va",
    "gopay",
    "indomaret",
    "shopeepay",
)

DEFAULT_CUSTOMER_NAME = "Customer"
DEFAULT_CUSTOMER_EMAIL = "customer@example.com"
DEFAULT_CUSTOMER_PHONE = "08123456789"


@dataclass(frozen=True)
class SnapToken:
    token: str
    redirect_url: str
    # True when this call created the provider transaction
    created: bool = False


def build_snap_payload(
    order_id: str,
    amount: int | float | str,
    customer_details: Optional[dict[str, Any]],
    payment_type: Optional[str] = None,
    *,
    booking_id: Optional[str] = None,
    item_name: str = "Medical Consultation",
) -> dict[str, Any]:
    gross_amount = int(float(amount))
    customer = customer_details or {}

    payload: dict[str, Any] = {
        "transaction_details": {
            "order_id": order_id,
            "gross_amount": gross_amount,
        },
        "customer_details": {
            "first_name": customer.get("name") or DEFAULT_CUSTOMER_NAME,
            "email": customer.get("email") or DEFAULT_CUSTOMER_EMAIL,
            "phone": customer.get("phone") or DEFAULT_CUSTOMER_PHONE,
        },
    }

    if booking_id:
        payload["item_details"] = [
            {
                "id": booking_id,
                "price": gross_amount,
                "quantity": 1,
                "name": item_name,
            }
        ]

    hint = (payment_type or "").strip()
    if hint and hint != "all":
        if hint in VALID_PAYMENT_TYPES:
            payload["enabled_payments"] = [hint]
        else:
            logger.warning("invalid payment_type=%s order_id=%s, allowing all payment methods", hint, order_id)

    return payload


class TransactionGateway:
    """
    Owns provider-side transaction creation and status lookups.

    Creation is create-if-absent per order_id: a token already stored
    locally or known to the provider is reused, never replaced.
    """

    def __init__(self, provider: PaymentProvider, store: DocumentStore, *, item_name: str = "Medical Consultation"):
        self.provider = provider
        self.store = store
        self.item_name = item_name

    def query_status(self, order_id: str) -> StatusResult:
        result = self.provider.get_status(order_id)
        if result.failed:
            increment_provider_call("status", "error")
            retryable = result.retryable
            if retryable is None and result.http_status is not None:
                retryable = is_retryable_http(result.http_status)
            raise ProviderError(
                f"status lookup failed for {order_id}: {result.error}",
                http_status=result.http_status,
                retryable=retryable,
            )
        if not result.found:
            increment_provider_call("status", "not_found")
            raise ProviderNotFound(f"no provider transaction for {order_id}")
        increment_provider_call("status", "ok")
        return result

    def ensure_transaction(
        self,
        order_id: str,
        amount: int | float | str,
        customer_details: Optional[dict[str, Any]],
        payment_type: Optional[str] = None,
        *,
        booking_id: str,
        user_id: str,
    ) -> SnapToken:
        local = self.store.get(TRANSACTIONS, order_id)
        if local and local.get("token"):
            return SnapToken(token=local["token"], redirect_url=local.get("redirect_url") or "")

        snap = self._find_or_create(order_id, amount, customer_details, payment_type, booking_id=booking_id)
        return self._persist(
            snap,
            order_id=order_id,
            amount=amount,
            customer_details=customer_details,
            payment_type=payment_type,
            booking_id=booking_id,
            user_id=user_id,
        )

    def _find_or_create(
        self,
        order_id: str,
        amount: int | float | str,
        customer_details: Optional[dict[str, Any]],
        payment_type: Optional[str],
        *,
        booking_id: str,
    ) -> SnapToken:
        try:
            existing = self.query_status(order_id)
        except ProviderNotFound:
            # expected for a new order
            existing = None

        if existing is not None:
            logger.info("provider transaction exists order_id=%s, reusing", order_id)
            if not existing.token or not existing.redirect_url:
                raise InvalidProviderResponse(
                    f"provider transaction {order_id} exists but carries no token or redirect URL"
                )
            return SnapToken(token=existing.token, redirect_url=existing.redirect_url)

        payload = build_snap_payload(
            order_id,
            amount,
            customer_details,
            payment_type,
            booking_id=booking_id,
            item_name=self.item_name,
        )
        logger.info("creating provider transaction order_id=%s gross_amount=%s", order_id, payload["transaction_details"]["gross_amount"])
        result = self.provider.create_transaction(payload)
        return self._token_from(result, order_id)

    @staticmethod
    def _token_from(result: SnapResult, order_id: str) -> SnapToken:
        if not result.ok:
            increment_provider_call("create", "error")
            retryable = result.retryable
            if retryable is None and result.http_status is not None:
                retryable = is_retryable_http(result.http_status)
            raise ProviderError(
                f"create failed for {order_id}: {result.error}",
                http_status=result.http_status,
                retryable=True if retryable is None else retryable,
            )
        if not result.token or not result.redirect_url:
            increment_provider_call("create", "invalid")
            raise InvalidProviderResponse(f"create response for {order_id} is missing token or redirect URL")
        increment_provider_call("create", "ok")
        return SnapToken(token=result.token, redirect_url=result.redirect_url, created=True)

    def _persist(
        self,
        snap: SnapToken,
        *,
        order_id: str,
        amount: int | float | str,
        customer_details: Optional[dict[str, Any]],
        payment_type: Optional[str],
        booking_id: str,
        user_id: str,
    ) -> SnapToken:
        record = {
            "order_id": order_id,
            "booking_id": booking_id,
            "amount": int(float(amount)),
            "user_id": user_id,
            "customer_details": dict(customer_details or {}),
            "payment_type": payment_type or None,
            **INITIAL_STATE.as_fields(),
            "token": snap.token,
            "redirect_url": snap.redirect_url,
            "provider_payload": None,
        }
        if self.store.create(TRANSACTIONS, order_id, record):
            return snap

        # record exists without a token: set it once, never over a token
        try:
            self.store.commit(
                [
                    Write.update(
                        TRANSACTIONS,
                        order_id,
                        {"token": snap.token, "redirect_url": snap.redirect_url},
                        expect={"token": None},
                    )
                ]
            )
            return snap
        except PreconditionFailed:
            stored = self.store.get(TRANSACTIONS, order_id) or {}
            logger.info("token already stored order_id=%s, keeping stored token", order_id)
            return SnapToken(token=stored["token"], redirect_url=stored.get("redirect_url") or "")
