# services/errors.py
from __future__ import annotations

from typing import Any


ERROR_HTTP_MAP: dict[str, tuple[int, str]] = {
    "TRANSACTION_NOT_FOUND": (404, "Transaction not found"),
    "ORDER_NOT_FOUND": (404, "Order not found"),
    "BILLING_STATEMENT_NOT_FOUND": (404, "Billing statement not found"),
    "BOOKING_NOT_FOUND": (404, "Booking not found"),
    "PROVIDER_TRANSACTION_NOT_FOUND": (404, "Payment transaction not found at provider"),
    "ACCESS_DENIED": (403, "Access denied"),
    "PAYMENT_PROVIDER_ERROR": (502, "Payment service error"),
    "INVALID_PROVIDER_RESPONSE": (502, "Invalid payment provider response"),
    "INVALID_SIGNATURE": (401, "Invalid notification signature"),
    "MISSING_SIGNATURE": (401, "Missing notification signature"),
    "WEBHOOK_SECRET_NOT_CONFIGURED": (500, "Notification verification is not configured"),
    "VALIDATION_ERROR": (400, "Validation error"),
    "CONCURRENT_UPDATE": (409, "Record was modified concurrently"),
    "INTERNAL_ERROR": (500, "Internal server error"),
}


class PaymentError(Exception):
    """
    Base class for errors surfaced to API callers.

    `code` selects the HTTP status and public message from ERROR_HTTP_MAP;
    the exception message is the developer-facing detail.
    """

    code = "INTERNAL_ERROR"
    retryable = False

    def __init__(self, detail: str | None = None, *, code: str | None = None, context: dict[str, Any] | None = None):
        if code:
            self.code = code
        self.detail = detail or ERROR_HTTP_MAP.get(self.code, (500, self.code))[1]
        self.context = context or {}
        super().__init__(self.detail)

    @property
    def status_code(self) -> int:
        return ERROR_HTTP_MAP.get(self.code, (500, ""))[0]

    @property
    def message(self) -> str:
        return ERROR_HTTP_MAP.get(self.code, (500, "Internal server error"))[1]


class RecordNotFound(PaymentError):
    # kind -> code; callers use the distinct codes to tell a bad order_id
    # apart from a race with record creation
    KIND_CODES = {
        "transaction": "TRANSACTION_NOT_FOUND",
        "order": "ORDER_NOT_FOUND",
        "billing_statement": "BILLING_STATEMENT_NOT_FOUND",
        "booking": "BOOKING_NOT_FOUND",
    }

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(
            f"{kind} {key!r} not found",
            code=self.KIND_CODES.get(kind, "ORDER_NOT_FOUND"),
            context={"kind": kind, "key": key},
        )


class AccessDenied(PaymentError):
    code = "ACCESS_DENIED"


class ProviderError(PaymentError):
    code = "PAYMENT_PROVIDER_ERROR"
    retryable = True

    def __init__(self, detail: str | None = None, *, http_status: int | None = None, retryable: bool | None = None, **kwargs):
        super().__init__(detail, **kwargs)
        self.http_status = http_status
        if retryable is not None:
            self.retryable = retryable


class InvalidProviderResponse(ProviderError):
    code = "INVALID_PROVIDER_RESPONSE"
    retryable = False


class ProviderNotFound(PaymentError):
    code = "PROVIDER_TRANSACTION_NOT_FOUND"


class InvalidSignature(PaymentError):
    code = "INVALID_SIGNATURE"


class PayloadValidationError(PaymentError):
    code = "VALIDATION_ERROR"


class ConcurrentUpdate(PaymentError):
    code = "CONCURRENT_UPDATE"
    retryable = True


def error_code_for_status(status_code: int) -> str:
    """
    Fallback code for plain HTTPExceptions raised by framework code.
    """
    return {
        400: "VALIDATION_ERROR",
        401: "UNAUTHORIZED",
        403: "ACCESS_DENIED",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        429: "RATE_LIMITED",
    }.get(status_code, "INTERNAL_ERROR" if status_code >= 500 else "HTTP_ERROR")
