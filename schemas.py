# schemas.py
from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

AMOUNT_MIN = 1_000
AMOUNT_MAX = 10_000_000


# -------- ENVELOPE --------
class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ErrorInfo(BaseModel):
    type: str
    code: str
    details: Optional[Any] = None


class ErrorEnvelope(BaseModel):
    success: bool = False
    message: str
    error: ErrorInfo
    request_id: Optional[str] = None
    path: Optional[str] = None
    method: Optional[str] = None
    timestamp: str


# -------- CHECKOUT --------
class CustomerDetails(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, max_length=254)
    phone: Optional[str] = Field(default=None, max_length=20)


class CreateTransactionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booking_id: str = Field(min_length=3, max_length=50, validation_alias=AliasChoices("booking_id", "bookingId"))
    order_id: str = Field(
        min_length=3,
        max_length=50,
        pattern=r"^[A-Za-z0-9\-_.~]+$",
        validation_alias=AliasChoices("order_id", "orderId"),
    )
    amount: int = Field(ge=AMOUNT_MIN, le=AMOUNT_MAX)
    customer_details: CustomerDetails = Field(validation_alias=AliasChoices("customer_details", "customerDetails"))
    payment_type: Optional[str] = Field(
        default=None,
        max_length=32,
        validation_alias=AliasChoices("payment_type", "paymentType"),
    )


# -------- RECORDS --------
class RecordOut(BaseModel):
    """Stored documents are returned as-is; extra fields pass through."""

    model_config = ConfigDict(extra="allow")

    order_id: Optional[str] = None
    booking_id: Optional[str] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None
    billing_status: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CheckoutOut(BaseModel):
    order: RecordOut
    billing_statement: RecordOut
    transaction: RecordOut


class PaymentUrlOut(BaseModel):
    order_id: str
    token: str
    redirect_url: str


class TransactionStatusOut(BaseModel):
    order_id: str
    status: Optional[str] = None
    payment_status: Optional[str] = None
    billing_status: Optional[str] = None
    is_local_status: bool


class StatusCheckOut(BaseModel):
    transaction: TransactionStatusOut
    order: Optional[RecordOut] = None
    billing_statement: Optional[RecordOut] = None
    booking: Optional[RecordOut] = None


class OrderDetailOut(BaseModel):
    transaction: RecordOut
    billing_statement: Optional[RecordOut] = None


# -------- NOTIFICATIONS --------
class NotificationAck(BaseModel):
    order_id: str
    transaction_status: str
    outcome: str
    status: Optional[str] = None


# -------- BOOKINGS --------
class CreateBookingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    doctor_id: str = Field(min_length=1, max_length=64, validation_alias=AliasChoices("doctor_id", "doctorId"))
    appointment_date: str = Field(
        pattern=r"^\d{4}-\d{2}-\d{2}$",
        validation_alias=AliasChoices("appointment_date", "appointmentDate"),
    )
    appointment_time: str = Field(
        pattern=r"^\d{2}:\d{2}$",
        validation_alias=AliasChoices("appointment_time", "appointmentTime"),
    )
    service_type: str = Field(min_length=1, max_length=64, validation_alias=AliasChoices("service_type", "serviceType"))
    notes: Optional[str] = Field(default=None, max_length=500)
