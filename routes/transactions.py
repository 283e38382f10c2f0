# routes/transactions.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from app.payments.checkout import CheckoutRequest
from app.store.base import BILLING_STATEMENTS, TRANSACTIONS
from deps.auth import CurrentUser, get_current_user
from deps.services import Services, get_services
from rate_limit import rate_limit_enabled, rate_limit_or_429
from schemas import (
    CheckoutOut,
    CreateTransactionRequest,
    Envelope,
    OrderDetailOut,
    PaymentUrlOut,
    RecordOut,
    StatusCheckOut,
    TransactionStatusOut,
)
from services.errors import AccessDenied, RecordNotFound
from settings import settings

router = APIRouter(prefix="/v1", tags=["transactions"])

OrderId = Path(min_length=1, max_length=50)


def _record(doc: dict | None) -> RecordOut | None:
    if doc is None:
        return None
    return RecordOut.model_validate(doc)


def status_check_rate_limit(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if rate_limit_enabled():
        rate_limit_or_429(
            key=f"status-check:{user.user_id}",
            limit=settings.STATUS_CHECK_LIMIT,
            window_seconds=settings.STATUS_CHECK_WINDOW_S,
            message="Too many status check requests, please wait",
        )
    return user


def _create(body: CreateTransactionRequest, user: CurrentUser, services: Services) -> Envelope[CheckoutOut]:
    result = services.checkout.create_or_reuse(
        CheckoutRequest(
            order_id=body.order_id,
            booking_id=body.booking_id,
            amount=body.amount,
            user_id=user.user_id,
            customer_details=body.customer_details.model_dump(),
            payment_type=body.payment_type,
        )
    )
    return Envelope[CheckoutOut](
        data=CheckoutOut(
            order=_record(result.order),
            billing_statement=_record(result.billing_statement),
            transaction=_record(result.transaction),
        )
    )


@router.post("/transactions", status_code=201, response_model=Envelope[CheckoutOut])
def create_transaction(
    body: CreateTransactionRequest,
    user: CurrentUser = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return _create(body, user, services)


@router.post("/create-transaction", status_code=201, response_model=Envelope[CheckoutOut], include_in_schema=False)
def create_transaction_legacy(
    body: CreateTransactionRequest,
    user: CurrentUser = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return _create(body, user, services)


def _check_status(order_id: str, user: CurrentUser, services: Services) -> Envelope[StatusCheckOut]:
    view = services.poller.check(order_id, user.user_id)
    return Envelope[StatusCheckOut](
        data=StatusCheckOut(
            transaction=TransactionStatusOut(
                order_id=view.order_id,
                status=view.status,
                payment_status=view.payment_status,
                billing_status=view.billing_status,
                is_local_status=view.is_local_status,
            ),
            order=_record(view.order),
            billing_statement=_record(view.billing_statement),
            booking=_record(view.booking),
        )
    )


@router.get("/transactions/{order_id}/status", response_model=Envelope[StatusCheckOut])
def check_status(
    order_id: str = OrderId,
    user: CurrentUser = Depends(status_check_rate_limit),
    services: Services = Depends(get_services),
):
    return _check_status(order_id, user, services)


@router.get("/check-status/{order_id}", response_model=Envelope[StatusCheckOut], include_in_schema=False)
def check_status_legacy(
    order_id: str = OrderId,
    user: CurrentUser = Depends(status_check_rate_limit),
    services: Services = Depends(get_services),
):
    return _check_status(order_id, user, services)


@router.get("/transactions/{order_id}/payment-url", response_model=Envelope[PaymentUrlOut])
def payment_url(
    order_id: str = OrderId,
    user: CurrentUser = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    snap = services.checkout.payment_url(order_id, user.user_id)
    return Envelope[PaymentUrlOut](data=PaymentUrlOut(order_id=order_id, token=snap.token, redirect_url=snap.redirect_url))


@router.get("/orders/{order_id}", response_model=Envelope[OrderDetailOut])
def get_order(
    order_id: str = OrderId,
    user: CurrentUser = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    transaction = services.store.get(TRANSACTIONS, order_id)
    if transaction is None:
        raise RecordNotFound("transaction", order_id)
    if transaction.get("user_id") != user.user_id:
        raise AccessDenied(f"transaction {order_id} belongs to another user")

    billing = services.store.get(BILLING_STATEMENTS, order_id)
    return Envelope[OrderDetailOut](data=OrderDetailOut(transaction=_record(transaction), billing_statement=_record(billing)))
