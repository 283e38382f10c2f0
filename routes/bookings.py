# routes/bookings.py
from __future__ import annotations

import logging
import time
import uuid

from fastapi import APIRouter, Depends

from app.payments.status_mapper import INITIAL_STATE
from app.store.base import BOOKINGS
from deps.auth import CurrentUser, get_current_user
from deps.services import Services, get_services
from schemas import CreateBookingRequest, Envelope, RecordOut
from services.errors import AccessDenied, ConcurrentUpdate, RecordNotFound


router = APIRouter(prefix="/v1/bookings", tags=["bookings"])
logger = logging.getLogger("klinikpay.bookings")


def new_booking_id() -> str:
    return f"BOOK-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


@router.post("", status_code=201, response_model=Envelope[RecordOut])
def create_booking(
    body: CreateBookingRequest,
    user: CurrentUser = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    booking_id = new_booking_id()
    data = {
        "booking_id": booking_id,
        "user_id": user.user_id,
        "doctor_id": body.doctor_id,
        "appointment_date": body.appointment_date,
        "appointment_time": body.appointment_time,
        "service_type": body.service_type,
        "notes": body.notes,
        **INITIAL_STATE.as_fields(),
    }
    if not services.store.create(BOOKINGS, booking_id, data):
        raise ConcurrentUpdate(f"booking id {booking_id} already taken")

    logger.info("booking_created booking_id=%s user_id=%s doctor_id=%s", booking_id, user.user_id, body.doctor_id)
    return Envelope[RecordOut](data=RecordOut.model_validate(services.store.get(BOOKINGS, booking_id)))


@router.get("/{booking_id}", response_model=Envelope[RecordOut])
def get_booking(
    booking_id: str,
    user: CurrentUser = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    booking = services.store.get(BOOKINGS, booking_id)
    if booking is None:
        raise RecordNotFound("booking", booking_id)
    if booking.get("user_id") != user.user_id:
        raise AccessDenied(f"booking {booking_id} belongs to another user")
    return Envelope[RecordOut](data=RecordOut.model_validate(booking))
