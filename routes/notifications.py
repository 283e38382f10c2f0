# routes/notifications.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from deps.services import Services, get_services
from schemas import Envelope, NotificationAck
from services.errors import PayloadValidationError


router = APIRouter(prefix="/v1", tags=["notifications"])


async def _handle_notification(req: Request, services: Services) -> Envelope[NotificationAck]:
    try:
        payload = await req.json()
    except ValueError as exc:
        raise PayloadValidationError("notification body is not valid JSON") from exc

    result = services.webhook.handle(payload)
    return Envelope[NotificationAck](
        data=NotificationAck(
            order_id=result.order_id,
            transaction_status=result.provider_status,
            outcome=result.outcome,
            status=result.state.status if result.state else None,
        )
    )


@router.post("/notifications", response_model=Envelope[NotificationAck])
async def payment_notification(req: Request, services: Services = Depends(get_services)):
    return await _handle_notification(req, services)


@router.post("/notifications/midtrans", response_model=Envelope[NotificationAck])
async def midtrans_notification(req: Request, services: Services = Depends(get_services)):
    return await _handle_notification(req, services)
