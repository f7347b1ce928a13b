"""
Payment gateway webhook.

The raw body is passed through untouched: signature verification works on
the exact bytes the gateway signed.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from app.api.dependencies import get_container
from app.services.container import ServiceContainer
from app.services.payment_event_service import PaymentEventAction

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/payments")
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    container: ServiceContainer = Depends(get_container),
):
    payload = await request.body()
    action = await container.payment_events.handle(payload, stripe_signature)

    if action in (PaymentEventAction.BOOKING_CONFIRMED, PaymentEventAction.BOOKING_EXPIRED):
        await container.cache.invalidate_all()

    return {"received": True, "action": action.value}
