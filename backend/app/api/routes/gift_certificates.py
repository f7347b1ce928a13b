"""
Gift certificate purchase: issue a pending code and hand back a payment redirect.
"""

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_container
from app.schemas.gift import GiftPurchaseCreate, GiftPurchaseResponse
from app.services.container import ServiceContainer
from app.services.gift_purchase_service import GiftPurchaseRequest

router = APIRouter(prefix="/gift-certificates", tags=["Gift certificates"])


@router.post("/purchase", response_model=GiftPurchaseResponse, status_code=status.HTTP_201_CREATED)
async def purchase_gift_certificate(
    purchase_data: GiftPurchaseCreate,
    container: ServiceContainer = Depends(get_container),
):
    """
    Start a gift certificate purchase.

    The code stays unusable until the payment webhook reports the payment
    as completed; the recipient is notified then.
    """
    result = await container.gift_purchases.purchase(GiftPurchaseRequest(
        amount_cents=purchase_data.amount_cents,
        purchaser=purchase_data.purchaser.to_domain(),
        recipient_email=str(purchase_data.recipient_email),
        recipient_name=purchase_data.recipient_name.strip(),
    ))
    gift_code = result.gift_code
    return GiftPurchaseResponse(
        payment_reference=result.payment_reference,
        checkout_url=result.checkout_url,
        amount_cents=gift_code.initial_value_cents,
        currency=gift_code.currency,
        status=gift_code.status,
        expires_at=gift_code.expires_at,
    )
