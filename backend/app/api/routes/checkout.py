"""
Checkout endpoint: hold spots and hand back a payment redirect.
"""

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_container
from app.schemas.checkout import CheckoutCreate, CheckoutResponse
from app.services.checkout_service import CheckoutRequest
from app.services.container import ServiceContainer

router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def create_checkout(
    checkout_data: CheckoutCreate,
    container: ServiceContainer = Depends(get_container),
):
    """
    Reserve spots for a class or a full course and start payment.

    Returns 409 with ``retryable: true`` when a concurrent checkout took the
    last spots or the discount balance changed; the customer can try again.
    When a discount covers the whole amount the booking is confirmed directly
    and no checkout URL is returned.
    """
    result = await container.checkout.checkout(CheckoutRequest(
        offering_id=checkout_data.offering_id,
        session_id=checkout_data.session_id,
        party_size=checkout_data.party_size,
        contact=checkout_data.contact.to_domain(),
        discount_code=checkout_data.discount_code,
    ))
    # Availability changed for this offering
    await container.cache.invalidate_offering(checkout_data.offering_id)

    return CheckoutResponse(
        booking_id=result.booking.id,
        status=result.booking.status,
        amount_due_cents=result.amount_due_cents,
        currency=result.booking.currency,
        checkout_url=result.checkout_url,
        confirmed=result.confirmed,
        expires_at=result.booking.expires_at,
    )
