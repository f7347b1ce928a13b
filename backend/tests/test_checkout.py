"""
Tests for the checkout orchestrator.
"""

import pytest

from app.core.errors import CapacityConflict, PaymentGatewayError, ValidationError
from app.domain.models import BookingStatus, ContactInfo, PaymentStatus
from app.services.checkout_service import CheckoutRequest
from app.services.payment_metadata import BookingMetadata

from tests.conftest import (
    CLASS_ID,
    CLASS_SESSION_ID,
    COURSE_ID,
    COURSE_SESSION_IDS,
    GIFT_3000,
    GIFT_5000,
    SMALL_CLASS_ID,
    SMALL_SESSION_ID,
)

ADA = ContactInfo(first_name="Ada", last_name="Lovelace", email="ada@example.com")


async def spots(store, session_id: int) -> int:
    return (await store.get_session(session_id)).available_spots


@pytest.mark.asyncio
async def test_checkout_creates_payable_intent(container, gateway):
    result = await container.checkout.checkout(CheckoutRequest(
        offering_id=COURSE_ID, party_size=2, contact=ADA, discount_code=GIFT_3000,
    ))

    assert result.confirmed is False
    assert result.amount_due_cents == 21000
    assert result.checkout_url == "https://pay.test/cs_test_1"
    assert result.booking.payment_reference == "cs_test_1"

    intent = gateway.intents[0]
    assert intent["amount_cents"] == 21000
    assert intent["currency"] == "eur"
    assert intent["customer_email"] == "ada@example.com"
    metadata = BookingMetadata.from_metadata(intent["metadata"])
    assert metadata.booking_id == result.booking.id
    assert metadata.session_ids == COURSE_SESSION_IDS
    assert metadata.discount_code == GIFT_3000
    assert metadata.discount_cents == 3000


@pytest.mark.asyncio
async def test_fully_discounted_checkout_confirms_without_payment(container, gateway, store, notifier):
    result = await container.checkout.checkout(CheckoutRequest(
        offering_id=CLASS_ID, session_id=CLASS_SESSION_ID, party_size=1, contact=ADA,
        discount_code=GIFT_5000,
    ))

    assert result.confirmed is True
    assert result.amount_due_cents == 0
    assert result.checkout_url is None
    assert result.booking.status == BookingStatus.CONFIRMED
    assert result.booking.payment_status == PaymentStatus.PAID
    assert gateway.intents == []
    assert notifier.confirmed == [result.booking.id]
    assert await spots(store, CLASS_SESSION_ID) == 9
    assert (await store.get_discount_code(GIFT_5000)).balance_or_uses_remaining == 500


@pytest.mark.asyncio
async def test_gateway_failure_rolls_back_holds(container, gateway, store):
    gateway.fail_next = True

    with pytest.raises(PaymentGatewayError):
        await container.checkout.checkout(CheckoutRequest(
            offering_id=CLASS_ID, session_id=CLASS_SESSION_ID, party_size=2, contact=ADA,
            discount_code=GIFT_3000,
        ))

    assert await spots(store, CLASS_SESSION_ID) == 10
    assert (await store.get_discount_code(GIFT_3000)).balance_or_uses_remaining == 3000


@pytest.mark.asyncio
async def test_last_spot_goes_to_one_checkout(container, gateway):
    request = CheckoutRequest(
        offering_id=SMALL_CLASS_ID, session_id=SMALL_SESSION_ID, party_size=1, contact=ADA,
    )

    await container.checkout.checkout(request)
    with pytest.raises(CapacityConflict):
        await container.checkout.checkout(request)

    assert len(gateway.intents) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("party_size", [0, 21])
async def test_party_size_limit_applies_at_checkout(container, store, gateway, party_size):
    with pytest.raises(ValidationError):
        await container.checkout.checkout(CheckoutRequest(
            offering_id=CLASS_ID, session_id=CLASS_SESSION_ID, party_size=party_size, contact=ADA,
        ))
    assert await spots(store, CLASS_SESSION_ID) == 10
    assert gateway.intents == []


@pytest.mark.asyncio
@pytest.mark.parametrize("contact", [
    ContactInfo(first_name=" ", last_name="Lovelace", email="ada@example.com"),
    ContactInfo(first_name="Ada", last_name="Lovelace", email="not-an-email"),
])
async def test_invalid_contact_is_rejected(container, store, contact):
    with pytest.raises(ValidationError):
        await container.checkout.checkout(CheckoutRequest(
            offering_id=CLASS_ID, session_id=CLASS_SESSION_ID, party_size=1, contact=contact,
        ))
    assert await spots(store, CLASS_SESSION_ID) == 10
