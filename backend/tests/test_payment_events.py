"""
Tests for payment event handling: redelivery, ordering against the expiry
sweep and orphaned payments.
"""

import json

import pytest
import pytest_asyncio

from app.core.errors import SignatureInvalid
from app.domain.models import BookingStatus, ContactInfo, PaymentStatus
from app.services.checkout_service import CheckoutRequest
from app.services.payment_event_service import PaymentEventAction

from tests.conftest import CLASS_ID, CLASS_SESSION_ID, FakePaymentGateway

ADA = ContactInfo(first_name="Ada", last_name="Lovelace", email="ada@example.com")


def event_payload(event_type: str, metadata: dict, event_id: str = "evt_1", reference: str = "cs_test_1") -> bytes:
    return json.dumps({
        "id": event_id,
        "type": event_type,
        "reference": reference,
        "metadata": metadata,
    }).encode()


async def spots(store, session_id: int) -> int:
    return (await store.get_session(session_id)).available_spots


@pytest_asyncio.fixture
async def checked_out(container, gateway):
    """A pending booking waiting for payment, and the metadata sent with its intent."""
    result = await container.checkout.checkout(CheckoutRequest(
        offering_id=CLASS_ID, session_id=CLASS_SESSION_ID, party_size=2, contact=ADA,
    ))
    return result.booking, gateway.intents[-1]["metadata"]


@pytest.mark.asyncio
async def test_completed_payment_confirms_booking(container, checked_out, notifier):
    booking, metadata = checked_out

    action = await container.payment_events.handle(
        event_payload("completed", metadata), FakePaymentGateway.VALID_SIGNATURE,
    )

    assert action == PaymentEventAction.BOOKING_CONFIRMED
    confirmed = await container.bookings.get_booking(booking.id)
    assert confirmed.status == BookingStatus.CONFIRMED
    assert confirmed.payment_status == PaymentStatus.PAID
    assert notifier.confirmed == [booking.id]


@pytest.mark.asyncio
async def test_redelivered_completion_is_acknowledged_once(container, checked_out, notifier, store):
    booking, metadata = checked_out
    payload = event_payload("completed", metadata)

    first = await container.payment_events.handle(payload, FakePaymentGateway.VALID_SIGNATURE)
    second = await container.payment_events.handle(payload, FakePaymentGateway.VALID_SIGNATURE)

    assert first == PaymentEventAction.BOOKING_CONFIRMED
    assert second == PaymentEventAction.ALREADY_CONFIRMED
    assert notifier.confirmed == [booking.id]
    assert await spots(store, CLASS_SESSION_ID) == 8


@pytest.mark.asyncio
async def test_expired_session_releases_booking(container, checked_out, store):
    booking, metadata = checked_out
    payload = event_payload("expired", metadata)

    first = await container.payment_events.handle(payload, FakePaymentGateway.VALID_SIGNATURE)
    second = await container.payment_events.handle(payload, FakePaymentGateway.VALID_SIGNATURE)

    assert first == PaymentEventAction.BOOKING_EXPIRED
    assert second == PaymentEventAction.ALREADY_RELEASED
    assert await container.bookings.find_booking(booking.id) is None
    assert await spots(store, CLASS_SESSION_ID) == 10


@pytest.mark.asyncio
async def test_payment_after_sweep_is_orphaned(container, checked_out, clock, store):
    """The sweep reclaimed the booking first; the late payment is acknowledged, not applied."""
    booking, metadata = checked_out
    clock.advance(minutes=11)
    await container.reaper.run_once()

    action = await container.payment_events.handle(
        event_payload("completed", metadata), FakePaymentGateway.VALID_SIGNATURE,
    )

    assert action == PaymentEventAction.BOOKING_MISSING
    assert await container.bookings.find_booking(booking.id) is None
    assert await spots(store, CLASS_SESSION_ID) == 10


@pytest.mark.asyncio
async def test_expired_event_after_confirmation_keeps_booking(container, checked_out):
    booking, metadata = checked_out
    await container.payment_events.handle(
        event_payload("completed", metadata), FakePaymentGateway.VALID_SIGNATURE,
    )

    action = await container.payment_events.handle(
        event_payload("expired", metadata, event_id="evt_2"), FakePaymentGateway.VALID_SIGNATURE,
    )

    assert action == PaymentEventAction.ALREADY_RELEASED
    assert (await container.bookings.get_booking(booking.id)).status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
@pytest.mark.parametrize("event_type,metadata", [
    ("other", {"purchase_type": "booking", "booking_id": "1"}),
    ("completed", {"purchase_type": "gift_card", "amount": "5000"}),
    ("completed", {"purchase_type": "booking", "booking_id": "not-a-number"}),
])
async def test_unrelated_events_are_ignored(container, event_type, metadata):
    action = await container.payment_events.handle(
        event_payload(event_type, metadata), FakePaymentGateway.VALID_SIGNATURE,
    )
    assert action == PaymentEventAction.IGNORED


@pytest.mark.asyncio
async def test_bad_signature_has_no_side_effects(container, checked_out):
    booking, metadata = checked_out

    with pytest.raises(SignatureInvalid):
        await container.payment_events.handle(event_payload("completed", metadata), "t=1,v1=forged")

    assert (await container.bookings.get_booking(booking.id)).status == BookingStatus.PENDING
