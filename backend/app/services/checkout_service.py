"""
Checkout: turn a customer request into a held booking plus a way to pay.

Bookings fully covered by a discount skip the gateway and are confirmed on
the spot, but they still go through the same capacity reservation as paid
bookings so there is only one path that takes spots.
"""

import time
from dataclasses import dataclass
from typing import Optional

from app.core.errors import BookingEngineError, ValidationError
from app.core.logging import get_logger
from app.core.metrics import checkout_latency, record_checkout
from app.domain.models import Booking, ContactInfo
from app.services.booking_service import BookingService
from app.services.interfaces.payment_gateway import PaymentGateway
from app.services.payment_metadata import BookingMetadata

logger = get_logger(__name__)


@dataclass(frozen=True)
class CheckoutRequest:
    offering_id: int
    party_size: int
    contact: ContactInfo
    session_id: Optional[int] = None
    discount_code: Optional[str] = None


@dataclass(frozen=True)
class CheckoutResult:
    booking: Booking
    amount_due_cents: int
    checkout_url: Optional[str]
    confirmed: bool


class CheckoutService:

    def __init__(self, bookings: BookingService, gateway: PaymentGateway):
        self.bookings = bookings
        self.gateway = gateway

    @staticmethod
    def _validate(request: CheckoutRequest) -> None:
        # Party size is checked by BookingService.create_pending_booking
        contact = request.contact
        if not contact.first_name.strip() or not contact.last_name.strip():
            raise ValidationError("First and last name are required")
        if "@" not in contact.email:
            raise ValidationError("A valid email address is required")

    async def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        start = time.perf_counter()
        try:
            result = await self._checkout(request)
        except BookingEngineError as e:
            record_checkout(e.code.value.lower())
            raise
        finally:
            checkout_latency.observe(time.perf_counter() - start)

        record_checkout("confirmed" if result.confirmed else "payment_required")
        return result

    async def _checkout(self, request: CheckoutRequest) -> CheckoutResult:
        self._validate(request)

        pending = await self.bookings.create_pending_booking(
            offering_id=request.offering_id,
            session_id=request.session_id,
            party_size=request.party_size,
            contact=request.contact,
            discount_code=request.discount_code,
        )
        booking = pending.booking

        if pending.amount_due_cents == 0:
            await self.bookings.confirm_booking(booking.id)
            booking = await self.bookings.get_booking(booking.id)
            logger.info("checkout_confirmed_without_payment", booking_id=booking.id)
            return CheckoutResult(
                booking=booking,
                amount_due_cents=0,
                checkout_url=None,
                confirmed=True,
            )

        try:
            intent = await self.gateway.create_payable_intent(
                amount_cents=pending.amount_due_cents,
                currency=booking.currency,
                metadata=BookingMetadata.from_booking(booking).to_metadata(),
                description=self._describe(booking),
                customer_email=booking.contact.email,
            )
            booking = await self.bookings.attach_payment_reference(booking.id, intent.id)
        except BookingEngineError as e:
            logger.error("checkout_payment_setup_failed", booking_id=booking.id, error=str(e))
            await self._abandon(booking)
            raise

        logger.info(
            "checkout_payment_required",
            booking_id=booking.id,
            payment_reference=intent.id,
            amount_cents=pending.amount_due_cents,
        )
        return CheckoutResult(
            booking=booking,
            amount_due_cents=pending.amount_due_cents,
            checkout_url=intent.redirect_url,
            confirmed=False,
        )

    async def _abandon(self, booking: Booking) -> None:
        try:
            await self.bookings.cancel_booking(booking.id)
        except BookingEngineError as e:
            # The expiry sweep reclaims it later.
            logger.error("checkout_abandon_failed", booking_id=booking.id, error=str(e))

    @staticmethod
    def _describe(booking: Booking) -> str:
        people = "person" if booking.party_size == 1 else "people"
        sessions = "session" if len(booking.session_ids) == 1 else "sessions"
        description = f"{len(booking.session_ids)} {sessions}, {booking.party_size} {people}"
        if booking.discount_amount_cents:
            description += f" (discount applied: {booking.discount_amount_cents / 100:.2f})"
        return description
