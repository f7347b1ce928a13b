"""
Booking lifecycle with compensating reservations.

STATE MACHINE
=============

  pending/unpaid --confirm--> confirmed/paid
  pending/unpaid --cancel/expire--> cancelled --> [deleted]

While a booking is pending it holds capacity on its sessions and, when a
code was used, a provisional hold on the code. The booking row is the lock:
every actor that wants to finish it (payment webhook, customer cancel,
expiry sweep) first wins a conditional status transition on that one row,
so holds are released or converted exactly once.

Ordering:
  Acquire: capacity, then discount
  Release: discount, then capacity

A failure part-way through creation undoes whatever was taken, in reverse
order, before the error reaches the caller.

Cancellation records each release on the row (discount_released,
capacity_released) as it happens. A cancelled row that still exists is an
interrupted cancellation; the expiry sweep finishes only the missing steps.
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional, Sequence

from app.core.clock import Clock, utcnow
from app.core.config import Settings
from app.core.errors import (
    BookingEngineError,
    NotFoundError,
    PersistenceFailure,
    ValidationError,
)
from app.core.logging import get_logger
from app.core.metrics import compensation_failures
from app.domain.models import (
    Booking,
    BookingStatus,
    ContactInfo,
    Offering,
    OfferingKind,
    PaymentStatus,
    SessionStatus,
)
from app.services.capacity_service import CapacityService
from app.services.discount_service import DiscountCodeService, DiscountQuote
from app.services.notification_service import Notifier, notify_cancelled, notify_confirmed
from app.stores.interfaces import ResourceStore

logger = get_logger(__name__)

# A claimed cancellation becomes visible to the sweep again after this long
CANCEL_RETRY_DELAY = timedelta(minutes=1)


@dataclass(frozen=True)
class PendingBooking:
    booking: Booking
    amount_due_cents: int


class ConfirmResult(str, Enum):
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"


@dataclass
class SweepResult:
    processed: int = 0
    errors: int = 0


class BookingService:

    def __init__(
        self,
        store: ResourceStore,
        capacity: CapacityService,
        discounts: DiscountCodeService,
        notifier: Notifier,
        settings: Settings,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.capacity = capacity
        self.discounts = discounts
        self.notifier = notifier
        self.ttl = timedelta(minutes=settings.BOOKING_TTL_MINUTES)
        self.max_party_size = settings.MAX_PARTY_SIZE
        self.batch_size = settings.REAPER_BATCH_SIZE
        self.clock = clock

    async def _resolve_sessions(self, offering: Offering, session_id: Optional[int]) -> list[int]:
        if offering.kind == OfferingKind.MULTI:
            sessions = await self.store.find_sessions(offering.id, SessionStatus.SCHEDULED)
            if not sessions:
                raise ValidationError("This course has no scheduled sessions")
            return [s.id for s in sessions]

        if session_id is None:
            raise ValidationError("A session must be selected for this class")
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        if session.offering_id != offering.id:
            raise ValidationError("Session does not belong to this offering")
        if session.status != SessionStatus.SCHEDULED:
            raise ValidationError(f"Session is {session.status.value}")
        return [session.id]

    async def create_pending_booking(
        self,
        offering_id: int,
        session_id: Optional[int],
        party_size: int,
        contact: ContactInfo,
        discount_code: Optional[str] = None,
    ) -> PendingBooking:
        """
        Hold capacity (and a discount, if any) and persist a pending booking.

        Nothing stays held when this raises.
        """
        if not 1 <= party_size <= self.max_party_size:
            raise ValidationError(f"Party size must be between 1 and {self.max_party_size}")

        offering = await self.store.get_offering(offering_id)
        if offering is None:
            raise NotFoundError(f"Offering {offering_id} not found")
        if not offering.is_published:
            raise ValidationError("Offering is not available for booking")

        session_ids = await self._resolve_sessions(offering, session_id)
        total_cents = offering.price_per_person_cents * party_size

        quote: Optional[DiscountQuote] = None
        if discount_code:
            # Read-only; nothing is held yet.
            quote = await self.discounts.calculate_discount(discount_code, total_cents)
        discount_cents = quote.discount_cents if quote else 0

        await self.capacity.reserve(session_ids, party_size)

        if quote and discount_cents > 0:
            try:
                await self.discounts.reserve_code(quote.code, discount_cents)
            except BookingEngineError:
                await self._release_capacity(session_ids, party_size)
                raise

        try:
            booking = await self.store.create_booking(Booking(
                offering_id=offering.id,
                session_ids=tuple(session_ids),
                party_size=party_size,
                contact=contact,
                total_cents=total_cents,
                currency=offering.currency,
                expires_at=self.clock() + self.ttl,
                discount_code=quote.code if quote else None,
                discount_amount_cents=discount_cents,
            ))
        except PersistenceFailure:
            logger.error(
                "booking_persist_failed",
                offering_id=offering.id,
                session_ids=session_ids,
                party_size=party_size,
            )
            if quote and discount_cents > 0:
                await self._release_discount(quote.code, discount_cents)
            await self._release_capacity(session_ids, party_size)
            raise

        logger.info(
            "booking_created",
            booking_id=booking.id,
            offering_id=offering.id,
            session_ids=session_ids,
            party_size=party_size,
            total_cents=total_cents,
            discount_cents=discount_cents,
        )
        return PendingBooking(booking=booking, amount_due_cents=booking.amount_due_cents)

    async def _release_capacity(self, session_ids: Sequence[int], party_size: int) -> None:
        try:
            await self.capacity.release(session_ids, party_size)
        except BookingEngineError as e:
            compensation_failures.labels(resource="capacity").inc()
            logger.error("capacity_compensation_failed", session_ids=list(session_ids), error=str(e))

    async def _release_discount(self, code: str, amount_cents: int) -> None:
        try:
            await self.discounts.release_code(code, amount_cents)
        except BookingEngineError as e:
            compensation_failures.labels(resource="discount").inc()
            logger.error("discount_compensation_failed", code=code, error=str(e))

    async def find_booking(self, booking_id: int) -> Optional[Booking]:
        return await self.store.get_booking(booking_id)

    async def get_booking(self, booking_id: int) -> Booking:
        booking = await self.store.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    async def attach_payment_reference(self, booking_id: int, reference: str) -> Booking:
        booking = await self.store.update_booking(
            booking_id,
            expected_status=BookingStatus.PENDING,
            payment_reference=reference,
        )
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} is no longer pending")
        return booking

    async def confirm_booking(
        self,
        booking_id: int,
        payment_reference: Optional[str] = None,
    ) -> ConfirmResult:
        """
        Move a pending booking to confirmed/paid and make its discount permanent.

        Safe to call again for the same booking. Raises NotFoundError when the
        booking is gone or was cancelled first, which for a paid booking means
        the payment is orphaned.
        """
        booking = await self.get_booking(booking_id)
        if booking.payment_status == PaymentStatus.PAID:
            return ConfirmResult.ALREADY_CONFIRMED

        confirmed = await self.store.update_booking(
            booking_id,
            expected_status=BookingStatus.PENDING,
            status=BookingStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            expires_at=None,
            payment_reference=payment_reference or booking.payment_reference,
        )
        if confirmed is None:
            current = await self.store.get_booking(booking_id)
            if current is not None and current.payment_status == PaymentStatus.PAID:
                return ConfirmResult.ALREADY_CONFIRMED
            raise NotFoundError(f"Booking {booking_id} is no longer pending")

        if confirmed.holds_discount:
            try:
                await self.discounts.apply_code(
                    confirmed.discount_code,
                    confirmed.id,
                    confirmed.discount_amount_cents,
                    reserved=True,
                )
            except BookingEngineError as e:
                # The payment stands; the code ledger needs manual repair.
                logger.error(
                    "discount_apply_failed",
                    booking_id=confirmed.id,
                    code=confirmed.discount_code,
                    error=str(e),
                )

        logger.info(
            "booking_confirmed",
            booking_id=confirmed.id,
            payment_reference=confirmed.payment_reference,
            amount_cents=confirmed.amount_due_cents,
        )
        await notify_confirmed(self.notifier, confirmed)
        return ConfirmResult.CONFIRMED

    async def cancel_booking(self, booking_id: int) -> bool:
        """
        Release a pending booking's holds and delete it.

        Missing and non-pending bookings are a no-op (returns False). The
        pending -> cancelled claim guarantees that concurrent cancellers
        release at most once.
        """
        booking = await self.store.get_booking(booking_id)
        if booking is None or booking.status != BookingStatus.PENDING:
            return False

        claimed = await self.store.update_booking(
            booking_id,
            expected_status=BookingStatus.PENDING,
            status=BookingStatus.CANCELLED,
            expires_at=self.clock() + CANCEL_RETRY_DELAY,
        )
        if claimed is None:
            logger.info("booking_cancel_lost_claim", booking_id=booking_id)
            return False

        await self._finish_cancellation(claimed)
        return True

    async def resume_cancellation(self, booking_id: int) -> bool:
        """
        Finish a cancellation that stopped after its claim.

        The row is claimed again once its retry delay has passed, and only
        the steps not yet recorded on it are run, so a retry never gives a
        hold back twice. Returns False when there is nothing to resume.
        """
        now = self.clock()
        booking = await self.store.claim_unfinished_cancellation(
            booking_id, now=now, until=now + CANCEL_RETRY_DELAY,
        )
        if booking is None:
            return False
        logger.info(
            "booking_cancel_resumed",
            booking_id=booking_id,
            discount_released=booking.discount_released,
            capacity_released=booking.capacity_released,
        )
        await self._finish_cancellation(booking)
        return True

    async def _finish_cancellation(self, booking: Booking) -> None:
        if booking.holds_discount and not booking.discount_released:
            await self.discounts.release_code(booking.discount_code, booking.discount_amount_cents)
            await self._mark_released(booking.id, discount_released=True)

        missing: list[int] = []
        if not booking.capacity_released:
            release = await self.capacity.release(booking.session_ids, booking.party_size)
            missing = list(release.missing)
            await self._mark_released(booking.id, capacity_released=True)

        await self.store.delete_booking(booking.id)

        logger.info(
            "booking_cancelled",
            booking_id=booking.id,
            session_ids=list(booking.session_ids),
            spots_restored=booking.party_size,
            missing_sessions=missing,
        )
        await notify_cancelled(self.notifier, booking)

    async def _mark_released(self, booking_id: int, **flags: bool) -> None:
        updated = await self.store.update_booking(
            booking_id,
            expected_status=BookingStatus.CANCELLED,
            **flags,
        )
        if updated is None:
            raise PersistenceFailure(f"Booking {booking_id} vanished during cancellation")

    async def handle_expired_bookings(self) -> SweepResult:
        """
        Cancel every pending unpaid booking past its expiry, one at a time.

        Cancelled rows still present are cancellations that failed part-way;
        they are picked up again once their retry delay has passed.
        """
        result = SweepResult()
        expired = await self.store.find_expired_bookings(self.clock(), self.batch_size)

        for booking in expired:
            try:
                if booking.status == BookingStatus.CANCELLED:
                    finished = await self.resume_cancellation(booking.id)
                else:
                    finished = await self.cancel_booking(booking.id)
                if finished:
                    result.processed += 1
            except Exception as e:
                result.errors += 1
                logger.error("expired_booking_cleanup_failed", booking_id=booking.id, error=str(e))

        if expired:
            logger.info(
                "expired_bookings_swept",
                found=len(expired),
                processed=result.processed,
                errors=result.errors,
            )
        return result
