"""
Payment event handling.

The gateway delivers events at least once and in any order relative to the
expiry sweep, so every branch is idempotent:

  booking completed: already paid -> nothing to do; otherwise confirm
  booking expired:   booking gone -> nothing to do; otherwise cancel
  gift completed:    code already active -> nothing to do; otherwise activate
  gift expired:      code no longer pending -> nothing to do; otherwise void

A completed payment for a booking that no longer exists cannot be undone
here. It is logged as an orphaned payment for a manual refund and still
acknowledged, otherwise the gateway would keep redelivering it.
"""

from enum import Enum
from typing import Optional

from app.core.errors import NotFoundError
from app.core.logging import get_logger
from app.core.metrics import record_payment_event
from app.domain.models import PaymentStatus
from app.services.booking_service import BookingService, ConfirmResult
from app.services.discount_service import DiscountCodeService
from app.services.interfaces.payment_gateway import PaymentEvent, PaymentEventType, PaymentGateway
from app.services.notification_service import Notifier, notify_gift_issued
from app.services.payment_metadata import BookingMetadata, GiftPurchaseMetadata

logger = get_logger(__name__)


class PaymentEventAction(str, Enum):
    BOOKING_CONFIRMED = "booking_confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    BOOKING_EXPIRED = "booking_expired"
    ALREADY_RELEASED = "already_released"
    BOOKING_MISSING = "booking_missing"
    GIFT_ISSUED = "gift_issued"
    GIFT_ALREADY_SETTLED = "gift_already_settled"
    GIFT_VOIDED = "gift_voided"
    GIFT_MISSING = "gift_missing"
    IGNORED = "ignored"


class PaymentEventService:

    def __init__(
        self,
        gateway: PaymentGateway,
        bookings: BookingService,
        discounts: DiscountCodeService,
        notifier: Notifier,
    ):
        self.gateway = gateway
        self.bookings = bookings
        self.discounts = discounts
        self.notifier = notifier

    async def handle(self, payload: bytes, signature: Optional[str]) -> PaymentEventAction:
        """Verify and process a raw notification. SignatureInvalid has no side effects."""
        event = self.gateway.parse_event(payload, signature)
        return await self.process(event)

    async def process(self, event: PaymentEvent) -> PaymentEventAction:
        action = await self._dispatch(event)
        record_payment_event(action.value)
        logger.info("payment_event_processed", event_id=event.id, event_type=event.raw_type, action=action.value)
        return action

    async def _dispatch(self, event: PaymentEvent) -> PaymentEventAction:
        if event.type == PaymentEventType.OTHER:
            return PaymentEventAction.IGNORED

        gift = GiftPurchaseMetadata.from_metadata(event.metadata)
        if gift is not None:
            if event.type == PaymentEventType.COMPLETED:
                return await self._gift_completed(event, gift)
            return await self._gift_expired(gift)

        metadata = BookingMetadata.from_metadata(event.metadata)
        if metadata is None:
            logger.warning("payment_event_without_booking", event_id=event.id, event_type=event.raw_type)
            return PaymentEventAction.IGNORED

        if event.type == PaymentEventType.COMPLETED:
            return await self._completed(event, metadata)
        return await self._expired(metadata)

    async def _completed(self, event: PaymentEvent, metadata: BookingMetadata) -> PaymentEventAction:
        booking = await self.bookings.find_booking(metadata.booking_id)
        if booking is None:
            self._log_orphaned(event, metadata)
            return PaymentEventAction.BOOKING_MISSING
        if booking.payment_status == PaymentStatus.PAID:
            return PaymentEventAction.ALREADY_CONFIRMED

        try:
            result = await self.bookings.confirm_booking(booking.id, payment_reference=event.reference)
        except NotFoundError:
            self._log_orphaned(event, metadata)
            return PaymentEventAction.BOOKING_MISSING

        if result == ConfirmResult.ALREADY_CONFIRMED:
            return PaymentEventAction.ALREADY_CONFIRMED
        return PaymentEventAction.BOOKING_CONFIRMED

    async def _expired(self, metadata: BookingMetadata) -> PaymentEventAction:
        if await self.bookings.cancel_booking(metadata.booking_id):
            return PaymentEventAction.BOOKING_EXPIRED
        return PaymentEventAction.ALREADY_RELEASED

    async def _gift_completed(self, event: PaymentEvent, gift: GiftPurchaseMetadata) -> PaymentEventAction:
        try:
            activated = await self.discounts.activate_purchased_gift(gift.code, event.reference)
        except NotFoundError:
            logger.error(
                "orphaned_payment",
                event_id=event.id,
                payment_reference=event.reference,
                gift_code=gift.code,
                amount_cents=gift.amount_cents,
                action_required="manual_refund",
            )
            return PaymentEventAction.GIFT_MISSING

        if activated is None:
            return PaymentEventAction.GIFT_ALREADY_SETTLED
        await notify_gift_issued(self.notifier, activated, gift.recipient_email, gift.recipient_name)
        return PaymentEventAction.GIFT_ISSUED

    async def _gift_expired(self, gift: GiftPurchaseMetadata) -> PaymentEventAction:
        if await self.discounts.void_purchased_gift(gift.code):
            return PaymentEventAction.GIFT_VOIDED
        return PaymentEventAction.GIFT_ALREADY_SETTLED

    @staticmethod
    def _log_orphaned(event: PaymentEvent, metadata: BookingMetadata) -> None:
        logger.error(
            "orphaned_payment",
            event_id=event.id,
            payment_reference=event.reference,
            booking_id=metadata.booking_id,
            session_ids=metadata.session_ids,
            party_size=metadata.party_size,
            action_required="manual_refund",
        )
