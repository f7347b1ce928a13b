"""
Booking and gift certificate notifications.

Delivery (email rendering, providers) lives outside this service. The
engine only announces confirmations, cancellations and paid gift codes, and
a failing notifier must never fail or roll back the record it reports on.
"""

from abc import ABC, abstractmethod

from app.core.logging import get_logger
from app.domain.models import Booking, DiscountCode

logger = get_logger(__name__)


class Notifier(ABC):

    @abstractmethod
    async def booking_confirmed(self, booking: Booking) -> None:
        pass

    @abstractmethod
    async def booking_cancelled(self, booking: Booking) -> None:
        pass

    @abstractmethod
    async def gift_code_issued(self, gift_code: DiscountCode, recipient_email: str, recipient_name: str) -> None:
        pass


class LoggingNotifier(Notifier):
    """Emits notifications as structured log events for a downstream mailer."""

    async def booking_confirmed(self, booking: Booking) -> None:
        logger.info(
            "notification_booking_confirmed",
            booking_id=booking.id,
            email=booking.contact.email,
            session_ids=list(booking.session_ids),
            party_size=booking.party_size,
        )

    async def booking_cancelled(self, booking: Booking) -> None:
        logger.info(
            "notification_booking_cancelled",
            booking_id=booking.id,
            email=booking.contact.email,
            session_ids=list(booking.session_ids),
        )

    async def gift_code_issued(self, gift_code: DiscountCode, recipient_email: str, recipient_name: str) -> None:
        logger.info(
            "notification_gift_code_issued",
            code=gift_code.code,
            email=recipient_email,
            recipient_name=recipient_name,
            value_cents=gift_code.initial_value_cents,
        )


async def notify_confirmed(notifier: Notifier, booking: Booking) -> None:
    try:
        await notifier.booking_confirmed(booking)
    except Exception as e:
        logger.error("notification_failed", kind="booking_confirmed", booking_id=booking.id, error=str(e))


async def notify_cancelled(notifier: Notifier, booking: Booking) -> None:
    try:
        await notifier.booking_cancelled(booking)
    except Exception as e:
        logger.error("notification_failed", kind="booking_cancelled", booking_id=booking.id, error=str(e))


async def notify_gift_issued(
    notifier: Notifier, gift_code: DiscountCode, recipient_email: str, recipient_name: str
) -> None:
    try:
        await notifier.gift_code_issued(gift_code, recipient_email, recipient_name)
    except Exception as e:
        logger.error("notification_failed", kind="gift_code_issued", code=gift_code.code, error=str(e))
