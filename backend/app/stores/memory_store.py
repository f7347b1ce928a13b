"""
In-memory resource store.

Every operation touches a single record, mirroring the guarantees of the
production store. Without ``op_delay`` an operation never yields to the
event loop, so each call is atomic with respect to other tasks. Setting
``op_delay`` inserts an ``asyncio.sleep`` before each operation, which lets
tests and experiments force interleavings between concurrent callers.
"""

import asyncio
import itertools
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from app.core.errors import DuplicateRecordError
from app.domain.models import (
    Booking,
    BookingStatus,
    DiscountCode,
    DiscountStatus,
    Offering,
    PaymentStatus,
    Redemption,
    Session,
    SessionStatus,
)
from app.domain.refs import Ref
from app.stores.interfaces import ResourceStore


class InMemoryStore(ResourceStore):

    def __init__(self, op_delay: Optional[float] = None):
        self.op_delay = op_delay
        self._offerings: dict[int, Offering] = {}
        self._sessions: dict[int, Session] = {}
        self._bookings: dict[int, Booking] = {}
        self._discount_codes: dict[str, DiscountCode] = {}
        self._redemptions: dict[tuple[str, int], Redemption] = {}
        self._booking_ids = itertools.count(1)

    async def _pause(self) -> None:
        if self.op_delay is not None:
            await asyncio.sleep(self.op_delay)

    # Seeding, used by tests, experiments and the development app

    def add_offering(self, offering: Offering) -> Offering:
        self._offerings[offering.id] = offering
        return offering

    def add_session(self, session: Session) -> Session:
        # Stored by reference only; readers resolve the offering on demand.
        stored = replace(session, offering=Ref(session.offering_id))
        self._sessions[session.id] = stored
        return stored

    def add_discount_code(self, discount_code: DiscountCode) -> DiscountCode:
        self._discount_codes[discount_code.code] = discount_code
        return discount_code

    # Offerings and sessions

    async def get_offering(self, offering_id: int) -> Optional[Offering]:
        await self._pause()
        return self._offerings.get(offering_id)

    async def get_session(self, session_id: int) -> Optional[Session]:
        await self._pause()
        return self._sessions.get(session_id)

    async def find_sessions(
        self, offering_id: int, status: Optional[SessionStatus] = None
    ) -> list[Session]:
        await self._pause()
        sessions = [
            s for s in self._sessions.values()
            if s.offering_id == offering_id and (status is None or s.status == status)
        ]
        return sorted(sessions, key=lambda s: (s.starts_at, s.id))

    async def adjust_available_spots(self, session_id: int, delta: int) -> Optional[int]:
        await self._pause()
        session = self._sessions.get(session_id)
        if session is None:
            return None
        updated = replace(session, available_spots=session.available_spots + delta)
        self._sessions[session_id] = updated
        return updated.available_spots

    # Bookings

    async def create_booking(self, booking: Booking) -> Booking:
        await self._pause()
        created = replace(
            booking,
            id=next(self._booking_ids),
            created_at=booking.created_at or datetime.now(timezone.utc),
        )
        self._bookings[created.id] = created
        return created

    async def get_booking(self, booking_id: int) -> Optional[Booking]:
        await self._pause()
        return self._bookings.get(booking_id)

    async def update_booking(
        self,
        booking_id: int,
        expected_status: Optional[BookingStatus] = None,
        **changes: Any,
    ) -> Optional[Booking]:
        await self._pause()
        booking = self._bookings.get(booking_id)
        if booking is None:
            return None
        if expected_status is not None and booking.status != expected_status:
            return None
        updated = replace(booking, **changes)
        self._bookings[booking_id] = updated
        return updated

    async def claim_unfinished_cancellation(
        self, booking_id: int, now: datetime, until: datetime
    ) -> Optional[Booking]:
        await self._pause()
        booking = self._bookings.get(booking_id)
        if booking is None or booking.status != BookingStatus.CANCELLED:
            return None
        if booking.expires_at is None or booking.expires_at >= now:
            return None
        claimed = replace(booking, expires_at=until)
        self._bookings[booking_id] = claimed
        return claimed

    async def delete_booking(self, booking_id: int) -> bool:
        await self._pause()
        return self._bookings.pop(booking_id, None) is not None

    async def find_expired_bookings(self, now: datetime, limit: int) -> list[Booking]:
        await self._pause()
        expired = [
            b for b in self._bookings.values()
            if b.status in (BookingStatus.PENDING, BookingStatus.CANCELLED)
            and b.payment_status == PaymentStatus.UNPAID
            and b.expires_at is not None
            and b.expires_at < now
        ]
        expired.sort(key=lambda b: b.expires_at)
        return expired[:limit]

    # Discount codes

    async def get_discount_code(self, code: str) -> Optional[DiscountCode]:
        await self._pause()
        return self._discount_codes.get(code)

    async def create_discount_code(self, discount_code: DiscountCode) -> DiscountCode:
        await self._pause()
        if discount_code.code in self._discount_codes:
            raise DuplicateRecordError(f"Discount code {discount_code.code} already exists")
        self._discount_codes[discount_code.code] = discount_code
        return discount_code

    async def adjust_discount_remaining(self, code: str, delta: int) -> Optional[int]:
        await self._pause()
        discount_code = self._discount_codes.get(code)
        if discount_code is None or discount_code.balance_or_uses_remaining is None:
            return None
        updated = replace(
            discount_code,
            balance_or_uses_remaining=discount_code.balance_or_uses_remaining + delta,
        )
        self._discount_codes[code] = updated
        return updated.balance_or_uses_remaining

    async def update_discount_code(
        self,
        code: str,
        expected_status: Optional[DiscountStatus] = None,
        **changes: Any,
    ) -> Optional[DiscountCode]:
        await self._pause()
        discount_code = self._discount_codes.get(code)
        if discount_code is None:
            return None
        if expected_status is not None and discount_code.status != expected_status:
            return None
        updated = replace(discount_code, **changes)
        self._discount_codes[code] = updated
        return updated

    # Redemptions

    async def add_redemption(self, redemption: Redemption) -> bool:
        await self._pause()
        key = (redemption.code, redemption.booking_id)
        if key in self._redemptions:
            return False
        self._redemptions[key] = redemption
        return True

    async def delete_redemption(self, code: str, booking_id: int) -> bool:
        await self._pause()
        return self._redemptions.pop((code, booking_id), None) is not None

    async def find_redemption(self, code: str, booking_id: int) -> Optional[Redemption]:
        await self._pause()
        return self._redemptions.get((code, booking_id))
