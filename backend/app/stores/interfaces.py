"""
Resource store interface.

The booking engine only relies on single-row operations: reads, creates,
deletes, a relative adjustment of one counter column, and a status
conditional update of one booking. No multi-row transaction is assumed.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from app.domain.models import (
    Booking,
    BookingStatus,
    DiscountCode,
    DiscountStatus,
    Offering,
    Redemption,
    Session,
    SessionStatus,
)


class ResourceStore(ABC):
    """
    Interface for resource stores.

    Implementations:
    - InMemoryStore: dict backed, for tests, local runs and experiments
    - SQLAlchemyStore: async SQLAlchemy, one transaction per operation
    """

    # Offerings and sessions

    @abstractmethod
    async def get_offering(self, offering_id: int) -> Optional[Offering]:
        pass

    @abstractmethod
    async def get_session(self, session_id: int) -> Optional[Session]:
        pass

    @abstractmethod
    async def find_sessions(
        self, offering_id: int, status: Optional[SessionStatus] = None
    ) -> list[Session]:
        """Sessions of an offering ordered by start time."""
        pass

    @abstractmethod
    async def adjust_available_spots(self, session_id: int, delta: int) -> Optional[int]:
        """
        Add ``delta`` to a session's available spots as one relative write.

        Args:
            session_id: Session to adjust
            delta: Signed amount, negative to reserve

        Returns:
            The new value, or None if the session does not exist.
            The result may be negative; callers verify and compensate.
        """
        pass

    # Bookings

    @abstractmethod
    async def create_booking(self, booking: Booking) -> Booking:
        """Persist a new booking and return it with its id and created_at set."""
        pass

    @abstractmethod
    async def get_booking(self, booking_id: int) -> Optional[Booking]:
        pass

    @abstractmethod
    async def update_booking(
        self,
        booking_id: int,
        expected_status: Optional[BookingStatus] = None,
        **changes: Any,
    ) -> Optional[Booking]:
        """
        Update a booking row.

        When ``expected_status`` is given the write only happens if the row
        currently has that status, which makes it usable as a claim.

        Returns:
            The updated booking, or None if the row is missing or the
            status did not match.
        """
        pass

    @abstractmethod
    async def claim_unfinished_cancellation(
        self, booking_id: int, now: datetime, until: datetime
    ) -> Optional[Booking]:
        """
        Claim a cancelled row whose expiry is before ``now`` by moving its
        expiry to ``until``. Of several concurrent callers only one gets the
        booking back; the others get None.
        """
        pass

    @abstractmethod
    async def delete_booking(self, booking_id: int) -> bool:
        pass

    @abstractmethod
    async def find_expired_bookings(self, now: datetime, limit: int) -> list[Booking]:
        """
        Unpaid bookings whose expiry is before ``now``, oldest first.

        Includes pending bookings and cancelled rows that were never deleted
        (an interrupted cancellation whose retry delay has passed).
        """
        pass

    # Discount codes

    @abstractmethod
    async def get_discount_code(self, code: str) -> Optional[DiscountCode]:
        pass

    @abstractmethod
    async def create_discount_code(self, discount_code: DiscountCode) -> DiscountCode:
        """Raises DuplicateRecordError when the code already exists."""
        pass

    @abstractmethod
    async def adjust_discount_remaining(self, code: str, delta: int) -> Optional[int]:
        """Relative write on balance/uses remaining. None if missing or unlimited."""
        pass

    @abstractmethod
    async def update_discount_code(
        self,
        code: str,
        expected_status: Optional[DiscountStatus] = None,
        **changes: Any,
    ) -> Optional[DiscountCode]:
        """Same contract as update_booking: a status mismatch writes nothing and returns None."""
        pass

    # Redemptions

    @abstractmethod
    async def add_redemption(self, redemption: Redemption) -> bool:
        """Record a permanent apply. False if (code, booking_id) already exists."""
        pass

    @abstractmethod
    async def delete_redemption(self, code: str, booking_id: int) -> bool:
        pass

    @abstractmethod
    async def find_redemption(self, code: str, booking_id: int) -> Optional[Redemption]:
        pass
