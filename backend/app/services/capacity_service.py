"""
Capacity reservation across a set of sessions.

CONCURRENCY STRATEGY: Decrement, Verify, Compensate
===================================================

Problem:
  A course booking must take spots on every session of the course or on
  none of them, but the store only guarantees single-row atomicity.

Solution:
  1. Decrement available_spots on every session in the set (relative writes)
  2. Re-read every session in the set
  3. If any session is negative, increment all of them back and report a
     CapacityConflict

  Safety holds because a negative value is always observed by the request
  that caused it (or by a concurrent one) and rolled back before the
  request returns. The cost is fairness: two requests that would have fit
  one after the other can both be rolled back when they interleave, so a
  CapacityConflict is retryable and says nothing about this particular
  request being too large.

Alternative considered:
  - UPDATE ... SET spots = spots - n WHERE spots >= n per row. Removes the
    verification round trip, but still needs compensation across rows of a
    multi-session set, so the protocol above is kept for every store.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from app.core.errors import BookingEngineError, CapacityConflict, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.metrics import capacity_rollbacks, compensation_failures
from app.domain.models import SessionStatus
from app.stores.interfaces import ResourceStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReleaseResult:
    released: tuple[int, ...]
    missing: tuple[int, ...]

    @property
    def is_partial(self) -> bool:
        return bool(self.missing)


@dataclass(frozen=True)
class SessionAvailability:
    session_id: int
    starts_at: datetime
    available_spots: int
    capacity: int


def _unique(session_ids: Sequence[int]) -> list[int]:
    return list(dict.fromkeys(session_ids))


class CapacityService:

    def __init__(self, store: ResourceStore):
        self.store = store

    async def reserve(self, session_ids: Sequence[int], count: int) -> None:
        """
        Take ``count`` spots on every session in the set, or none.

        Raises CapacityConflict if any session went negative, NotFoundError
        if a session does not exist. Either way every session is left at its
        pre-call value.
        """
        ids = _unique(session_ids)
        if not ids:
            raise ValidationError("At least one session is required")
        if count < 1:
            raise ValidationError("Spot count must be at least 1")

        decremented: list[int] = []
        for session_id in ids:
            remaining = await self.store.adjust_available_spots(session_id, -count)
            if remaining is None:
                await self._compensate(decremented, count)
                raise NotFoundError(f"Session {session_id} not found")
            decremented.append(session_id)

        # Verification read: the writes above are unconditional.
        oversubscribed = []
        for session_id in ids:
            session = await self.store.get_session(session_id)
            if session is not None and session.available_spots < 0:
                oversubscribed.append(session_id)

        if oversubscribed:
            await self._compensate(ids, count)
            capacity_rollbacks.inc()
            logger.warning(
                "capacity_rollback",
                session_ids=ids,
                oversubscribed=oversubscribed,
                requested=count,
            )
            raise CapacityConflict()

        logger.info("capacity_reserved", session_ids=ids, spots=count)

    async def release(self, session_ids: Sequence[int], count: int) -> ReleaseResult:
        """
        Give ``count`` spots back to every session in the set.

        Sessions that no longer exist are skipped and reported, which keeps
        release safe to repeat after a partial failure. Only store errors
        propagate.
        """
        released, missing = [], []
        for session_id in _unique(session_ids):
            remaining = await self.store.adjust_available_spots(session_id, count)
            if remaining is None:
                missing.append(session_id)
            else:
                released.append(session_id)

        result = ReleaseResult(released=tuple(released), missing=tuple(missing))
        if result.is_partial:
            logger.warning("capacity_release_partial", released=released, missing=missing, spots=count)
        else:
            logger.info("capacity_released", session_ids=released, spots=count)
        return result

    async def _compensate(self, session_ids: Sequence[int], count: int) -> None:
        if not session_ids:
            return
        try:
            await self.release(session_ids, count)
        except BookingEngineError as e:
            # Surface the original failure; the lost spots need manual repair.
            compensation_failures.labels(resource="capacity").inc()
            logger.error(
                "capacity_compensation_failed",
                session_ids=list(session_ids),
                spots=count,
                error=str(e),
            )

    async def availability(self, offering_id: int) -> list[SessionAvailability]:
        """Scheduled sessions of an offering with their free spots."""
        offering = await self.store.get_offering(offering_id)
        if offering is None:
            raise NotFoundError(f"Offering {offering_id} not found")

        sessions = await self.store.find_sessions(offering_id, SessionStatus.SCHEDULED)
        result = []
        for session in sessions:
            session_offering = await session.offering.resolve(self.store.get_offering)
            capacity = session_offering.capacity if session_offering else offering.capacity
            result.append(SessionAvailability(
                session_id=session.id,
                starts_at=session.starts_at,
                # Readers never see an in-flight negative.
                available_spots=max(session.available_spots, 0),
                capacity=capacity,
            ))
        return result
