"""
Expiration reaper: periodically reclaims abandoned pending bookings.

Each booking is handled independently and every step is idempotent, so a
sweep interrupted by a crash or a failure is simply resumed by the next
tick. The interval is kept shorter than the booking TTL by Settings.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from app.core.logging import get_logger
from app.core.metrics import record_reaper
from app.services.booking_service import BookingService, SweepResult

logger = get_logger(__name__)


class ExpirationReaper:

    def __init__(
        self,
        bookings: BookingService,
        interval_seconds: float,
        on_sweep: Optional[Callable[[SweepResult], Awaitable[None]]] = None,
    ):
        self.bookings = bookings
        self.interval_seconds = interval_seconds
        self.on_sweep = on_sweep
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> SweepResult:
        result = await self.bookings.handle_expired_bookings()
        record_reaper(result.processed, result.errors)
        if self.on_sweep is not None and result.processed:
            await self.on_sweep(result)
        return result

    async def run_forever(self) -> None:
        logger.info("reaper_started", interval_seconds=self.interval_seconds)
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception as e:
                logger.error("reaper_sweep_failed", error=str(e))

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="expiration-reaper")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("reaper_stopped")
