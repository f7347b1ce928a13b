"""
Tests for the background expiration reaper.
"""

import asyncio

import pytest

from app.domain.models import ContactInfo
from app.services.reaper import ExpirationReaper

from tests.conftest import CLASS_ID, CLASS_SESSION_ID

ADA = ContactInfo(first_name="Ada", last_name="Lovelace", email="ada@example.com")


@pytest.mark.asyncio
async def test_run_once_reports_and_calls_hook(container, clock, store):
    sweeps = []

    async def on_sweep(result):
        sweeps.append(result.processed)

    reaper = ExpirationReaper(container.bookings, interval_seconds=60, on_sweep=on_sweep)
    await container.bookings.create_pending_booking(CLASS_ID, CLASS_SESSION_ID, 2, ADA)

    assert (await reaper.run_once()).processed == 0
    clock.advance(minutes=11)
    assert (await reaper.run_once()).processed == 1

    assert sweeps == [1]
    assert (await store.get_session(CLASS_SESSION_ID)).available_spots == 10


@pytest.mark.asyncio
async def test_background_loop_sweeps_and_stops(container, clock, store):
    await container.bookings.create_pending_booking(CLASS_ID, CLASS_SESSION_ID, 2, ADA)
    clock.advance(minutes=11)
    reaper = ExpirationReaper(container.bookings, interval_seconds=0.01)

    task = reaper.start()
    assert reaper.start() is task
    for _ in range(100):
        if (await store.get_session(CLASS_SESSION_ID)).available_spots == 10:
            break
        await asyncio.sleep(0.01)
    await reaper.stop()

    assert task.done()
    assert (await store.get_session(CLASS_SESSION_ID)).available_spots == 10


@pytest.mark.asyncio
async def test_failed_sweep_does_not_stop_loop(container, monkeypatch):
    calls = 0

    async def broken_sweep():
        nonlocal calls
        calls += 1
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(container.bookings, "handle_expired_bookings", broken_sweep)
    reaper = ExpirationReaper(container.bookings, interval_seconds=0.01)

    reaper.start()
    for _ in range(100):
        if calls >= 2:
            break
        await asyncio.sleep(0.01)
    await reaper.stop()

    assert calls >= 2
