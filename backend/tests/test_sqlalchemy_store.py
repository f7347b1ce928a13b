"""
Tests for the SQLAlchemy resource store on a throwaway SQLite database.
"""

from datetime import timedelta

import pytest
import pytest_asyncio

from app.core.config import Settings
from app.core.errors import DuplicateRecordError
from app.db.base import Base
from app.db.session import create_engine, create_session_factory
from app.domain.models import (
    Booking,
    BookingStatus,
    ContactInfo,
    DiscountCode,
    DiscountKind,
    DiscountStatus,
    Offering,
    OfferingKind,
    PaymentStatus,
    Redemption,
    Session,
    SessionStatus,
)
from app.domain.refs import Ref
from app.services.booking_service import ConfirmResult
from app.services.container import build_container
from app.stores.sqlalchemy_store import SQLAlchemyStore

from tests.conftest import START, FakePaymentGateway, RecordingNotifier

ADA = ContactInfo(first_name="Ada", last_name="Lovelace", email="ada@example.com", phone="600000000")


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    settings = Settings(_env_file=None, DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    engine = create_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    store = SQLAlchemyStore(create_session_factory(engine))
    await store.add_offering(Offering(
        id=1, title="Wheel Throwing", kind=OfferingKind.SINGLE, capacity=4, price_per_person_cents=4500,
    ))
    await store.add_offering(Offering(
        id=2, title="Glazing Course", kind=OfferingKind.MULTI, capacity=6, price_per_person_cents=12000,
    ))
    await store.add_session(Session(id=11, offering=Ref(1), starts_at=START, available_spots=4))
    for week, session_id in enumerate([21, 22]):
        await store.add_session(Session(
            id=session_id, offering=Ref(2), starts_at=START + timedelta(weeks=week), available_spots=6,
        ))
    await store.add_session(Session(
        id=23, offering=Ref(2), starts_at=START + timedelta(weeks=2), available_spots=6,
        status=SessionStatus.CANCELLED,
    ))
    await store.create_discount_code(DiscountCode(
        code="GIFT-3000", kind=DiscountKind.GIFT, balance_or_uses_remaining=3000, initial_value_cents=3000,
    ))

    yield store

    await engine.dispose()


def pending_booking(**overrides) -> Booking:
    values = dict(
        offering_id=1,
        session_ids=(11,),
        party_size=2,
        contact=ADA,
        total_cents=9000,
        currency="eur",
        expires_at=START + timedelta(minutes=10),
    )
    values.update(overrides)
    return Booking(**values)


@pytest.mark.asyncio
async def test_session_carries_resolved_offering(sql_store):
    session = await sql_store.get_session(11)

    assert session.offering.is_loaded
    assert session.offering.value.title == "Wheel Throwing"
    assert session.starts_at == START


@pytest.mark.asyncio
async def test_find_sessions_filters_and_orders(sql_store):
    scheduled = await sql_store.find_sessions(2, SessionStatus.SCHEDULED)
    every = await sql_store.find_sessions(2)

    assert [s.id for s in scheduled] == [21, 22]
    assert [s.id for s in every] == [21, 22, 23]


@pytest.mark.asyncio
async def test_adjust_spots_is_relative_and_may_go_negative(sql_store):
    assert await sql_store.adjust_available_spots(11, -3) == 1
    assert await sql_store.adjust_available_spots(11, -2) == -1
    assert await sql_store.adjust_available_spots(11, 2) == 1
    assert await sql_store.adjust_available_spots(999, -1) is None


@pytest.mark.asyncio
async def test_booking_round_trip(sql_store):
    created = await sql_store.create_booking(pending_booking())

    fetched = await sql_store.get_booking(created.id)

    assert fetched.id is not None
    assert fetched.session_ids == (11,)
    assert fetched.contact == ADA
    assert fetched.status == BookingStatus.PENDING
    assert fetched.expires_at == START + timedelta(minutes=10)
    assert fetched.created_at is not None


@pytest.mark.asyncio
async def test_conditional_update_has_one_winner(sql_store):
    created = await sql_store.create_booking(pending_booking())

    first = await sql_store.update_booking(
        created.id, expected_status=BookingStatus.PENDING, status=BookingStatus.CANCELLED,
    )
    second = await sql_store.update_booking(
        created.id, expected_status=BookingStatus.PENDING, status=BookingStatus.CONFIRMED,
    )

    assert first.status == BookingStatus.CANCELLED
    assert second is None
    assert await sql_store.delete_booking(created.id) is True
    assert await sql_store.delete_booking(created.id) is False


@pytest.mark.asyncio
async def test_find_expired_bookings(sql_store):
    old = await sql_store.create_booking(pending_booking(expires_at=START))
    await sql_store.create_booking(pending_booking(expires_at=START + timedelta(hours=1)))
    await sql_store.create_booking(pending_booking(
        expires_at=START, status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PAID,
    ))

    expired = await sql_store.find_expired_bookings(START + timedelta(minutes=1), limit=10)

    assert [b.id for b in expired] == [old.id]


@pytest.mark.asyncio
async def test_unfinished_cancellation_is_found_with_its_progress(sql_store):
    stuck = await sql_store.create_booking(pending_booking(
        expires_at=START, status=BookingStatus.CANCELLED,
    ))
    await sql_store.update_booking(
        stuck.id, expected_status=BookingStatus.CANCELLED, discount_released=True,
    )

    expired = await sql_store.find_expired_bookings(START + timedelta(minutes=1), limit=10)

    assert [b.id for b in expired] == [stuck.id]
    assert expired[0].discount_released is True
    assert expired[0].capacity_released is False

    later = START + timedelta(minutes=2)
    first = await sql_store.claim_unfinished_cancellation(stuck.id, now=START + timedelta(minutes=1), until=later)
    second = await sql_store.claim_unfinished_cancellation(stuck.id, now=START + timedelta(minutes=1), until=later)
    assert first.expires_at == later
    assert second is None


@pytest.mark.asyncio
async def test_conditional_discount_update(sql_store):
    await sql_store.create_discount_code(DiscountCode(
        code="BUYS-GIFT", kind=DiscountKind.GIFT, balance_or_uses_remaining=5000,
        status=DiscountStatus.PENDING, purchase_reference="cs_test_1",
    ))

    first = await sql_store.update_discount_code(
        "BUYS-GIFT", expected_status=DiscountStatus.PENDING, status=DiscountStatus.ACTIVE,
    )
    second = await sql_store.update_discount_code(
        "BUYS-GIFT", expected_status=DiscountStatus.PENDING, status=DiscountStatus.EXPIRED,
    )

    assert first.status == DiscountStatus.ACTIVE
    assert first.purchase_reference == "cs_test_1"
    assert second is None


@pytest.mark.asyncio
async def test_duplicate_discount_code(sql_store):
    with pytest.raises(DuplicateRecordError):
        await sql_store.create_discount_code(DiscountCode(
            code="GIFT-3000", kind=DiscountKind.GIFT, balance_or_uses_remaining=100,
        ))


@pytest.mark.asyncio
async def test_discount_adjustment_skips_unlimited_codes(sql_store):
    await sql_store.create_discount_code(DiscountCode(
        code="OPEN-PROM", kind=DiscountKind.PROMO, balance_or_uses_remaining=None,
    ))

    assert await sql_store.adjust_discount_remaining("GIFT-3000", -3500) == -500
    assert await sql_store.adjust_discount_remaining("OPEN-PROM", -1) is None


@pytest.mark.asyncio
async def test_redemption_is_unique_per_booking(sql_store):
    redemption = Redemption(code="GIFT-3000", booking_id=5, amount_cents=1000, redeemed_at=START)

    assert await sql_store.add_redemption(redemption) is True
    assert await sql_store.add_redemption(redemption) is False
    assert (await sql_store.find_redemption("GIFT-3000", 5)).redeemed_at == START
    assert await sql_store.delete_redemption("GIFT-3000", 5) is True
    assert await sql_store.find_redemption("GIFT-3000", 5) is None


@pytest.mark.asyncio
async def test_booking_lifecycle_on_sql_store(sql_store):
    settings = Settings(_env_file=None, STORE_BACKEND="sqlalchemy", REDIS_ENABLED=False)
    container = build_container(settings, sql_store, FakePaymentGateway(), notifier=RecordingNotifier())

    course = await container.bookings.create_pending_booking(2, None, 2, ADA, discount_code="GIFT-3000")
    single = await container.bookings.create_pending_booking(1, 11, 4, ADA)

    assert course.amount_due_cents == 21000
    assert [(await sql_store.get_session(s)).available_spots for s in (21, 22)] == [4, 4]

    assert await container.bookings.confirm_booking(course.booking.id) == ConfirmResult.CONFIRMED
    assert await container.bookings.cancel_booking(single.booking.id) is True

    assert (await sql_store.get_session(11)).available_spots == 4
    assert (await sql_store.get_discount_code("GIFT-3000")).balance_or_uses_remaining == 0
    assert await sql_store.find_redemption("GIFT-3000", course.booking.id) is not None
