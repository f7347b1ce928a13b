"""
Resource store backed by async SQLAlchemy.

Each public method runs in its own short transaction and touches one row,
so the booking engine sees exactly the guarantees it was written for:
single-row atomicity and nothing more. Counter adjustments are relative
UPDATEs (``SET col = col + :delta``), never read-modify-write.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import DuplicateRecordError, PersistenceFailure
from app.core.logging import get_logger
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
    PromoDiscountType,
    Redemption,
    Session,
    SessionStatus,
)
from app.domain.refs import Ref
from app.models import BookingModel, DiscountCodeModel, OfferingModel, RedemptionModel, SessionModel
from app.stores.interfaces import ResourceStore

logger = get_logger(__name__)

_CONTACT_FIELDS = ("first_name", "last_name", "email", "phone")


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _column_values(changes: dict[str, Any]) -> dict[str, Any]:
    values = {}
    for key, value in changes.items():
        if key == "contact":
            values.update({field: getattr(value, field) for field in _CONTACT_FIELDS})
        elif key == "session_ids":
            values[key] = list(value)
        elif isinstance(value, Enum):
            values[key] = value.value
        else:
            values[key] = value
    return values


def _to_offering(row: OfferingModel) -> Offering:
    return Offering(
        id=row.id,
        title=row.title,
        kind=OfferingKind(row.kind),
        capacity=row.capacity,
        price_per_person_cents=row.price_per_person_cents,
        currency=row.currency,
        is_published=row.is_published,
    )


def _to_session(row: SessionModel) -> Session:
    offering = _to_offering(row.offering) if row.offering is not None else None
    return Session(
        id=row.id,
        offering=Ref(row.offering_id, offering),
        starts_at=_aware(row.starts_at),
        available_spots=row.available_spots,
        status=SessionStatus(row.status),
    )


def _to_booking(row: BookingModel) -> Booking:
    return Booking(
        id=row.id,
        offering_id=row.offering_id,
        session_ids=tuple(row.session_ids),
        party_size=row.party_size,
        contact=ContactInfo(
            first_name=row.first_name,
            last_name=row.last_name,
            email=row.email,
            phone=row.phone or "",
        ),
        total_cents=row.total_cents,
        currency=row.currency,
        status=BookingStatus(row.status),
        payment_status=PaymentStatus(row.payment_status),
        expires_at=_aware(row.expires_at),
        payment_reference=row.payment_reference,
        discount_code=row.discount_code,
        discount_amount_cents=row.discount_amount_cents,
        discount_released=row.discount_released,
        capacity_released=row.capacity_released,
        created_at=_aware(row.created_at),
    )


def _to_discount_code(row: DiscountCodeModel) -> DiscountCode:
    return DiscountCode(
        code=row.code,
        kind=DiscountKind(row.kind),
        balance_or_uses_remaining=row.balance_or_uses_remaining,
        status=DiscountStatus(row.status),
        expires_at=_aware(row.expires_at),
        currency=row.currency,
        initial_value_cents=row.initial_value_cents,
        discount_type=PromoDiscountType(row.discount_type) if row.discount_type else None,
        discount_value=row.discount_value,
        max_uses=row.max_uses,
        notes=row.notes,
        purchase_reference=row.purchase_reference,
    )


def _to_redemption(row: RedemptionModel) -> Redemption:
    return Redemption(
        code=row.code,
        booking_id=row.booking_id,
        amount_cents=row.amount_cents,
        redeemed_at=_aware(row.redeemed_at),
    )


class SQLAlchemyStore(ResourceStore):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except IntegrityError as e:
            raise DuplicateRecordError(str(e.orig)) from e
        except SQLAlchemyError as e:
            logger.error("store_operation_failed", error=str(e))
            raise PersistenceFailure("Resource store operation failed") from e

    # Offerings and sessions

    async def get_offering(self, offering_id: int) -> Optional[Offering]:
        async with self._transaction() as session:
            row = await session.get(OfferingModel, offering_id)
            return _to_offering(row) if row else None

    async def get_session(self, session_id: int) -> Optional[Session]:
        async with self._transaction() as session:
            row = await session.get(SessionModel, session_id, populate_existing=True)
            return _to_session(row) if row else None

    async def find_sessions(
        self, offering_id: int, status: Optional[SessionStatus] = None
    ) -> list[Session]:
        query = select(SessionModel).where(SessionModel.offering_id == offering_id)
        if status is not None:
            query = query.where(SessionModel.status == status.value)
        query = query.order_by(SessionModel.starts_at, SessionModel.id)

        async with self._transaction() as session:
            result = await session.execute(query)
            return [_to_session(row) for row in result.scalars().unique().all()]

    async def adjust_available_spots(self, session_id: int, delta: int) -> Optional[int]:
        async with self._transaction() as session:
            result = await session.execute(
                update(SessionModel)
                .where(SessionModel.id == session_id)
                .values(available_spots=SessionModel.available_spots + delta)
                .returning(SessionModel.available_spots)
            )
            return result.scalar_one_or_none()

    # Bookings

    async def create_booking(self, booking: Booking) -> Booking:
        values = _column_values({
            "offering_id": booking.offering_id,
            "session_ids": booking.session_ids,
            "party_size": booking.party_size,
            "contact": booking.contact,
            "total_cents": booking.total_cents,
            "currency": booking.currency,
            "status": booking.status,
            "payment_status": booking.payment_status,
            "expires_at": booking.expires_at,
            "payment_reference": booking.payment_reference,
            "discount_code": booking.discount_code,
            "discount_amount_cents": booking.discount_amount_cents,
            "discount_released": booking.discount_released,
            "capacity_released": booking.capacity_released,
        })
        async with self._transaction() as session:
            row = BookingModel(**values)
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return _to_booking(row)

    async def get_booking(self, booking_id: int) -> Optional[Booking]:
        async with self._transaction() as session:
            row = await session.get(BookingModel, booking_id)
            return _to_booking(row) if row else None

    async def update_booking(
        self,
        booking_id: int,
        expected_status: Optional[BookingStatus] = None,
        **changes: Any,
    ) -> Optional[Booking]:
        query = update(BookingModel).where(BookingModel.id == booking_id)
        if expected_status is not None:
            query = query.where(BookingModel.status == expected_status.value)

        async with self._transaction() as session:
            result = await session.execute(query.values(**_column_values(changes)))
            if result.rowcount == 0:
                return None
            row = await session.get(BookingModel, booking_id, populate_existing=True)
            return _to_booking(row) if row else None

    async def claim_unfinished_cancellation(
        self, booking_id: int, now: datetime, until: datetime
    ) -> Optional[Booking]:
        query = (
            update(BookingModel)
            .where(
                BookingModel.id == booking_id,
                BookingModel.status == BookingStatus.CANCELLED.value,
                BookingModel.expires_at < now,
            )
            .values(expires_at=until)
        )
        async with self._transaction() as session:
            result = await session.execute(query)
            if result.rowcount == 0:
                return None
            row = await session.get(BookingModel, booking_id, populate_existing=True)
            return _to_booking(row) if row else None

    async def delete_booking(self, booking_id: int) -> bool:
        async with self._transaction() as session:
            result = await session.execute(delete(BookingModel).where(BookingModel.id == booking_id))
            return result.rowcount > 0

    async def find_expired_bookings(self, now: datetime, limit: int) -> list[Booking]:
        query = (
            select(BookingModel)
            .where(
                BookingModel.status.in_((BookingStatus.PENDING.value, BookingStatus.CANCELLED.value)),
                BookingModel.payment_status == PaymentStatus.UNPAID.value,
                BookingModel.expires_at < now,
            )
            .order_by(BookingModel.expires_at)
            .limit(limit)
        )
        async with self._transaction() as session:
            result = await session.execute(query)
            return [_to_booking(row) for row in result.scalars().all()]

    # Discount codes

    async def get_discount_code(self, code: str) -> Optional[DiscountCode]:
        async with self._transaction() as session:
            row = await session.get(DiscountCodeModel, code, populate_existing=True)
            return _to_discount_code(row) if row else None

    async def create_discount_code(self, discount_code: DiscountCode) -> DiscountCode:
        values = _column_values({
            "code": discount_code.code,
            "kind": discount_code.kind,
            "balance_or_uses_remaining": discount_code.balance_or_uses_remaining,
            "status": discount_code.status,
            "expires_at": discount_code.expires_at,
            "currency": discount_code.currency,
            "initial_value_cents": discount_code.initial_value_cents,
            "discount_type": discount_code.discount_type,
            "discount_value": discount_code.discount_value,
            "max_uses": discount_code.max_uses,
            "notes": discount_code.notes,
            "purchase_reference": discount_code.purchase_reference,
        })
        async with self._transaction() as session:
            session.add(DiscountCodeModel(**values))
        return discount_code

    async def adjust_discount_remaining(self, code: str, delta: int) -> Optional[int]:
        async with self._transaction() as session:
            result = await session.execute(
                update(DiscountCodeModel)
                .where(
                    DiscountCodeModel.code == code,
                    DiscountCodeModel.balance_or_uses_remaining.is_not(None),
                )
                .values(
                    balance_or_uses_remaining=DiscountCodeModel.balance_or_uses_remaining + delta
                )
                .returning(DiscountCodeModel.balance_or_uses_remaining)
            )
            return result.scalar_one_or_none()

    async def update_discount_code(
        self,
        code: str,
        expected_status: Optional[DiscountStatus] = None,
        **changes: Any,
    ) -> Optional[DiscountCode]:
        query = update(DiscountCodeModel).where(DiscountCodeModel.code == code)
        if expected_status is not None:
            query = query.where(DiscountCodeModel.status == expected_status.value)

        async with self._transaction() as session:
            result = await session.execute(query.values(**_column_values(changes)))
            if result.rowcount == 0:
                return None
            row = await session.get(DiscountCodeModel, code, populate_existing=True)
            return _to_discount_code(row) if row else None

    # Redemptions

    async def add_redemption(self, redemption: Redemption) -> bool:
        try:
            async with self._transaction() as session:
                session.add(RedemptionModel(
                    code=redemption.code,
                    booking_id=redemption.booking_id,
                    amount_cents=redemption.amount_cents,
                    redeemed_at=redemption.redeemed_at,
                ))
        except DuplicateRecordError:
            return False
        return True

    async def delete_redemption(self, code: str, booking_id: int) -> bool:
        async with self._transaction() as session:
            result = await session.execute(
                delete(RedemptionModel).where(
                    RedemptionModel.code == code,
                    RedemptionModel.booking_id == booking_id,
                )
            )
            return result.rowcount > 0

    async def find_redemption(self, code: str, booking_id: int) -> Optional[Redemption]:
        async with self._transaction() as session:
            result = await session.execute(
                select(RedemptionModel).where(
                    RedemptionModel.code == code,
                    RedemptionModel.booking_id == booking_id,
                )
            )
            row = result.scalar_one_or_none()
            return _to_redemption(row) if row else None

    # Seeding, used by the development app and tests

    async def add_offering(self, offering: Offering) -> Offering:
        async with self._transaction() as session:
            session.add(OfferingModel(**_column_values({
                "id": offering.id,
                "title": offering.title,
                "kind": offering.kind,
                "capacity": offering.capacity,
                "price_per_person_cents": offering.price_per_person_cents,
                "currency": offering.currency,
                "is_published": offering.is_published,
            })))
        return offering

    async def add_session(self, session_record: Session) -> Session:
        async with self._transaction() as session:
            session.add(SessionModel(
                id=session_record.id,
                offering_id=session_record.offering_id,
                starts_at=session_record.starts_at,
                available_spots=session_record.available_spots,
                status=session_record.status.value,
            ))
        return session_record
