"""
Demo catalog for the in-memory store.

The memory backend starts empty on every boot; this gives local runs and
load tests something to book: a small class, a popular class, a three
session course and two discount codes.
"""

from datetime import datetime, time, timedelta, timezone

from app.domain.models import (
    DiscountCode,
    DiscountKind,
    Offering,
    OfferingKind,
    PromoDiscountType,
    Session,
)
from app.domain.refs import Ref
from app.stores.memory_store import InMemoryStore

CONTENDED_OFFERING_ID = 1
CONTENDED_SESSION_ID = 1
POPULAR_OFFERING_ID = 2
COURSE_OFFERING_ID = 3


def seed_demo_catalog(store: InMemoryStore) -> InMemoryStore:
    today = datetime.now(timezone.utc).date()
    next_monday = datetime.combine(
        today + timedelta(days=7 - today.weekday()), time(18, 0), tzinfo=timezone.utc,
    )

    store.add_offering(Offering(
        id=CONTENDED_OFFERING_ID, title="Wheel Throwing Taster", kind=OfferingKind.SINGLE,
        capacity=10, price_per_person_cents=4500,
    ))
    store.add_session(Session(
        id=CONTENDED_SESSION_ID, offering=Ref(CONTENDED_OFFERING_ID), starts_at=next_monday,
        available_spots=10,
    ))

    store.add_offering(Offering(
        id=POPULAR_OFFERING_ID, title="Hand Building", kind=OfferingKind.SINGLE,
        capacity=500, price_per_person_cents=3500,
    ))
    store.add_session(Session(
        id=2, offering=Ref(POPULAR_OFFERING_ID), starts_at=next_monday + timedelta(days=2),
        available_spots=500,
    ))

    store.add_offering(Offering(
        id=COURSE_OFFERING_ID, title="Glazing Course", kind=OfferingKind.MULTI,
        capacity=8, price_per_person_cents=12000,
    ))
    for week in range(3):
        store.add_session(Session(
            id=10 + week, offering=Ref(COURSE_OFFERING_ID),
            starts_at=next_monday + timedelta(weeks=week, days=3), available_spots=8,
        ))

    store.add_discount_code(DiscountCode(
        code="WELC-OME1", kind=DiscountKind.PROMO, balance_or_uses_remaining=None,
        discount_type=PromoDiscountType.PERCENTAGE, discount_value=10,
    ))
    # Fully discounted checkouts confirm without the payment gateway, which
    # lets load tests contend on capacity with no Stripe keys configured.
    store.add_discount_code(DiscountCode(
        code="FREE-LOAD", kind=DiscountKind.PROMO, balance_or_uses_remaining=None,
        discount_type=PromoDiscountType.PERCENTAGE, discount_value=100,
    ))
    store.add_discount_code(DiscountCode(
        code="GIFT-DEMO", kind=DiscountKind.GIFT, balance_or_uses_remaining=10000,
        initial_value_cents=10000,
    ))
    return store
