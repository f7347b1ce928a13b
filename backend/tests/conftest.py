"""
Pytest fixtures: seeded in-memory store, fake gateway, controllable clock,
service container and an HTTP client wired to that container.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.api.dependencies import get_container
from app.core.config import Settings
from app.core.errors import PaymentGatewayError, SignatureInvalid
from app.domain.models import (
    DiscountCode,
    DiscountKind,
    Offering,
    OfferingKind,
    PromoDiscountType,
    Session,
    SessionStatus,
)
from app.domain.refs import Ref
from app.main import create_app
from app.services.container import ServiceContainer, build_container
from app.services.interfaces.payment_gateway import (
    PayableIntent,
    PaymentEvent,
    PaymentEventType,
    PaymentGateway,
)
from app.services.notification_service import Notifier
from app.stores.memory_store import InMemoryStore

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

CLASS_ID = 1
CLASS_SESSION_ID = 101
SECOND_CLASS_SESSION_ID = 102
CANCELLED_SESSION_ID = 103
COURSE_ID = 2
COURSE_SESSION_IDS = [201, 202, 203]
UNPUBLISHED_ID = 3
SMALL_CLASS_ID = 4
SMALL_SESSION_ID = 401

GIFT_3000 = "GIFT-3000"
GIFT_5000 = "GIFT-5000"
PROMO_10 = "TENP-CENT"
PROMO_ONCE = "ONCE-ONLY"


class FrozenClock:
    """Callable clock the tests move forward by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakePaymentGateway(PaymentGateway):
    """Records intents; accepts events signed with VALID_SIGNATURE."""

    VALID_SIGNATURE = "t=1,v1=valid"

    def __init__(self):
        self.intents: list[dict] = []
        self.fail_next = False

    async def create_payable_intent(
        self,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        description: str,
        customer_email: Optional[str] = None,
    ) -> PayableIntent:
        if self.fail_next:
            self.fail_next = False
            raise PaymentGatewayError("Could not create payment session")
        intent_id = f"cs_test_{len(self.intents) + 1}"
        self.intents.append({
            "id": intent_id,
            "amount_cents": amount_cents,
            "currency": currency,
            "metadata": metadata,
            "description": description,
            "customer_email": customer_email,
        })
        return PayableIntent(id=intent_id, redirect_url=f"https://pay.test/{intent_id}")

    def parse_event(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        if signature != self.VALID_SIGNATURE:
            raise SignatureInvalid("Invalid webhook signature")
        body = json.loads(payload)
        return PaymentEvent(
            id=body["id"],
            type=PaymentEventType(body["type"]),
            reference=body.get("reference"),
            metadata=body.get("metadata", {}),
            raw_type=body["type"],
        )


class RecordingNotifier(Notifier):

    def __init__(self):
        self.confirmed: list[int] = []
        self.cancelled: list[int] = []
        self.gifts: list[tuple[str, str]] = []

    async def booking_confirmed(self, booking) -> None:
        self.confirmed.append(booking.id)

    async def booking_cancelled(self, booking) -> None:
        self.cancelled.append(booking.id)

    async def gift_code_issued(self, gift_code, recipient_email, recipient_name) -> None:
        self.gifts.append((gift_code.code, recipient_email))


def seed_store(store: InMemoryStore) -> InMemoryStore:
    """Two classes, a three-session course, an unpublished class and a few codes."""
    store.add_offering(Offering(
        id=CLASS_ID, title="Wheel Throwing", kind=OfferingKind.SINGLE,
        capacity=10, price_per_person_cents=4500,
    ))
    store.add_session(Session(
        id=CLASS_SESSION_ID, offering=Ref(CLASS_ID), starts_at=START, available_spots=10,
    ))
    store.add_session(Session(
        id=SECOND_CLASS_SESSION_ID, offering=Ref(CLASS_ID),
        starts_at=START + timedelta(days=7), available_spots=10,
    ))
    store.add_session(Session(
        id=CANCELLED_SESSION_ID, offering=Ref(CLASS_ID), starts_at=START + timedelta(days=14),
        available_spots=10, status=SessionStatus.CANCELLED,
    ))

    store.add_offering(Offering(
        id=COURSE_ID, title="Glazing Course", kind=OfferingKind.MULTI,
        capacity=10, price_per_person_cents=12000,
    ))
    for week, session_id in enumerate(COURSE_SESSION_IDS):
        store.add_session(Session(
            id=session_id, offering=Ref(COURSE_ID),
            starts_at=START + timedelta(weeks=week), available_spots=10,
        ))

    store.add_offering(Offering(
        id=UNPUBLISHED_ID, title="Draft", kind=OfferingKind.SINGLE,
        capacity=5, price_per_person_cents=1000, is_published=False,
    ))

    store.add_offering(Offering(
        id=SMALL_CLASS_ID, title="Private Lesson", kind=OfferingKind.SINGLE,
        capacity=1, price_per_person_cents=6000,
    ))
    store.add_session(Session(
        id=SMALL_SESSION_ID, offering=Ref(SMALL_CLASS_ID), starts_at=START, available_spots=1,
    ))

    store.add_discount_code(DiscountCode(
        code=GIFT_3000, kind=DiscountKind.GIFT, balance_or_uses_remaining=3000,
        initial_value_cents=3000,
    ))
    store.add_discount_code(DiscountCode(
        code=GIFT_5000, kind=DiscountKind.GIFT, balance_or_uses_remaining=5000,
        initial_value_cents=5000,
    ))
    store.add_discount_code(DiscountCode(
        code=PROMO_10, kind=DiscountKind.PROMO, balance_or_uses_remaining=None,
        discount_type=PromoDiscountType.PERCENTAGE, discount_value=10,
    ))
    store.add_discount_code(DiscountCode(
        code=PROMO_ONCE, kind=DiscountKind.PROMO, balance_or_uses_remaining=1, max_uses=1,
        discount_type=PromoDiscountType.FIXED, discount_value=1000,
    ))
    return store


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        STORE_BACKEND="memory",
        REDIS_ENABLED=False,
        REAPER_ENABLED=False,
        CRON_SECRET="cron-secret",
        ADMIN_API_KEY="admin-key",
        STRIPE_WEBHOOK_SECRET="whsec_test",
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(START - timedelta(days=1))


@pytest.fixture
def store() -> InMemoryStore:
    return seed_store(InMemoryStore())


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def container(settings, store, gateway, notifier, clock) -> ServiceContainer:
    return build_container(settings, store, gateway, notifier=notifier, clock=clock)


@pytest.fixture
def contact() -> dict:
    return {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com", "phone": "600000000"}


@pytest_asyncio.fixture(scope="function")
async def client(settings, container) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the container dependency with the test container."""
    app = create_app(settings)
    app.dependency_overrides[get_container] = lambda: container

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
