"""Domain records exchanged between the services and the resource store.

Records are immutable snapshots: a service never mutates a record in place,
it asks the store for a single-row write and gets a fresh snapshot back.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from app.domain.refs import Ref


class OfferingKind(str, Enum):
    SINGLE = "single"
    MULTI = "multi"


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class DiscountKind(str, Enum):
    GIFT = "gift"
    PROMO = "promo"


class DiscountStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    PARTIALLY_USED = "partially-used"
    EXHAUSTED = "exhausted"
    EXPIRED = "expired"


class PromoDiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True)
class Offering:
    id: int
    title: str
    kind: OfferingKind
    capacity: int
    price_per_person_cents: int
    currency: str = "eur"
    is_published: bool = True


@dataclass(frozen=True)
class Session:
    id: int
    offering: Ref[Offering]
    starts_at: datetime
    available_spots: int
    status: SessionStatus = SessionStatus.SCHEDULED

    @property
    def offering_id(self) -> int:
        return self.offering.id


@dataclass(frozen=True)
class ContactInfo:
    first_name: str
    last_name: str
    email: str
    phone: str = ""


@dataclass(frozen=True)
class Booking:
    offering_id: int
    session_ids: tuple[int, ...]
    party_size: int
    contact: ContactInfo
    total_cents: int
    currency: str
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    expires_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    discount_code: Optional[str] = None
    discount_amount_cents: int = 0
    discount_released: bool = False
    capacity_released: bool = False
    created_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def amount_due_cents(self) -> int:
        return self.total_cents - self.discount_amount_cents

    @property
    def holds_discount(self) -> bool:
        return bool(self.discount_code) and self.discount_amount_cents > 0


@dataclass(frozen=True)
class DiscountCode:
    """Gift (stored value) or promo (rule based) code.

    ``balance_or_uses_remaining`` is the balance in cents for gift codes and
    the remaining uses for promo codes. It is ``None`` for promo codes without
    a use limit.
    """

    code: str
    kind: DiscountKind
    balance_or_uses_remaining: Optional[int]
    status: DiscountStatus = DiscountStatus.ACTIVE
    expires_at: Optional[datetime] = None
    currency: str = "eur"
    initial_value_cents: Optional[int] = None
    discount_type: Optional[PromoDiscountType] = None
    discount_value: Optional[int] = None
    max_uses: Optional[int] = None
    notes: Optional[str] = None
    purchase_reference: Optional[str] = None

    @property
    def is_limited(self) -> bool:
        return self.balance_or_uses_remaining is not None


@dataclass(frozen=True)
class Redemption:
    code: str
    booking_id: int
    amount_cents: int
    redeemed_at: datetime
