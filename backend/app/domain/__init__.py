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

__all__ = [
    "Booking", "BookingStatus", "ContactInfo",
    "DiscountCode", "DiscountKind", "DiscountStatus",
    "Offering", "OfferingKind", "PaymentStatus", "PromoDiscountType",
    "Redemption", "Ref", "Session", "SessionStatus",
]
