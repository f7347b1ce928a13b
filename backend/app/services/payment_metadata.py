"""
Booking and gift purchase metadata carried through the payment gateway.

Gateways only store flat string maps, so the models convert to and from
``dict[str, str]``. ``purchase_type`` tells bookings and gift purchases
apart; metadata of the other kind (or of a manual payment) parses to None.
"""

from typing import Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError, field_validator

from app.domain.models import Booking, DiscountCode

BOOKING_PURCHASE = "booking"
GIFT_PURCHASE = "gift"


class BookingMetadata(BaseModel):
    purchase_type: str = BOOKING_PURCHASE
    booking_id: int
    offering_id: int
    session_ids: list[int]
    party_size: int
    discount_code: Optional[str] = None
    discount_cents: int = 0

    @field_validator("session_ids", mode="before")
    @classmethod
    def _split_session_ids(cls, value):
        if isinstance(value, str):
            return [int(part) for part in value.split(",") if part.strip()]
        return value

    @field_validator("discount_code", mode="before")
    @classmethod
    def _blank_code_is_none(cls, value):
        return value or None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingMetadata":
        return cls(
            booking_id=booking.id,
            offering_id=booking.offering_id,
            session_ids=list(booking.session_ids),
            party_size=booking.party_size,
            discount_code=booking.discount_code,
            discount_cents=booking.discount_amount_cents,
        )

    def to_metadata(self) -> dict[str, str]:
        return {
            "purchase_type": self.purchase_type,
            "booking_id": str(self.booking_id),
            "offering_id": str(self.offering_id),
            "session_ids": ",".join(str(session_id) for session_id in self.session_ids),
            "party_size": str(self.party_size),
            "discount_code": self.discount_code or "",
            "discount_cents": str(self.discount_cents),
        }

    @classmethod
    def from_metadata(cls, metadata: dict[str, str]) -> Optional["BookingMetadata"]:
        if metadata.get("purchase_type", BOOKING_PURCHASE) != BOOKING_PURCHASE:
            return None
        try:
            return cls.model_validate(metadata)
        except PydanticValidationError:
            return None


class GiftPurchaseMetadata(BaseModel):
    purchase_type: str = GIFT_PURCHASE
    code: str
    amount_cents: int
    purchaser_email: str
    recipient_email: str
    recipient_name: str = ""

    @classmethod
    def for_purchase(
        cls,
        gift_code: DiscountCode,
        purchaser_email: str,
        recipient_email: str,
        recipient_name: str = "",
    ) -> "GiftPurchaseMetadata":
        return cls(
            code=gift_code.code,
            amount_cents=gift_code.initial_value_cents,
            purchaser_email=purchaser_email,
            recipient_email=recipient_email,
            recipient_name=recipient_name,
        )

    def to_metadata(self) -> dict[str, str]:
        return {
            "purchase_type": self.purchase_type,
            "code": self.code,
            "amount_cents": str(self.amount_cents),
            "purchaser_email": self.purchaser_email,
            "recipient_email": self.recipient_email,
            "recipient_name": self.recipient_name,
        }

    @classmethod
    def from_metadata(cls, metadata: dict[str, str]) -> Optional["GiftPurchaseMetadata"]:
        if metadata.get("purchase_type") != GIFT_PURCHASE:
            return None
        try:
            return cls.model_validate(metadata)
        except PydanticValidationError:
            return None
