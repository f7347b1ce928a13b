from app.schemas.checkout import CheckoutCreate, CheckoutResponse, ContactIn
from app.schemas.booking import BookingResponse, BookingCancelResponse
from app.schemas.offering import AvailabilityResponse, SessionAvailabilityResponse
from app.schemas.discount import (
    DiscountCodeResponse, GiftCodeIssue, PromoCodeGenerate, PromoCodeGenerateResponse,
)
from app.schemas.gift import GiftPurchaseCreate, GiftPurchaseResponse

__all__ = [
    "CheckoutCreate", "CheckoutResponse", "ContactIn",
    "BookingResponse", "BookingCancelResponse",
    "AvailabilityResponse", "SessionAvailabilityResponse",
    "DiscountCodeResponse", "GiftCodeIssue", "PromoCodeGenerate", "PromoCodeGenerateResponse",
    "GiftPurchaseCreate", "GiftPurchaseResponse",
]
