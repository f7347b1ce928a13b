from app.models.offering import OfferingModel
from app.models.session import SessionModel
from app.models.booking import BookingModel
from app.models.discount_code import DiscountCodeModel, RedemptionModel

__all__ = [
    "OfferingModel", "SessionModel", "BookingModel",
    "DiscountCodeModel", "RedemptionModel",
]
