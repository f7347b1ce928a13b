"""
Pydantic schemas for customer gift certificate purchases.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from app.domain.models import DiscountStatus
from app.schemas.checkout import ContactIn


class GiftPurchaseCreate(BaseModel):
    amount_cents: int = Field(..., gt=0)
    purchaser: ContactIn
    recipient_email: EmailStr
    recipient_name: str = Field("", max_length=200)


class GiftPurchaseResponse(BaseModel):
    payment_reference: str
    checkout_url: str
    amount_cents: int
    currency: str
    status: DiscountStatus
    expires_at: Optional[datetime]
