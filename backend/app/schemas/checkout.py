"""
Pydantic schemas for checkout request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from app.domain.models import BookingStatus, ContactInfo


class ContactIn(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field("", max_length=50)

    def to_domain(self) -> ContactInfo:
        return ContactInfo(
            first_name=self.first_name.strip(),
            last_name=self.last_name.strip(),
            email=str(self.email),
            phone=self.phone.strip(),
        )


class CheckoutCreate(BaseModel):
    offering_id: int
    session_id: Optional[int] = None
    party_size: int = Field(..., gt=0)
    contact: ContactIn
    discount_code: Optional[str] = Field(None, max_length=32)


class CheckoutResponse(BaseModel):
    booking_id: int
    status: BookingStatus
    amount_due_cents: int
    currency: str
    checkout_url: Optional[str]
    confirmed: bool
    expires_at: Optional[datetime]
