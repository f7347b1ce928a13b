"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from app.domain.models import BookingStatus, PaymentStatus


class BookingResponse(BaseModel):
    id: int
    offering_id: int
    session_ids: list[int]
    party_size: int
    status: BookingStatus
    payment_status: PaymentStatus
    expires_at: Optional[datetime]
    total_cents: int
    discount_code: Optional[str]
    discount_amount_cents: int
    amount_due_cents: int
    currency: str
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    cancelled: bool
