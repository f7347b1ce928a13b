"""
Pydantic schemas for discount code validation and issuance.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.domain.models import DiscountCode, DiscountKind, DiscountStatus, PromoDiscountType


class DiscountCodeResponse(BaseModel):
    code: str
    kind: DiscountKind
    status: DiscountStatus
    currency: str
    expires_at: Optional[datetime]
    balance_cents: Optional[int] = None
    uses_remaining: Optional[int] = None
    discount_type: Optional[PromoDiscountType] = None
    discount_value: Optional[int] = None

    @classmethod
    def from_domain(cls, discount_code: DiscountCode) -> "DiscountCodeResponse":
        is_gift = discount_code.kind == DiscountKind.GIFT
        return cls(
            code=discount_code.code,
            kind=discount_code.kind,
            status=discount_code.status,
            currency=discount_code.currency,
            expires_at=discount_code.expires_at,
            balance_cents=discount_code.balance_or_uses_remaining if is_gift else None,
            uses_remaining=None if is_gift else discount_code.balance_or_uses_remaining,
            discount_type=discount_code.discount_type,
            discount_value=discount_code.discount_value,
        )


class PromoCodeGenerate(BaseModel):
    count: int = Field(..., ge=1, le=1000)
    discount_type: PromoDiscountType
    discount_value: int = Field(..., ge=0)
    max_uses: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)


class PromoCodeGenerateResponse(BaseModel):
    created: list[str]
    count: int
    failed: int


class GiftCodeIssue(BaseModel):
    value_cents: int = Field(..., gt=0)
    currency: str = Field("eur", min_length=3, max_length=3)
    expires_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)
