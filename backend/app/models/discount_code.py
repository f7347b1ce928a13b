"""
Gift and promo codes, and the redemption ledger.

A redemption row is written once per (code, booking) when a reservation is
made permanent after payment. The unique constraint is what makes a
redelivered payment confirmation harmless.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, CheckConstraint, func

from app.db.base import Base, TimestampMixin


class DiscountCodeModel(Base, TimestampMixin):
    __tablename__ = "discount_codes"

    code = Column(String(32), primary_key=True)
    kind = Column(String(10), nullable=False)  # gift, promo
    # Gift: balance in cents. Promo: uses remaining, NULL when unlimited.
    balance_or_uses_remaining = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="active")
    expires_at = Column(DateTime(timezone=True), nullable=True)
    currency = Column(String(3), nullable=False, default="eur")
    initial_value_cents = Column(Integer, nullable=True)
    discount_type = Column(String(20), nullable=True)  # percentage, fixed
    discount_value = Column(Integer, nullable=True)
    max_uses = Column(Integer, nullable=True)
    notes = Column(String(500), nullable=True)
    # Gateway payment reference of a customer gift purchase
    purchase_reference = Column(String(255), nullable=True, unique=True)

    __table_args__ = (
        CheckConstraint("kind IN ('gift', 'promo')", name="check_discount_kind"),
        CheckConstraint(
            "status IN ('pending', 'active', 'partially-used', 'exhausted', 'expired')",
            name="check_discount_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<DiscountCode(code={self.code}, kind={self.kind}, remaining={self.balance_or_uses_remaining})>"


class RedemptionModel(Base):
    __tablename__ = "redemptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(32), ForeignKey("discount_codes.code"), nullable=False, index=True)
    booking_id = Column(Integer, nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    redeemed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("code", "booking_id", name="uq_redemption_code_booking"),
    )
