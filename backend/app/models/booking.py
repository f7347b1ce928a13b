"""
Booking model representing a customer's reservation of one or more sessions.

Key design decisions:
- session_ids is stored as a JSON list; the set is fixed at creation and
  capacity is always adjusted for the whole set
- Pending bookings are deleted on cancel/expiry, so there is no history row;
  a cancelled row that still exists is a cancellation left unfinished
- Composite index on (status, payment_status, expires_at) serves the reaper
"""

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String

from app.db.base import Base, TimestampMixin


class BookingModel(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    offering_id = Column(Integer, ForeignKey("offerings.id"), nullable=False, index=True)
    session_ids = Column(JSON, nullable=False)
    party_size = Column(Integer, nullable=False)

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False, default="")

    status = Column(String(20), nullable=False, default="pending")
    payment_status = Column(String(20), nullable=False, default="unpaid")
    expires_at = Column(DateTime(timezone=True), nullable=True)
    payment_reference = Column(String(255), nullable=True, index=True)

    total_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    discount_code = Column(String(32), nullable=True)
    discount_amount_cents = Column(Integer, nullable=False, default=0)

    # Cancellation progress, set one step at a time after the cancel claim
    discount_released = Column(Boolean, nullable=False, default=False)
    capacity_released = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("party_size > 0", name="check_booking_party_size_positive"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('unpaid', 'paid', 'refunded', 'failed')",
            name="check_booking_payment_status",
        ),
        CheckConstraint("discount_amount_cents >= 0", name="check_booking_discount_non_negative"),
        Index("ix_bookings_expiry", "status", "payment_status", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, offering={self.offering_id}, status={self.status})>"
