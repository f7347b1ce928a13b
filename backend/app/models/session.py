"""
Session model with spot inventory tracking.

Key design decisions:
- `available_spots` is denormalized (avoids counting bookings per request)
- No `available_spots >= 0` CHECK constraint: reservations decrement first
  and verify afterwards, so a transient negative must be writable for the
  rollback to observe it
- The offering is joined eagerly so session reads carry their offering
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class SessionModel(Base, TimestampMixin):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    offering_id = Column(Integer, ForeignKey("offerings.id"), nullable=False, index=True)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    available_spots = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="scheduled")

    offering = relationship("OfferingModel", back_populates="sessions", lazy="joined")

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'cancelled', 'completed')",
            name="check_session_status",
        ),
        Index("ix_sessions_offering_starts_at", "offering_id", "starts_at"),
    )

    def __repr__(self) -> str:
        return f"<Session(id={self.id}, offering={self.offering_id}, available={self.available_spots})>"
