"""
Offering model: a bookable class (one session) or course (all sessions).
"""

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class OfferingModel(Base, TimestampMixin):
    __tablename__ = "offerings"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    kind = Column(String(20), nullable=False)  # single, multi
    capacity = Column(Integer, nullable=False)
    price_per_person_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="eur")
    is_published = Column(Boolean, nullable=False, default=True)

    sessions = relationship("SessionModel", back_populates="offering")

    __table_args__ = (
        CheckConstraint("kind IN ('single', 'multi')", name="check_offering_kind"),
        CheckConstraint("capacity > 0", name="check_offering_capacity_positive"),
        CheckConstraint("price_per_person_cents >= 0", name="check_offering_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Offering(id={self.id}, title={self.title}, kind={self.kind})>"
