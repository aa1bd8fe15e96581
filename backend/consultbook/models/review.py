# backend/consultbook/models/review.py
"""
Review model.

Design notes:
- One review per booking (DB unique constraint)
- Only completed bookings may be reviewed, enforced by BookingService
"""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..core.ulid_helper import generate_ulid
from ..database import Base

MAX_REVIEW_LENGTH = 500


class Review(Base):
    """Per-booking rating submitted by the booking's subject."""

    __tablename__ = "booking_reviews"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    booking_id = Column(String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(26), nullable=False, index=True)

    rating = Column(Integer, nullable=False)
    review_text = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    booking = relationship("Booking", back_populates="review")

    __table_args__ = (
        UniqueConstraint("booking_id", name="uq_booking_reviews_booking"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_booking_reviews_rating_range"),
        CheckConstraint(
            "(review_text IS NULL) OR (length(review_text) <= 500)",
            name="ck_booking_reviews_text_length",
        ),
    )
