# backend/consultbook/models/booking.py
"""
Booking model for the consultbook scheduling engine.

A booking is one subject's reservation of one or more template slots on a
single date. Slots are stored as a JSON list of ``{start_time, end_time}``
pairs; the companion ``booking_slot_claims`` table holds one unique row per
slot for every non-cancelled booking so two writers can never persist the
same slot twice.

Bookings are never physically deleted.
"""

from datetime import date, datetime
from enum import Enum
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base
from ..domain.time_slots import TimeSlot, earliest_start, latest_end

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Awaiting operator decision
    APPROVED = "approved"  # Accepted, start already passed or not yet promoted
    CONFIRMED = "confirmed"
    UPCOMING = "upcoming"  # Accepted and starts in the future
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class FundingSource(str, Enum):
    """How a booking was paid for."""

    SUBSCRIPTION = "subscription"  # Counted against the plan's session allowance
    ONE_OFF = "one_off"  # Paid by a single charge, refundable on cancel


class Booking(Base):
    """
    One subject's reservation of template slots on a date.

    Status flow: pending -> approved/rejected; approved/confirmed -> upcoming
    -> completed; any non-terminal status may move to cancelled.
    """

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    user_id = Column(String(26), nullable=False, index=True)

    booking_type = Column(String(32), nullable=False)
    booking_date = Column(Date, nullable=False)
    slots = Column(JSON, nullable=False, default=list)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    funding_source = Column(
        String(20), nullable=False, default=FundingSource.SUBSCRIPTION.value
    )
    payment_reference = Column(String(255), nullable=True, index=True, comment="One-off charge id")

    rejection_reason = Column(Text, nullable=True)
    meeting_link = Column(String(1024), nullable=True)
    is_rescheduled = Column(Boolean, nullable=False, default=False)
    address = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)

    # Provider-local wall clock
    reminder_sent_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by_id = Column(String(26), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    slot_claims = relationship(
        "BookingSlotClaim", back_populates="booking", cascade="all, delete-orphan"
    )
    review = relationship("Review", back_populates="booking", uselist=False)
    reschedule_requests = relationship(
        "RescheduleRequest",
        back_populates="booking",
        order_by="RescheduleRequest.created_at",
    )

    __table_args__ = (
        Index("ix_bookings_type_date", "booking_type", "booking_date"),
        CheckConstraint("amount >= 0", name="check_booking_amount_non_negative"),
    )

    @property
    def time_slots(self) -> List[TimeSlot]:
        return [TimeSlot.from_value(slot) for slot in (self.slots or [])]

    @property
    def start_datetime(self) -> Optional[datetime]:
        slots = self.time_slots
        return earliest_start(self.booking_date, slots) if slots else None

    @property
    def end_datetime(self) -> Optional[datetime]:
        slots = self.time_slots
        return latest_end(self.booking_date, slots) if slots else None

    @property
    def booking_ref(self) -> str:
        return f"#{str(self.id)[-6:].rjust(6, '0')}"

    def slot_keys(self) -> List[str]:
        return [slot.key for slot in self.time_slots]

    def is_owned_by(self, user_id: str) -> bool:
        return str(self.user_id) == str(user_id)

    def cancel(self, cancelled_by_id: str, at: datetime, reason: Optional[str] = None) -> None:
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = at
        self.cancelled_by_id = cancelled_by_id
        self.cancellation_reason = reason

    def complete(self, at: datetime) -> None:
        self.status = BookingStatus.COMPLETED.value
        self.completed_at = at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "booking_type": self.booking_type,
            "booking_date": self.booking_date.isoformat() if self.booking_date else None,
            "slots": list(self.slots or []),
            "status": self.status,
            "payment_status": self.payment_status,
            "amount": float(self.amount or 0),
            "funding_source": self.funding_source,
            "is_rescheduled": bool(self.is_rescheduled),
        }

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} {self.booking_type} {self.booking_date} "
            f"{self.slot_keys()} ({self.status})>"
        )


class BookingSlotClaim(Base):
    """One held slot of a non-cancelled booking; unique per type, date and slot."""

    __tablename__ = "booking_slot_claims"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_type = Column(String(32), nullable=False)
    booking_date = Column(Date, nullable=False)
    slot_key = Column(String(11), nullable=False)

    booking = relationship("Booking", back_populates="slot_claims")

    __table_args__ = (
        UniqueConstraint("booking_type", "booking_date", "slot_key", name="uq_booking_slot_claim"),
    )

    @classmethod
    def for_slot(
        cls, booking: Booking, booking_date: date, slot: TimeSlot
    ) -> "BookingSlotClaim":
        return cls(
            booking_id=booking.id,
            booking_type=booking.booking_type,
            booking_date=booking_date,
            slot_key=slot.key,
        )
