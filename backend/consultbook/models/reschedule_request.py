# backend/consultbook/models/reschedule_request.py
"""
Reschedule request model.

A proposal, made by either the booking's subject or an operator, to move a
booking to another date and slots. The counterparty of ``requested_by``
approves or rejects it; the proposer may withdraw it while pending.
At most one pending request exists per booking; a partial unique index backs it.
"""

from datetime import datetime
from enum import Enum
from typing import List

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base
from ..domain.time_slots import TimeSlot, earliest_start


class RescheduleStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class RescheduleRequest(Base):
    __tablename__ = "reschedule_requests"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(26), nullable=False, index=True)  # booking subject
    requested_date = Column(Date, nullable=False)
    requested_slots = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default=RescheduleStatus.PENDING.value, index=True)
    requested_by = Column(String(20), nullable=False)  # ActorRole value
    requested_by_id = Column(String(26), nullable=False)
    reviewed_by_id = Column(String(26), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    booking = relationship("Booking", back_populates="reschedule_requests")

    __table_args__ = (Index("ix_reschedule_requests_booking_status", "booking_id", "status"),)

    @property
    def time_slots(self) -> List[TimeSlot]:
        return [TimeSlot.from_value(slot) for slot in (self.requested_slots or [])]

    @property
    def requested_start(self) -> datetime:
        return earliest_start(self.requested_date, self.time_slots)

    @property
    def is_pending(self) -> bool:
        return self.status == RescheduleStatus.PENDING.value

    def __repr__(self) -> str:
        return f"<RescheduleRequest {self.id} booking={self.booking_id} ({self.status})>"


# One pending request per booking, enforced by storage
Index(
    "uq_reschedule_requests_pending_booking",
    RescheduleRequest.booking_id,
    unique=True,
    postgresql_where=(RescheduleRequest.status == RescheduleStatus.PENDING.value),
    sqlite_where=(RescheduleRequest.status == RescheduleStatus.PENDING.value),
)
