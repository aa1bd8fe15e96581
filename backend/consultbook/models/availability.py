# backend/consultbook/models/availability.py
"""
Weekly availability template models.

One template per booking type. Each template has up to seven days, and each
day holds an ordered list of ``HH:MM`` windows. Windows are the bookable
slots; the resolver subtracts held bookings from them.
"""

from typing import List, Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import DayOfWeek
from ..core.ulid_helper import generate_ulid
from ..database import Base
from ..domain.time_slots import TimeSlot


class AvailabilityTemplate(Base):
    __tablename__ = "availability_templates"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    booking_type = Column(String(32), nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    days = relationship(
        "AvailabilityDay",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="AvailabilityDay.position",
        collection_class=ordering_list("position"),
    )

    def get_day(self, day: DayOfWeek) -> Optional["AvailabilityDay"]:
        for candidate in self.days:
            if candidate.day_of_week == day.value:
                return candidate
        return None

    def __repr__(self) -> str:
        return f"<AvailabilityTemplate {self.booking_type} active={self.is_active}>"


class AvailabilityDay(Base):
    __tablename__ = "availability_days"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    template_id = Column(
        String(26),
        ForeignKey("availability_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_of_week = Column(String(10), nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True)
    position = Column(Integer, nullable=False, default=0)

    template = relationship("AvailabilityTemplate", back_populates="days")
    windows = relationship(
        "AvailabilityWindow",
        back_populates="day",
        cascade="all, delete-orphan",
        order_by="AvailabilityWindow.position",
        collection_class=ordering_list("position"),
    )

    __table_args__ = (UniqueConstraint("template_id", "day_of_week", name="uq_template_day"),)

    def enabled_slots(self) -> List[TimeSlot]:
        """Enabled windows in template order."""
        return [window.to_slot() for window in self.windows if window.is_enabled]


class AvailabilityWindow(Base):
    __tablename__ = "availability_windows"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    day_id = Column(
        String(26),
        ForeignKey("availability_days.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True)
    position = Column(Integer, nullable=False, default=0)

    day = relationship("AvailabilityDay", back_populates="windows")

    def to_slot(self) -> TimeSlot:
        return TimeSlot(self.start_time, self.end_time)
