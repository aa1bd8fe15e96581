# backend/consultbook/core/enums.py
"""
Core enums for the consultbook scheduling engine.

Statuses that belong to a single model live beside that model
(see models.booking and models.reschedule_request).
"""

from datetime import date
from enum import Enum


class BookingType(str, Enum):
    """Kinds of consultation a client can reserve."""

    VIDEO_CONSULTANCY = "video_consultancy"
    ONSITE_APPOINTMENT = "onsite_appointment"


class DayOfWeek(str, Enum):
    """Weekday names used by the weekly availability template."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, value: date) -> "DayOfWeek":
        return list(cls)[value.weekday()]


class ActorRole(str, Enum):
    """Who is acting on a booking: the booking's subject or a platform operator."""

    USER = "user"
    OPERATOR = "operator"

    @property
    def counterparty(self) -> "ActorRole":
        return ActorRole.OPERATOR if self is ActorRole.USER else ActorRole.USER


class Decision(str, Enum):
    """Accepted values for approve/reject responses."""

    APPROVED = "approved"
    REJECTED = "rejected"
