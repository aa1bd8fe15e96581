"""Booking-type capability table.

Each booking type declares whether it needs a live meeting link and how
long its meetings run; callers ask the table instead of comparing type names.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from consultbook.core.enums import BookingType
from consultbook.core.exceptions import InvalidInputException


@dataclass(frozen=True)
class BookingTypeCapabilities:
    display_name: str
    requires_live_meeting: bool
    min_slot_minutes: int = 30
    default_slot_minutes: int = 60


BOOKING_TYPE_CAPABILITIES: Dict[BookingType, BookingTypeCapabilities] = {
    BookingType.VIDEO_CONSULTANCY: BookingTypeCapabilities(
        display_name="Video Consultation",
        requires_live_meeting=True,
    ),
    BookingType.ONSITE_APPOINTMENT: BookingTypeCapabilities(
        display_name="Onsite Visit",
        requires_live_meeting=False,
    ),
}


def parse_booking_type(value: Any) -> BookingType:
    try:
        return BookingType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in BookingType)
        raise InvalidInputException(
            f"Invalid booking type '{value}'. Allowed: {allowed}", field="booking_type"
        ) from None


def capabilities_for(booking_type: Any) -> BookingTypeCapabilities:
    return BOOKING_TYPE_CAPABILITIES[parse_booking_type(booking_type)]


def live_meeting_types() -> List[str]:
    return [t.value for t, caps in BOOKING_TYPE_CAPABILITIES.items() if caps.requires_live_meeting]
