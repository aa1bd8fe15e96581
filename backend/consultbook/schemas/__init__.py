"""Pydantic request/response schemas."""

from .availability import (
    AvailabilityDayInput,
    AvailabilityTemplateResponse,
    TimeWindowInput,
)
from .booking import BookingListResponse, BookingResponse, Pagination, SlotResponse
from .reschedule import RescheduleRequestListResponse, RescheduleRequestResponse

__all__ = [
    "AvailabilityDayInput",
    "AvailabilityTemplateResponse",
    "BookingListResponse",
    "BookingResponse",
    "Pagination",
    "RescheduleRequestListResponse",
    "RescheduleRequestResponse",
    "SlotResponse",
    "TimeWindowInput",
]
