# backend/consultbook/schemas/booking.py
"""
Booking response schemas.

BookingResponse adds the display fields clients show in lists and detail
views: the short booking reference, the booking type's display name and a
MM/DD/YYYY date.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..core.exceptions import InvalidInputException
from ..domain.booking_types import BOOKING_TYPE_CAPABILITIES, parse_booking_type
from ..models.booking import Booking
from ._strict_base import StandardizedModel


class SlotResponse(StandardizedModel):
    start_time: str
    end_time: str


class ReviewSummary(StandardizedModel):
    id: str
    rating: int
    review_text: Optional[str] = None
    created_at: Optional[datetime] = None


class BookingResponse(StandardizedModel):
    id: str
    booking_ref: str = Field(..., description="'#' followed by the last 6 characters of the id")
    user_id: str
    booking_type: str
    type_display: str
    booking_date: date
    date_formatted: str
    slots: List[SlotResponse]
    status: str
    payment_status: str
    amount: float
    funding_source: str
    details: Optional[Dict[str, Any]] = None
    address: Optional[str] = None
    meeting_link: Optional[str] = None
    rejection_reason: Optional[str] = None
    is_rescheduled: bool = False
    has_pending_reschedule: bool = False
    review: Optional[ReviewSummary] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_booking(
        cls,
        booking: Booking,
        *,
        has_pending_reschedule: bool = False,
        include_review: bool = False,
    ) -> "BookingResponse":
        try:
            type_display = BOOKING_TYPE_CAPABILITIES[
                parse_booking_type(booking.booking_type)
            ].display_name
        except InvalidInputException:
            type_display = "N/A"
        review = None
        if include_review and booking.review is not None:
            review = ReviewSummary.model_validate(booking.review)
        return cls(
            id=booking.id,
            booking_ref=booking.booking_ref,
            user_id=booking.user_id,
            booking_type=booking.booking_type,
            type_display=type_display,
            booking_date=booking.booking_date,
            date_formatted=booking.booking_date.strftime("%m/%d/%Y"),
            slots=[SlotResponse(**slot) for slot in (booking.slots or [])],
            status=booking.status,
            payment_status=booking.payment_status,
            amount=float(booking.amount or 0),
            funding_source=booking.funding_source,
            details=booking.details,
            address=booking.address,
            meeting_link=booking.meeting_link,
            rejection_reason=booking.rejection_reason,
            is_rescheduled=bool(booking.is_rescheduled),
            has_pending_reschedule=has_pending_reschedule,
            review=review,
            created_at=booking.created_at,
        )


class Pagination(StandardizedModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=(total + limit - 1) // limit)


class BookingListResponse(StandardizedModel):
    items: List[BookingResponse]
    pagination: Pagination
