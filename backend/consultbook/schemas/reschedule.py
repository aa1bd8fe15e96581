# backend/consultbook/schemas/reschedule.py
"""Reschedule request response schemas."""

from datetime import date, datetime
from typing import List, Optional

from ..models.reschedule_request import RescheduleRequest
from ._strict_base import StandardizedModel
from .booking import Pagination, SlotResponse


class RescheduleRequestResponse(StandardizedModel):
    id: str
    booking_id: str
    booking_ref: Optional[str] = None
    user_id: str
    requested_date: date
    requested_slots: List[SlotResponse]
    status: str
    requested_by: str
    requested_by_id: str
    reviewed_by_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_request(cls, request: RescheduleRequest) -> "RescheduleRequestResponse":
        return cls(
            id=request.id,
            booking_id=request.booking_id,
            booking_ref=request.booking.booking_ref if request.booking is not None else None,
            user_id=request.user_id,
            requested_date=request.requested_date,
            requested_slots=[SlotResponse(**slot) for slot in (request.requested_slots or [])],
            status=request.status,
            requested_by=request.requested_by,
            requested_by_id=request.requested_by_id,
            reviewed_by_id=request.reviewed_by_id,
            reviewed_at=request.reviewed_at,
            notes=request.notes,
            created_at=request.created_at,
        )


class RescheduleRequestListResponse(StandardizedModel):
    items: List[RescheduleRequestResponse]
    pagination: Pagination
