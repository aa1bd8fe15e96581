"""Status rules shared by creation, approval and reschedule approval."""

from __future__ import annotations

from datetime import datetime
from typing import FrozenSet, Union

from consultbook.models.booking import BookingStatus

TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED}
)
SCHEDULED_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.APPROVED, BookingStatus.CONFIRMED, BookingStatus.UPCOMING}
)
CANCELLABLE_STATUSES: FrozenSet[BookingStatus] = frozenset({BookingStatus.PENDING})


def derive_status_on_schedule_change(
    current: Union[BookingStatus, str], new_start: datetime, now: datetime
) -> BookingStatus:
    """Status a booking should carry after its start time is set or moved.

    Pending and terminal bookings keep their status. An accepted booking whose
    new start is still ahead becomes ``upcoming``; otherwise it stays as is.
    """
    status = BookingStatus(current)
    if status is BookingStatus.PENDING or status in TERMINAL_STATUSES:
        return status
    if new_start > now:
        return BookingStatus.UPCOMING
    return status
