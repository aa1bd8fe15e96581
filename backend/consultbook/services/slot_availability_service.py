# backend/consultbook/services/slot_availability_service.py
"""
Slot Availability Service for consultbook

Computes the free slots of a booking type on a date: the enabled windows
of the weekly template for that weekday, minus every slot held by a
non-cancelled booking of the same type and date. Held slots are matched by
exact ``(start_time, end_time)`` string pair and template order is kept.

The resolver is read-only and takes no locks. Data-layer failures are
raised, never reported as "everything is free".
"""

from datetime import date, timedelta
import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import DayOfWeek
from ..core.exceptions import InvalidInputException, SlotUnavailableException
from ..domain.booking_types import parse_booking_type
from ..domain.time_slots import TimeSlot, parse_booking_date
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class SlotAvailabilityService(BaseService):
    """Resolves available slots from the template and held bookings."""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.availability_repository = RepositoryFactory.create_availability_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("resolve_slots")
    def resolve(
        self,
        booking_type: Any,
        booking_date: Any,
        exclude_booking_id: Optional[str] = None,
    ) -> List[TimeSlot]:
        """
        Free slots for a booking type on a date.

        Args:
            booking_type: Booking type (enum or value)
            booking_date: date or ISO YYYY-MM-DD string
            exclude_booking_id: Booking whose own slots should not count as held

        Returns:
            Template windows not held by another booking, in template order

        Raises:
            InvalidInputException: Malformed date or unknown booking type
            RepositoryException: Store failure
        """
        type_value = parse_booking_type(booking_type).value
        target_date = parse_booking_date(booking_date)
        weekday = DayOfWeek.from_date(target_date)

        day = self.availability_repository.get_active_day(type_value, weekday)
        if day is None:
            self.logger.debug("No active %s template day for %s", type_value, weekday.value)
            return []

        template_slots = day.enabled_slots()
        if not template_slots:
            return []

        occupied = self._occupied_pairs(type_value, target_date, exclude_booking_id)
        available = [slot for slot in template_slots if slot.pair not in occupied]
        self.logger.debug(
            "Resolved %d/%d free %s slots on %s",
            len(available),
            len(template_slots),
            type_value,
            target_date,
        )
        return available

    def _occupied_pairs(
        self, booking_type: str, booking_date: date, exclude_booking_id: Optional[str]
    ) -> Set[Tuple[str, str]]:
        occupied: Set[Tuple[str, str]] = set()
        held = self.booking_repository.get_held_bookings(
            booking_type, booking_date, exclude_booking_id=exclude_booking_id
        )
        for booking in held:
            for raw in booking.slots or []:
                start, end = raw.get("start_time"), raw.get("end_time")
                if start and end:
                    occupied.add((start, end))
        return occupied

    def assert_slots_available(
        self,
        booking_type: Any,
        booking_date: Any,
        slots: Iterable[TimeSlot],
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        """
        Raise SlotUnavailableException for the first requested slot that is not free.
        """
        free = {slot.pair for slot in self.resolve(booking_type, booking_date, exclude_booking_id)}
        for slot in slots:
            if slot.pair not in free:
                raise SlotUnavailableException(
                    slot.start_time,
                    slot.end_time,
                    details={"booking_date": str(parse_booking_date(booking_date))},
                )

    @BaseService.measure_operation("resolve_slot_range")
    def resolve_range(
        self, booking_type: Any, start_date: Any, end_date: Any
    ) -> Dict[str, List[TimeSlot]]:
        """
        Free slots for every day of an inclusive date range, keyed by ISO date.

        Raises:
            InvalidInputException: end before start, or range longer than allowed
        """
        first = parse_booking_date(start_date, field="start_date")
        last = parse_booking_date(end_date, field="end_date")
        if last < first:
            raise InvalidInputException("end_date must not be before start_date", field="end_date")
        span = (last - first).days + 1
        if span > settings.max_availability_range_days:
            raise InvalidInputException(
                f"Date range too long: {span} days (max {settings.max_availability_range_days})",
                field="end_date",
            )
        return {
            (first + timedelta(days=offset)).isoformat(): self.resolve(
                booking_type, first + timedelta(days=offset)
            )
            for offset in range(span)
        }
