# backend/consultbook/services/availability_template_service.py
"""
Availability Template Service for consultbook

Operator maintenance of the weekly availability template: replace the
whole schedule, toggle a weekday, add or remove a single window. The
scheduling side only reads what this service writes.
"""

import logging
from typing import Any, Iterable, List, Optional

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.enums import DayOfWeek
from ..core.exceptions import ConflictException, InvalidInputException, NotFoundException
from ..domain.booking_types import parse_booking_type
from ..domain.time_slots import TimeSlot
from ..models.availability import AvailabilityDay, AvailabilityTemplate, AvailabilityWindow
from ..repositories.factory import RepositoryFactory
from ..schemas.availability import AvailabilityDayInput, AvailabilityTemplateResponse
from .base import BaseService

logger = logging.getLogger(__name__)

_DAY_LIST = TypeAdapter(List[AvailabilityDayInput])


def _parse_day(value: Any) -> DayOfWeek:
    try:
        return DayOfWeek(str(value).lower())
    except ValueError:
        raise InvalidInputException(f"Invalid day of week '{value}'", field="day_of_week") from None


class AvailabilityTemplateService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.repository = RepositoryFactory.create_availability_repository(db)

    def _require_template(self, booking_type: Any) -> AvailabilityTemplate:
        type_value = parse_booking_type(booking_type).value
        template = self.repository.get_by_booking_type(type_value)
        if template is None:
            raise NotFoundException(f"No availability template for {type_value}")
        return template

    @staticmethod
    def _ensure_day(template: AvailabilityTemplate, day: DayOfWeek) -> AvailabilityDay:
        existing = template.get_day(day)
        if existing is not None:
            return existing
        created = AvailabilityDay(day_of_week=day.value, is_enabled=True)
        template.days.append(created)
        return created

    @BaseService.measure_operation("upsert_availability_template")
    def upsert_template(
        self,
        booking_type: Any,
        weekly_schedule: Iterable[Any],
        is_active: bool = True,
    ) -> AvailabilityTemplateResponse:
        """
        Replace the weekly schedule of a booking type, creating the template if needed.

        Args:
            booking_type: Booking type
            weekly_schedule: AvailabilityDayInput objects or equivalent dicts
            is_active: Whether the template is used by the resolver

        Raises:
            InvalidInputException: Malformed schedule or duplicate weekday
        """
        type_value = parse_booking_type(booking_type).value
        try:
            days = _DAY_LIST.validate_python(list(weekly_schedule))
        except ValidationError as exc:
            raise InvalidInputException(
                "Invalid weekly schedule", field="weekly_schedule", details={"errors": exc.errors()}
            ) from exc
        names = [d.day_of_week for d in days]
        if len(names) != len(set(names)):
            raise InvalidInputException("Each weekday may appear only once", field="weekly_schedule")

        self.log_operation("upsert_template", booking_type=type_value, days=len(days))
        with self.transaction():
            template = self.repository.get_by_booking_type(type_value)
            if template is None:
                template = self.repository.create(booking_type=type_value, is_active=is_active)
            else:
                template.is_active = is_active
                template.days.clear()
                self.db.flush()

            for day_input in sorted(days, key=lambda d: list(DayOfWeek).index(d.day_of_week)):
                day = AvailabilityDay(
                    day_of_week=day_input.day_of_week.value, is_enabled=day_input.is_enabled
                )
                for window in day_input.slots:
                    day.windows.append(
                        AvailabilityWindow(
                            start_time=window.start_time,
                            end_time=window.end_time,
                            is_enabled=window.is_enabled,
                        )
                    )
                template.days.append(day)
            self.db.flush()
        self.db.refresh(template)
        return AvailabilityTemplateResponse.model_validate(template)

    def get_template(self, booking_type: Any) -> Optional[AvailabilityTemplateResponse]:
        template = self.repository.get_by_booking_type(parse_booking_type(booking_type).value)
        return AvailabilityTemplateResponse.model_validate(template) if template else None

    @BaseService.measure_operation("toggle_availability_day")
    def toggle_day(self, booking_type: Any, day: Any, enabled: bool) -> AvailabilityTemplateResponse:
        weekday = _parse_day(day)
        with self.transaction():
            template = self._require_template(booking_type)
            self._ensure_day(template, weekday).is_enabled = enabled
        self.logger.info("%s %s set to enabled=%s", template.booking_type, weekday.value, enabled)
        return AvailabilityTemplateResponse.model_validate(template)

    @BaseService.measure_operation("add_availability_window")
    def add_window(
        self, booking_type: Any, day: Any, start_time: str, end_time: str
    ) -> AvailabilityTemplateResponse:
        """
        Append a window to a weekday.

        Raises:
            InvalidInputException: Malformed time or start not before end
            ConflictException: The exact window already exists on that day
            NotFoundException: No template for the booking type
        """
        weekday = _parse_day(day)
        slot = TimeSlot(start_time, end_time)
        with self.transaction():
            template = self._require_template(booking_type)
            target = self._ensure_day(template, weekday)
            if any(w.start_time == slot.start_time and w.end_time == slot.end_time for w in target.windows):
                raise ConflictException(f"Time slot {slot.key} already exists on {weekday.value}")
            target.windows.append(
                AvailabilityWindow(start_time=slot.start_time, end_time=slot.end_time, is_enabled=True)
            )
        return AvailabilityTemplateResponse.model_validate(template)

    @BaseService.measure_operation("remove_availability_window")
    def remove_window(self, booking_type: Any, day: Any, index: int) -> AvailabilityTemplateResponse:
        weekday = _parse_day(day)
        with self.transaction():
            template = self._require_template(booking_type)
            target = template.get_day(weekday)
            if target is None or index < 0 or index >= len(target.windows):
                raise NotFoundException(f"No time slot at index {index} on {weekday.value}")
            target.windows.pop(index)
        return AvailabilityTemplateResponse.model_validate(template)
