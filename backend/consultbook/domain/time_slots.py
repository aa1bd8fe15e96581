"""Wall-clock slot values shared by the template, the resolver and bookings.

Slots are compared by their exact ``HH:MM`` string pair, so two windows are
the same slot only when both boundaries match character for character.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
import re
from typing import Any, Iterable, List, Mapping

from consultbook.core.exceptions import InvalidInputException

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_time_of_day(value: str, *, field: str = "time") -> time:
    """Parse a zero-padded 24h ``HH:MM`` string."""
    if not isinstance(value, str) or not _TIME_PATTERN.match(value):
        raise InvalidInputException(
            f"Invalid time '{value}'. Expected HH:MM (24-hour)", field=field
        )
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def parse_booking_date(value: Any, *, field: str = "date") -> date:
    """Accept a date or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and _DATE_PATTERN.match(value.strip()):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise InvalidInputException(f"Invalid date '{value}'. Expected YYYY-MM-DD", field=field)


@dataclass(frozen=True)
class TimeSlot:
    start_time: str
    end_time: str

    def __post_init__(self) -> None:
        start = parse_time_of_day(self.start_time, field="start_time")
        end = parse_time_of_day(self.end_time, field="end_time")
        if start >= end:
            raise InvalidInputException(
                f"Slot start {self.start_time} must be before end {self.end_time}",
                field="slots",
            )

    @classmethod
    def from_value(cls, value: Any) -> "TimeSlot":
        if isinstance(value, TimeSlot):
            return value
        if isinstance(value, Mapping):
            start, end = value.get("start_time"), value.get("end_time")
        else:
            start, end = getattr(value, "start_time", None), getattr(value, "end_time", None)
        if start is None or end is None:
            raise InvalidInputException("Each slot needs start_time and end_time", field="slots")
        return cls(str(start), str(end))

    @property
    def key(self) -> str:
        return f"{self.start_time}-{self.end_time}"

    @property
    def pair(self) -> tuple[str, str]:
        return (self.start_time, self.end_time)

    @property
    def minutes(self) -> int:
        start = parse_time_of_day(self.start_time)
        end = parse_time_of_day(self.end_time)
        return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)

    def starts_at(self, on: date) -> datetime:
        return datetime.combine(on, parse_time_of_day(self.start_time))

    def ends_at(self, on: date) -> datetime:
        return datetime.combine(on, parse_time_of_day(self.end_time))

    def to_dict(self) -> dict[str, str]:
        return {"start_time": self.start_time, "end_time": self.end_time}


def normalize_slots(values: Iterable[Any] | None) -> List[TimeSlot]:
    """Validate a requested slot list: non-empty, well formed, no duplicates."""
    slots = [TimeSlot.from_value(value) for value in (values or [])]
    if not slots:
        raise InvalidInputException("At least one time slot is required", field="slots")
    seen: set[str] = set()
    for slot in slots:
        if slot.key in seen:
            raise InvalidInputException(f"Duplicate time slot {slot.key}", field="slots")
        seen.add(slot.key)
    return slots


def slot_duration_minutes(slot: Any, *, minimum: int, default: int) -> int:
    """Meeting length for a slot: at least ``minimum``, ``default`` when unparseable."""
    try:
        return max(minimum, TimeSlot.from_value(slot).minutes)
    except InvalidInputException:
        return default


def earliest_start(on: date, slots: Iterable[TimeSlot]) -> datetime:
    return min(slot.starts_at(on) for slot in slots)


def latest_end(on: date, slots: Iterable[TimeSlot]) -> datetime:
    return max(slot.ends_at(on) for slot in slots)


def hours_until(moment: datetime, now: datetime) -> float:
    return (moment - now) / timedelta(hours=1)
