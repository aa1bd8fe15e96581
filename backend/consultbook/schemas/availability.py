# backend/consultbook/schemas/availability.py
"""Weekly availability template schemas."""

import re
from typing import List

from pydantic import Field, field_validator, model_validator

from ..core.enums import BookingType, DayOfWeek
from ._strict_base import StandardizedModel, StrictRequestModel

TIME_REGEX = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class TimeWindowInput(StrictRequestModel):
    start_time: str = Field(..., description="HH:MM, 24-hour")
    end_time: str = Field(..., description="HH:MM, 24-hour")
    is_enabled: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def _validate_time(cls, value: str) -> str:
        if not TIME_REGEX.match(value):
            raise ValueError("time must be HH:MM (24-hour)")
        return value

    @model_validator(mode="after")
    def _start_before_end(self) -> "TimeWindowInput":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityDayInput(StrictRequestModel):
    day_of_week: DayOfWeek
    is_enabled: bool = True
    slots: List[TimeWindowInput] = Field(default_factory=list)

    @model_validator(mode="after")
    def _no_duplicate_windows(self) -> "AvailabilityDayInput":
        keys = [(w.start_time, w.end_time) for w in self.slots]
        if len(keys) != len(set(keys)):
            raise ValueError(f"duplicate time slot on {self.day_of_week.value}")
        return self


class TimeWindowResponse(StandardizedModel):
    start_time: str
    end_time: str
    is_enabled: bool


class AvailabilityDayResponse(StandardizedModel):
    day_of_week: DayOfWeek
    is_enabled: bool
    slots: List[TimeWindowResponse] = Field(validation_alias="windows")


class AvailabilityTemplateResponse(StandardizedModel):
    id: str
    booking_type: BookingType
    is_active: bool
    days: List[AvailabilityDayResponse]
