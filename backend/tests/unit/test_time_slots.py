"""Unit tests for wall-clock slot values and date parsing."""

from datetime import date, datetime

import pytest

from consultbook.core.exceptions import InvalidInputException
from consultbook.domain.time_slots import (
    TimeSlot,
    earliest_start,
    hours_until,
    latest_end,
    normalize_slots,
    parse_booking_date,
    parse_time_of_day,
    slot_duration_minutes,
)


class TestParsing:
    def test_parse_time_of_day_accepts_zero_padded_24h(self):
        assert parse_time_of_day("09:30").hour == 9
        assert parse_time_of_day("23:59").minute == 59

    @pytest.mark.parametrize("value", ["9:30", "24:00", "12:60", "noon", ""])
    def test_parse_time_of_day_rejects_malformed(self, value):
        with pytest.raises(InvalidInputException):
            parse_time_of_day(value)

    def test_parse_booking_date_accepts_date_datetime_and_iso(self):
        assert parse_booking_date(date(2026, 3, 9)) == date(2026, 3, 9)
        assert parse_booking_date(datetime(2026, 3, 9, 14, 0)) == date(2026, 3, 9)
        assert parse_booking_date("2026-03-09") == date(2026, 3, 9)

    @pytest.mark.parametrize("value", ["2026-02-30", "03/09/2026", None, 20260309])
    def test_parse_booking_date_rejects_invalid(self, value):
        with pytest.raises(InvalidInputException) as exc:
            parse_booking_date(value, field="booking_date")
        assert exc.value.details["field"] == "booking_date"


class TestTimeSlot:
    def test_key_and_minutes(self):
        slot = TimeSlot("09:00", "10:30")
        assert slot.key == "09:00-10:30"
        assert slot.minutes == 90
        assert slot.to_dict() == {"start_time": "09:00", "end_time": "10:30"}

    def test_start_must_precede_end(self):
        with pytest.raises(InvalidInputException):
            TimeSlot("10:00", "10:00")
        with pytest.raises(InvalidInputException):
            TimeSlot("11:00", "10:00")

    def test_from_value_accepts_mappings_and_objects(self):
        class Window:
            start_time = "09:00"
            end_time = "10:00"

        assert TimeSlot.from_value({"start_time": "09:00", "end_time": "10:00"}) == TimeSlot(
            "09:00", "10:00"
        )
        assert TimeSlot.from_value(Window()).pair == ("09:00", "10:00")

    def test_from_value_requires_both_boundaries(self):
        with pytest.raises(InvalidInputException):
            TimeSlot.from_value({"start_time": "09:00"})

    def test_datetimes_on_a_date(self):
        on = date(2026, 3, 9)
        slots = [TimeSlot("10:00", "11:00"), TimeSlot("09:00", "10:00")]
        assert earliest_start(on, slots) == datetime(2026, 3, 9, 9, 0)
        assert latest_end(on, slots) == datetime(2026, 3, 9, 11, 0)


class TestNormalizeSlots:
    def test_empty_list_rejected(self):
        with pytest.raises(InvalidInputException, match="At least one time slot"):
            normalize_slots([])

    def test_duplicates_rejected(self):
        with pytest.raises(InvalidInputException, match="Duplicate time slot 09:00-10:00"):
            normalize_slots(
                [
                    {"start_time": "09:00", "end_time": "10:00"},
                    {"start_time": "09:00", "end_time": "10:00"},
                ]
            )

    def test_order_preserved(self):
        slots = normalize_slots(
            [
                {"start_time": "11:00", "end_time": "12:00"},
                {"start_time": "09:00", "end_time": "10:00"},
            ]
        )
        assert [s.key for s in slots] == ["11:00-12:00", "09:00-10:00"]


def test_slot_duration_minutes_applies_minimum_and_default():
    assert slot_duration_minutes(TimeSlot("09:00", "10:00"), minimum=30, default=60) == 60
    assert slot_duration_minutes(TimeSlot("09:00", "09:15"), minimum=30, default=60) == 30
    assert slot_duration_minutes({"start_time": "bad"}, minimum=30, default=60) == 60


def test_hours_until_is_negative_for_past_moments():
    now = datetime(2026, 3, 9, 12, 0)
    assert hours_until(datetime(2026, 3, 9, 22, 0), now) == 10
    assert hours_until(datetime(2026, 3, 9, 11, 0), now) == -1
