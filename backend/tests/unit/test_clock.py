"""Unit tests for the wall clocks and the provider timezone setting."""

from datetime import datetime, timedelta

from pydantic import ValidationError
import pytest
import pytz

from consultbook.core.clock import FixedClock, SystemClock
from consultbook.core.config import Settings, settings


class TestSystemClock:
    def test_now_is_naive_wall_clock_in_provider_zone(self):
        now = SystemClock("Asia/Tokyo").now()
        expected = datetime.now(pytz.timezone("Asia/Tokyo")).replace(tzinfo=None)

        assert now.tzinfo is None
        assert now.microsecond == 0
        assert abs(expected - now) < timedelta(seconds=5)

    def test_defaults_to_configured_zone(self, monkeypatch):
        monkeypatch.setattr(settings, "provider_timezone", "Pacific/Auckland")
        expected = datetime.now(pytz.timezone("Pacific/Auckland")).replace(tzinfo=None)

        assert abs(expected - SystemClock().now()) < timedelta(seconds=5)


def test_fixed_clock_advances():
    clock = FixedClock(datetime(2026, 3, 9, 8, 0))

    assert clock.advance(minutes=30) == datetime(2026, 3, 9, 8, 30)
    assert clock.now() == datetime(2026, 3, 9, 8, 30)


def test_unknown_provider_timezone_rejected():
    with pytest.raises(ValidationError, match="Unknown timezone"):
        Settings(provider_timezone="Mars/Olympus_Mons")
