"""Injectable wall clock.

All scheduling decisions use naive datetimes in the provider's local time.
Services receive a clock so tests can pin "now".
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Protocol

import pytz

from consultbook.core.config import settings


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in ``provider_timezone``, returned naive."""

    def __init__(self, timezone_name: Optional[str] = None) -> None:
        self.timezone_name = timezone_name

    def now(self) -> datetime:
        zone = pytz.timezone(self.timezone_name or settings.provider_timezone)
        return datetime.now(zone).replace(tzinfo=None, microsecond=0)


class FixedClock:
    """Clock frozen at a given instant; advance it manually."""

    def __init__(self, current: datetime) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current


system_clock = SystemClock()
