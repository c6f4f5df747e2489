"""Business calendar: elapsed work time between two instants.

Work time counts only the 09:00-17:00 wall-clock window of the configured
timezone, skipping weekends and configured holidays. One work day is eight
hours, so results are fractional (1.125 == one day and one hour).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

import pytz

from cycletime_app.core.config import (
    MINUTES_PER_WORKDAY,
    TIMEZONE,
    WORKDAY_END_HOUR,
    WORKDAY_START_HOUR,
)
from cycletime_app.core.holidays import load_holidays


def to_local(value: datetime, tz) -> datetime:
    """Convert an instant to wall-clock time in ``tz`` (naive input is UTC)."""
    if value.tzinfo is None:
        value = pytz.UTC.localize(value)
    return value.astimezone(tz)


@dataclass(frozen=True, slots=True)
class BusinessCalendar:
    timezone: str = TIMEZONE
    holidays: frozenset[str] = frozenset()
    start_hour: int = WORKDAY_START_HOUR
    end_hour: int = WORKDAY_END_HOUR

    @classmethod
    def default(cls) -> BusinessCalendar:
        return cls(holidays=load_holidays())

    @classmethod
    def with_holidays(cls, holidays: Iterable[str]) -> BusinessCalendar:
        return cls(holidays=frozenset(holidays))

    @property
    def tz(self):
        return pytz.timezone(self.timezone)

    def is_work_day(self, day: date) -> bool:
        return day.weekday() < 5 and day.strftime("%Y-%m-%d") not in self.holidays

    def work_window(self, day: date) -> tuple[datetime, datetime]:
        tz = self.tz
        return (
            tz.localize(datetime.combine(day, time(self.start_hour))),
            tz.localize(datetime.combine(day, time(self.end_hour))),
        )

    def work_minutes(self, start: datetime, end: datetime) -> float:
        tz = self.tz
        start_local = to_local(start, tz)
        end_local = to_local(end, tz)
        if start_local > end_local:
            return 0.0

        total = 0.0
        current = start_local.date()
        last = end_local.date()
        while current <= last:
            if self.is_work_day(current):
                window_start, window_end = self.work_window(current)
                effective_start = max(start_local, window_start)
                effective_end = min(end_local, window_end)
                if effective_start < effective_end:
                    total += (effective_end - effective_start).total_seconds() / 60.0
            current += timedelta(days=1)
        return total

    def work_duration(self, start: datetime, end: datetime) -> float:
        """Work days between ``start`` and ``end``; 0 when the range is reversed."""
        minutes_per_day = (self.end_hour - self.start_hour) * 60 or MINUTES_PER_WORKDAY
        return self.work_minutes(start, end) / minutes_per_day


_DEFAULT: BusinessCalendar | None = None


def default_calendar() -> BusinessCalendar:
    global _DEFAULT
    if _DEFAULT is None:
        _DEFAULT = BusinessCalendar.default()
    return _DEFAULT


def work_duration(start: datetime, end: datetime, calendar: BusinessCalendar | None = None) -> float:
    """Elapsed work days between two instants using the default calendar."""
    return (calendar or default_calendar()).work_duration(start, end)
