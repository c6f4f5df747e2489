"""Timeline axis layout helpers (percent positions, ticks, colors)."""

from __future__ import annotations

from datetime import datetime, timedelta

import pandas as pd


def minutes_between(start: datetime, end: datetime) -> int:
    # Whole minutes, truncated toward zero
    return int((end - start).total_seconds() / 60)


def timeline_position(value: datetime, min_date: datetime, total_minutes: float) -> float:
    """Percent offset (0-100) of ``value`` on an axis starting at ``min_date``."""
    if total_minutes == 0:
        return 0.0
    return minutes_between(min_date, value) / total_minutes * 100


def timeline_width(start: datetime, end: datetime, total_minutes: float) -> float:
    """Percent width (0-100) of the ``start``-``end`` span."""
    if total_minutes == 0:
        return 0.0
    return minutes_between(start, end) / total_minutes * 100


def axis_bounds(start: datetime, end: datetime) -> tuple[datetime, datetime, int]:
    """Display range padded by one day after ``end``, with its length in minutes."""
    display_end = end + timedelta(days=1)
    return start, display_end, minutes_between(start, display_end)


def monday_ticks(min_date: datetime, max_date: datetime) -> list[pd.Timestamp]:
    """Every Monday from the week containing ``min_date`` through ``max_date``."""
    start = pd.Timestamp(min_date).normalize()
    start = start - pd.Timedelta(days=start.weekday())
    end = pd.Timestamp(max_date)
    if end < start:
        return []
    return list(pd.date_range(start, end, freq="W-MON"))


def interpolate_color(value: float, min_value: float, max_value: float) -> str:
    """Green (fast) to orange (slow) color for ``value`` within a range."""
    if min_value == max_value:
        return "#228be6"
    t = max(0.0, min(1.0, (value - min_value) / (max_value - min_value)))
    start = (64, 192, 87)
    end = (253, 126, 20)
    r, g, b = (int(s + (e - s) * t + 0.5) for s, e in zip(start, end))
    return f"rgb({r}, {g}, {b})"
