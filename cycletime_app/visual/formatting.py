"""Display formatting for durations (work days and calendar weeks)."""

from __future__ import annotations

import math
from datetime import datetime

from cycletime_app.analytics.aggregations.stats import format_metric, round_half_up


def format_work_days(days: float) -> str:
    """Render e.g. "5.1 work days" below ten and "12 work days" from ten up."""
    return f"{format_metric(days)} work days"


def format_weeks(calendar_days: float) -> str:
    """Calendar days as "(X.Y weeks)"."""
    return f"({round_half_up(calendar_days / 7.0, 1):.1f} weeks)"


def format_calendar_weeks(start: datetime, end: datetime) -> str:
    """Wall-clock span in weeks, counting a started day as a whole day."""
    seconds = abs((end - start).total_seconds())
    days = math.ceil(seconds / 86400)
    weeks = days / 7.0
    if weeks < 0.1:
        return "0.0 weeks"
    return f"{round_half_up(weeks, 1):.1f} weeks"


def format_week_value(weeks: float) -> str:
    return f"{weeks:.1f} weeks"
