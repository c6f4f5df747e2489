"""Status timeline construction from Jira changelogs.

This module turns one issue's history into a gapless, chronological
sequence of status intervals, each measured in business work days.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

import pytz

from cycletime_app.analytics.metrics.calendar import BusinessCalendar, default_calendar
from cycletime_app.core.mappers import normalize_issue, parse_dt
from cycletime_app.core.models import ChangeEvent, IssueRecord, IssueTimeline, StatusInterval


def extract_change_events(histories: Iterable[dict[str, Any]]) -> list[ChangeEvent]:
    """Extract status transitions from changelog history entries.

    Entries without a ``status`` item or without a parseable date are
    skipped. Only the first status item of an entry is used. The result is
    sorted ascending by date; the tracker returns entries in insertion order,
    which is not guaranteed to be chronological.

    Parameters
    ----------
    histories : iterable of dict
        Raw history entries with ``created`` and ``items``.

    Returns
    -------
    list[ChangeEvent]
        Status transitions sorted by date.
    """
    events: list[ChangeEvent] = []
    for entry in histories or []:
        if not isinstance(entry, dict):
            continue
        items = entry.get("items") or []
        status_item = next(
            (it for it in items if isinstance(it, dict) and str(it.get("field") or "").lower() == "status"),
            None,
        )
        if status_item is None:
            continue
        created = parse_dt(entry.get("created"))
        if created is None:
            continue
        events.append(
            ChangeEvent(
                date=created,
                from_status=str(status_item.get("fromString") or "").strip(),
                to_status=str(status_item.get("toString") or "").strip(),
            )
        )
    events.sort(key=lambda ev: ev.date)
    return events


def build_intervals(
    created: datetime,
    current_status: str,
    events: list[ChangeEvent],
    now: datetime,
    calendar: BusinessCalendar | None = None,
) -> list[StatusInterval]:
    """Walk sorted change events into contiguous status intervals.

    The initial status is the ``from_status`` of the earliest event (falling
    back to ``current_status``). Events dated at or before the cursor only
    change the active status. A final interval always runs from the cursor
    to ``now``.
    """
    calendar = calendar or default_calendar()
    status = (events[0].from_status if events else "") or current_status
    cursor = created
    intervals: list[StatusInterval] = []

    for event in events:
        if event.date > cursor:
            intervals.append(
                StatusInterval(
                    status=status,
                    start=cursor,
                    end=event.date,
                    duration_work_days=calendar.work_duration(cursor, event.date),
                )
            )
            cursor = event.date
        status = event.to_status or status

    intervals.append(
        StatusInterval(
            status=status,
            start=cursor,
            end=now,
            duration_work_days=calendar.work_duration(cursor, now),
        )
    )
    return intervals


def timeline_from_record(
    record: IssueRecord,
    *,
    now: datetime | None = None,
    calendar: BusinessCalendar | None = None,
) -> IssueTimeline:
    now = now or datetime.now(tz=pytz.UTC)
    if now.tzinfo is None:
        now = pytz.UTC.localize(now)
    events = extract_change_events(record.histories)
    created = record.created or (events[0].date if events else now)
    segments = build_intervals(created, record.status, events, now, calendar)
    return IssueTimeline(
        key=record.key,
        summary=record.summary,
        issue_type=record.issue_type,
        segments=segments,
        total_cycle_time=sum(s.duration_work_days for s in segments),
        url=record.url,
        issue_type_icon_url=record.issue_type_icon_url,
    )


def build_timeline(
    raw: dict[str, Any],
    *,
    now: datetime | None = None,
    calendar: BusinessCalendar | None = None,
) -> IssueTimeline:
    """Build the status timeline for one raw issue (either raw shape).

    ``depth``, ``has_children`` and ``parent_id`` are left at their defaults;
    hierarchy reconstruction fills them in.
    """
    return timeline_from_record(normalize_issue(raw), now=now, calendar=calendar)
