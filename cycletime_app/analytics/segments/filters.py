"""Status segment filters for cycle time timelines."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace

from cycletime_app.core.models import IssueTimeline
from cycletime_app.core.status import status_key, status_key_set


def filter_statuses(
    timelines: Sequence[IssueTimeline],
    excluded_statuses: Iterable[str] | None,
) -> list[IssueTimeline]:
    """Drop intervals whose status is excluded and recompute cycle time.

    Comparison ignores case and surrounding whitespace. Every timeline is
    returned as a new object with its own interval list; hierarchy fields
    are carried over unchanged.
    """
    excluded = status_key_set(excluded_statuses)
    out: list[IssueTimeline] = []
    for timeline in timelines:
        kept = [seg for seg in timeline.segments if status_key(seg.status) not in excluded]
        out.append(
            replace(
                timeline,
                segments=kept,
                total_cycle_time=sum(seg.duration_work_days for seg in kept),
            )
        )
    return out


def statuses_in(timelines: Iterable[IssueTimeline]) -> list[str]:
    """Distinct status names across all intervals, sorted case-insensitively."""
    seen: dict[str, str] = {}
    for timeline in timelines:
        for seg in timeline.segments:
            seen.setdefault(status_key(seg.status), seg.status)
    return sorted(seen.values(), key=lambda s: s.lower())


def issue_types_in(timelines: Iterable[IssueTimeline]) -> list[str]:
    return sorted({t.issue_type for t in timelines if t.issue_type}, key=lambda s: s.lower())
