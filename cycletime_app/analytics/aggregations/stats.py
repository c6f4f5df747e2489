"""Cycle time statistics over a selection of issues.

All functions are pure: results depend only on the arguments, so callers
may recompute on every selection change.
"""

from __future__ import annotations

import math
from collections.abc import Collection, Iterable, Sequence
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

import pandas as pd
import pytz

from cycletime_app.analytics.aggregations.grouping import (
    OTHER_GROUP_ID,
    classify_subtask,
    group_names,
    group_subtasks,
)
from cycletime_app.analytics.hierarchy.tree import build_adjacency_map
from cycletime_app.analytics.metrics.calendar import BusinessCalendar, default_calendar
from cycletime_app.core.config import EPIC_LIKE_TYPES, SUBTASK_TYPE
from cycletime_app.core.models import (
    DistributionPoint,
    GroupStats,
    GroupVote,
    IssueHighlight,
    IssueTimeline,
    SelectedIssueStats,
    SubTaskGroup,
    SubTaskGroupStats,
    TierStats,
)

TIER_EPIC = "Epic"
TIER_STANDARD = "Story/Task"
TIER_SUBTASK = "Sub-task"


def round_half_up(value: float, digits: int = 0) -> float:
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _format_with_precision(value: float, *, whole: bool) -> str:
    if whole:
        return str(int(round_half_up(value, 0)))
    text = f"{round_half_up(value, 1):.1f}"
    return text[:-2] if text.endswith(".0") else text


def format_metric(value: float) -> str:
    """Render a work-day value: whole number from 10 up, one decimal below.

    A trailing ".0" is dropped, so 5.0 renders as "5".
    """
    return _format_with_precision(value, whole=value >= 10)


def mean_stddev(values: Iterable[float]) -> tuple[float, float] | None:
    """Mean and sample standard deviation of the strictly positive values."""
    series = pd.Series([v for v in values if v is not None and v > 0], dtype=float)
    if series.empty:
        return None
    mean = float(series.mean())
    std = float(series.std(ddof=1)) if len(series) > 1 else 0.0
    if math.isnan(std):
        std = 0.0
    return mean, std


def format_mean_stddev(values: Iterable[float], unit: str = "work days") -> str | None:
    """Format as "mean ± stddev unit"; the stddev takes the precision of the mean."""
    result = mean_stddev(values)
    if result is None:
        return None
    mean, std = result
    whole = mean >= 10
    return f"{_format_with_precision(mean, whole=whole)} ± {_format_with_precision(std, whole=whole)} {unit}"


def calendar_weeks(start: datetime, end: datetime, tz_name: str | None = None) -> float:
    """Calendar-day difference in weeks, rounded to one decimal."""
    tz = pytz.timezone(tz_name) if tz_name else None
    start_day = (start.astimezone(tz) if tz else start).date()
    end_day = (end.astimezone(tz) if tz else end).date()
    days = (end_day - start_day).days
    return round_half_up(days / 7.0, 1)


def tier_of(issue_type: str | None) -> str:
    text = (issue_type or "").strip()
    if text.lower() in EPIC_LIKE_TYPES:
        return TIER_EPIC
    if text == SUBTASK_TYPE:
        return TIER_SUBTASK
    return TIER_STANDARD


def _highlight(issue: IssueTimeline) -> IssueHighlight:
    return IssueHighlight(
        key=issue.key,
        summary=issue.summary,
        cycle_time=issue.total_cycle_time,
        label=f"{format_metric(issue.total_cycle_time)} work days",
    )


def _point(issue: IssueTimeline) -> DistributionPoint:
    return DistributionPoint(
        key=issue.key,
        summary=issue.summary,
        issue_type=issue.issue_type,
        cycle_time=issue.total_cycle_time,
        end=issue.end,
    )


def latest_ending(issues: Iterable[IssueTimeline]) -> IssueTimeline | None:
    dated = [i for i in issues if i.end is not None]
    if not dated:
        return None
    return max(dated, key=lambda i: i.end)


def tier_stats(tier: str, issues: Sequence[IssueTimeline]) -> TierStats | None:
    """Aggregate one tier; None when no member has a positive cycle time."""
    if not any(i.total_cycle_time > 0 for i in issues):
        return None
    longest = max(issues, key=lambda i: i.total_cycle_time)
    last = latest_ending(issues)
    return TierStats(
        tier=tier,
        count=len(issues),
        average=format_mean_stddev(i.total_cycle_time for i in issues),
        longest=_highlight(longest),
        last=_highlight(last) if last is not None else None,
        distribution=[_point(i) for i in issues],
    )


def _pick_by_votes(votes: dict[str, int], order: Sequence[str]) -> str | None:
    # Highest vote count wins; ties go to the earlier group in configured order
    best: str | None = None
    for group_id in order:
        count = votes.get(group_id, 0)
        if count > 0 and (best is None or count > votes[best]):
            best = group_id
    return best


def subtask_group_stats(
    subtasks: Sequence[IssueTimeline],
    groups: Sequence[SubTaskGroup],
    adjacency: dict[str, list[str]],
) -> SubTaskGroupStats:
    names = group_names(groups)
    order = [g.id for g in groups if g.id != OTHER_GROUP_ID] + [OTHER_GROUP_ID]

    stats: list[GroupStats] = []
    for group_id, members in group_subtasks(subtasks, groups).items():
        result = mean_stddev(m.total_cycle_time for m in members)
        if result is None:
            continue
        mean, std = result
        stats.append(
            GroupStats(
                group_id=group_id,
                group_name=names.get(group_id, group_id),
                count=sum(1 for m in members if m.total_cycle_time > 0),
                average=mean,
                std_dev=std,
                label=format_mean_stddev(m.total_cycle_time for m in members) or "",
                issues=[_point(m) for m in members],
            )
        )

    longest_group = max(stats, key=lambda g: g.average) if stats else None

    # One vote per parent: the group of that parent's latest-ending sub-task
    by_key = {s.key: s for s in subtasks}
    votes: dict[str, int] = {}
    for child_keys in adjacency.values():
        children = [by_key[k] for k in child_keys if k in by_key]
        last_child = latest_ending(children)
        if last_child is None:
            continue
        group_id = classify_subtask(last_child.summary, groups)
        votes[group_id] = votes.get(group_id, 0) + 1
    last_id = _pick_by_votes(votes, order)
    last_group = GroupVote(last_id, names.get(last_id, last_id), votes[last_id]) if last_id else None

    return SubTaskGroupStats(
        global_average=format_mean_stddev(s.total_cycle_time for s in subtasks),
        groups=stats,
        longest_group=longest_group,
        last_group=last_group,
    )


def compute_stats(
    selection: Collection[str],
    all_issues: Sequence[IssueTimeline] | None,
    adjacency: dict[str, list[str]] | None = None,
    groups: Sequence[SubTaskGroup] | None = None,
    *,
    calendar: BusinessCalendar | None = None,
) -> SelectedIssueStats | None:
    """Compute cycle time statistics for the selected issues.

    The selection is used as-is: expanding it to descendants is the
    caller's job. Keys missing from ``all_issues`` are ignored; returns None
    when nothing selected is loaded.
    """
    if not selection or not all_issues:
        return None
    selected = set(selection)
    participants = [i for i in all_issues if i.key in selected]
    if not participants:
        return None
    calendar = calendar or default_calendar()
    groups = list(groups or [])
    if adjacency is None:
        adjacency = build_adjacency_map(all_issues)

    starts = [seg.start for i in participants for seg in i.segments]
    ends = [seg.end for i in participants for seg in i.segments]
    start = min(starts) if starts else None
    end = max(ends) if ends else None
    cycle_time = calendar.work_duration(start, end) if start and end else 0.0
    weeks = calendar_weeks(start, end, calendar.timezone) if start and end else 0.0

    min_depth = min(i.depth for i in participants)
    roots = [i for i in participants if i.depth == min_depth]
    root = roots[0] if len(roots) == 1 else None

    tiers: dict[str, list[IssueTimeline]] = {TIER_EPIC: [], TIER_STANDARD: [], TIER_SUBTASK: []}
    for issue in participants:
        tiers[tier_of(issue.issue_type)].append(issue)

    subtasks = tiers[TIER_SUBTASK]
    return SelectedIssueStats(
        participant_count=len(participants),
        cycle_time=cycle_time,
        calendar_weeks=weeks,
        root_key=root.key if root else None,
        root_summary=root.summary if root else None,
        start=start,
        end=end,
        epic_stats=tier_stats(TIER_EPIC, tiers[TIER_EPIC]) if tiers[TIER_EPIC] else None,
        story_stats=tier_stats(TIER_STANDARD, tiers[TIER_STANDARD]) if tiers[TIER_STANDARD] else None,
        sub_task_stats=tier_stats(TIER_SUBTASK, subtasks) if subtasks else None,
        group_stats=subtask_group_stats(subtasks, groups, adjacency) if subtasks else None,
    )
