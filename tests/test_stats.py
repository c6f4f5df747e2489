from datetime import datetime

import pytz

from cycletime_app.analytics.aggregations.stats import (
    TIER_EPIC,
    TIER_STANDARD,
    TIER_SUBTASK,
    calendar_weeks,
    compute_stats,
    format_mean_stddev,
    format_metric,
    mean_stddev,
    subtask_group_stats,
    tier_of,
    tier_stats,
)
from cycletime_app.analytics.hierarchy.tree import build_adjacency_map
from cycletime_app.analytics.metrics.calendar import BusinessCalendar
from cycletime_app.core.models import IssueTimeline, StatusInterval, SubTaskGroup

CAL = BusinessCalendar.with_holidays([])
GROUPS = [
    SubTaskGroup(id="dev", name="Development", keywords=["write"]),
    SubTaskGroup(id="review", name="Review", keywords=["review"]),
]


def _day(d):
    # 09:00 Los Angeles in January
    return datetime(2025, 1, d, 17, tzinfo=pytz.UTC)


def _tl(key, issue_type, start, end, cycle_time, parent=None, depth=0, summary=None):
    return IssueTimeline(
        key=key,
        summary=summary or key,
        issue_type=issue_type,
        segments=[StatusInterval("In Progress", _day(start), _day(end), cycle_time)],
        total_cycle_time=cycle_time,
        depth=depth,
        parent_id=parent,
    )


def _issues():
    return [
        _tl("E-1", "Epic", 6, 10, 4.0),
        _tl("S-1", "Story", 6, 8, 2.0, "E-1", 1),
        _tl("T-1", "Sub-task", 6, 7, 1.0, "S-1", 2, "Write code"),
        _tl("T-2", "Sub-task", 7, 8, 1.0, "S-1", 2, "Code review"),
        _tl("S-2", "Story", 7, 10, 3.0, "E-1", 1),
        _tl("T-3", "Sub-task", 8, 10, 2.0, "S-2", 2, "Write tests"),
        _tl("T-4", "Sub-task", 7, 9, 2.0, "S-2", 2, "Code review"),
    ]


def test_format_metric_precision():
    assert format_metric(5.0) == "5"
    assert format_metric(5.04) == "5"
    assert format_metric(5.05) == "5.1"
    assert format_metric(0.25) == "0.3"
    assert format_metric(9.96) == "10"
    assert format_metric(12.5) == "13"


def test_mean_stddev_ignores_non_positive():
    assert mean_stddev([0.0, 3.0]) == (3.0, 0.0)
    assert mean_stddev([0.0, 0.0]) is None
    assert format_mean_stddev([]) is None


def test_format_mean_stddev():
    assert format_mean_stddev([4.0, 6.0]) == "5 ± 1.4 work days"
    assert format_mean_stddev([10.0, 14.0]) == "12 ± 3 work days"
    assert format_mean_stddev([2.0], unit="days") == "2 ± 0 days"


def test_calendar_weeks_uses_local_dates():
    assert calendar_weeks(_day(6), _day(20), "America/Los_Angeles") == 2.0
    assert calendar_weeks(_day(6), _day(10), "America/Los_Angeles") == 0.6
    # 01:00 UTC on the 7th is still the 6th in Los Angeles
    late = datetime(2025, 1, 7, 1, tzinfo=pytz.UTC)
    assert calendar_weeks(_day(6), late, "America/Los_Angeles") == 0.0


def test_tier_of():
    assert tier_of("Epic") == TIER_EPIC
    assert tier_of("feature") == TIER_EPIC
    assert tier_of("Sub-task") == TIER_SUBTASK
    assert tier_of("Bug") == TIER_STANDARD
    assert tier_of(None) == TIER_STANDARD


def test_tier_stats_none_without_positive_cycle_time():
    zero = _tl("T-9", "Sub-task", 6, 6, 0.0)
    assert tier_stats(TIER_SUBTASK, [zero]) is None


def test_compute_stats_full_selection():
    issues = _issues()
    stats = compute_stats({t.key for t in issues}, issues, build_adjacency_map(issues), GROUPS, calendar=CAL)
    assert stats.participant_count == 7
    assert stats.cycle_time == 4.0
    assert stats.calendar_weeks == 0.6
    assert stats.root_key == "E-1"
    assert stats.start == _day(6) and stats.end == _day(10)

    assert stats.epic_stats.count == 1
    assert stats.epic_stats.average == "4 ± 0 work days"
    assert stats.story_stats.average == "2.5 ± 0.7 work days"
    assert stats.story_stats.longest.key == "S-2"

    subs = stats.sub_task_stats
    assert subs.count == 4
    assert subs.average == "1.5 ± 0.6 work days"
    assert subs.longest.key == "T-3"
    assert subs.last.key == "T-3"
    assert subs.longest.label == "2 work days"
    assert {p.key for p in subs.distribution} == {"T-1", "T-2", "T-3", "T-4"}


def test_compute_stats_subtask_groups():
    issues = _issues()
    stats = compute_stats({t.key for t in issues}, issues, None, GROUPS, calendar=CAL)
    groups = stats.group_stats
    assert groups.global_average == "1.5 ± 0.6 work days"
    assert [g.group_id for g in groups.groups] == ["dev", "review"]
    assert groups.groups[0].label == "1.5 ± 0.7 work days"
    # equal averages: the first group wins
    assert groups.longest_group.group_id == "dev"
    # S-1 votes review (T-2 ends last), S-2 votes dev (T-3): tie goes to configured order
    assert groups.last_group.group_id == "dev"
    assert groups.last_group.votes == 1


def test_last_group_majority_vote():
    issues = _issues() + [
        _tl("S-3", "Story", 6, 9, 3.0, "E-1", 1),
        _tl("T-5", "Sub-task", 6, 9, 3.0, "S-3", 2, "Review again"),
    ]
    adjacency = build_adjacency_map(issues)
    subtasks = [t for t in issues if t.issue_type == "Sub-task"]
    result = subtask_group_stats(subtasks, GROUPS, adjacency)
    assert result.last_group.group_id == "review"
    assert result.last_group.votes == 2
    assert result.longest_group.group_id == "review"


def test_compute_stats_partial_selection_has_no_single_root():
    issues = _issues()
    stats = compute_stats(["S-1", "S-2"], issues, calendar=CAL)
    assert stats.root_key is None
    assert stats.participant_count == 2
    assert stats.epic_stats is None and stats.sub_task_stats is None
    assert stats.group_stats is None


def test_compute_stats_empty_inputs():
    issues = _issues()
    assert compute_stats([], issues) is None
    assert compute_stats(["NOPE-1"], issues) is None
    assert compute_stats(["E-1"], []) is None


def test_zero_cycle_times_excluded_from_group_average():
    subs = [
        _tl("T-1", "Sub-task", 6, 7, 4.0, "S-1", summary="a"),
        _tl("T-2", "Sub-task", 6, 7, 6.0, "S-1", summary="b"),
        _tl("T-3", "Sub-task", 6, 7, 0.0, "S-1", summary="c"),
    ]
    result = subtask_group_stats(subs, [], build_adjacency_map(subs))
    (other,) = result.groups
    assert other.group_name == "Other"
    assert other.label == "5 ± 1.4 work days"
    assert other.count == 2
