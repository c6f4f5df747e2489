from datetime import datetime

import pytz

from cycletime_app.analytics.hierarchy.tree import (
    build_adjacency_map,
    build_tree,
    descendant_keys,
    filter_timeline_by_issue_type,
    flatten_tree,
    reconstruct,
)
from cycletime_app.analytics.metrics.calendar import BusinessCalendar

CAL = BusinessCalendar.with_holidays([])
NOW = datetime(2025, 1, 17, 17, tzinfo=pytz.UTC)


def _raw(key, issue_type, parent=None, created="2025-01-06T17:00:00Z"):
    return {
        "key": key,
        "summary": f"{key} summary",
        "status": "In Progress",
        "issueType": issue_type,
        "parentKey": parent,
        "created": created,
        "changelog": {"histories": []},
    }


def _issues():
    return [
        _raw("T-1", "Sub-task", "S-1", created="2025-01-08T17:00:00Z"),
        _raw("S-2", "Story", "E-1", created="2025-01-09T17:00:00Z"),
        _raw("S-1", "Story", "E-1", created="2025-01-07T17:00:00Z"),
        _raw("E-1", "Epic"),
        _raw("X-1", "Task", "GONE-1"),
    ]


def test_reconstruct_preorder_with_depths():
    flat = reconstruct(_issues(), now=NOW, calendar=CAL)
    assert [t.key for t in flat] == ["E-1", "S-2", "S-1", "T-1", "X-1"]
    depth = {t.key: t.depth for t in flat}
    assert depth == {"E-1": 0, "S-2": 1, "S-1": 1, "T-1": 2, "X-1": 0}
    parent = {t.key: t.parent_id for t in flat}
    assert parent["T-1"] == "S-1"
    assert parent["X-1"] is None
    assert {t.key for t in flat if t.has_children} == {"E-1", "S-1"}


def test_reconstruct_keeps_first_duplicate_and_handles_self_parent():
    raws = [_raw("A-1", "Task", "A-1"), _raw("A-1", "Bug")]
    flat = reconstruct(raws, now=NOW, calendar=CAL)
    assert len(flat) == 1
    assert flat[0].issue_type == "Task"
    assert flat[0].depth == 0


def test_reconstruct_parent_cycle_keeps_every_issue():
    raws = [_raw("A-1", "Task", "B-1"), _raw("B-1", "Task", "A-1")]
    flat = reconstruct(raws, now=NOW, calendar=CAL)
    assert [t.key for t in flat] == ["A-1", "B-1"]
    assert flat[0].depth == 0
    assert flat[1].parent_id == "A-1"


def test_build_tree_nests_and_sorts_siblings():
    flat = reconstruct(_issues(), now=NOW, calendar=CAL)
    tree = build_tree(flat)
    assert [n.key for n in tree] == ["E-1", "X-1"]
    epic = tree[0]
    # S-1 was created before S-2
    assert [c.key for c in epic.sub_rows] == ["S-1", "S-2"]
    assert epic.sub_rows[0].sub_rows[0].key == "T-1"
    assert epic.sub_rows[0].sub_rows[0].sub_rows is None
    assert tree[1].sub_rows is None
    # inputs untouched
    assert all(t.sub_rows is None for t in flat)
    assert sorted(t.key for t in flatten_tree(tree)) == sorted(t.key for t in flat)


def test_build_tree_orphan_parent_becomes_root():
    flat = reconstruct(_issues(), now=NOW, calendar=CAL)
    without_epic = [t for t in flat if t.key != "E-1"]
    tree = build_tree(without_epic)
    assert {n.key for n in tree} == {"S-1", "S-2", "X-1"}


def test_adjacency_and_descendants():
    flat = reconstruct(_issues(), now=NOW, calendar=CAL)
    adjacency = build_adjacency_map(flat)
    assert adjacency == {"E-1": ["S-2", "S-1"], "S-1": ["T-1"]}
    assert descendant_keys(["E-1"], adjacency) == ["S-2", "S-1", "T-1"]
    assert descendant_keys(["T-1"], adjacency) == []


def test_issue_type_exclusion_cascades():
    flat = reconstruct(_issues(), now=NOW, calendar=CAL)
    adjacency = build_adjacency_map(flat)
    kept = filter_timeline_by_issue_type(flat, ["story"], adjacency)
    assert [t.key for t in kept] == ["E-1", "X-1"]
    assert filter_timeline_by_issue_type(flat, [], adjacency) == flat


def test_parent_child_round_trip():
    raws = [
        {"key": "P", "summary": "", "status": "Open", "issueType": "Epic", "created": "2025-01-06T17:00:00Z"},
        {"key": "C", "summary": "", "status": "Open", "issueType": "Story", "parentKey": "P", "created": "2025-01-06T17:00:00Z"},
    ]
    tree = build_tree(reconstruct(raws, now=NOW, calendar=CAL))
    assert [n.key for n in tree] == ["P"]
    assert [c.key for c in tree[0].sub_rows] == ["C"]


def test_tree_flatten_preserves_edges():
    flat = reconstruct(_issues(), now=NOW, calendar=CAL)
    back = flatten_tree(build_tree(flat))
    assert {(t.key, t.parent_id) for t in back} == {(t.key, t.parent_id) for t in flat}


def test_cycle_time_is_sum_of_intervals():
    for t in reconstruct(_issues(), now=NOW, calendar=CAL):
        assert t.total_cycle_time == sum(s.duration_work_days for s in t.segments)
