from cycletime_app.analytics.hierarchy.selection import (
    collapsible_parent_keys,
    expand_selection,
    extract_all_keys,
    resolve_selection,
    single_selection_change,
    toggle_subtask_visibility,
    toggle_with_descendants,
)
from cycletime_app.core.models import IssueTimeline

ADJ = {"E-1": ["S-1", "S-2"], "S-1": ["T-1", "T-2"], "S-2": ["T-3"]}


def _node(key, issue_type, children=None):
    return IssueTimeline(
        key=key,
        summary=key,
        issue_type=issue_type,
        has_children=bool(children),
        sub_rows=children,
    )


def _tree():
    return [
        _node(
            "E-1",
            "Epic",
            [
                _node("S-1", "Story", [_node("T-1", "Sub-task"), _node("T-2", "Sub-task")]),
                _node("S-2", "Story", [_node("T-3", "Sub-task")]),
            ],
        ),
        _node("B-1", "Bug"),
    ]


def test_expand_selection_adds_descendants():
    assert expand_selection(["S-1"], ADJ) == {"S-1", "T-1", "T-2"}
    assert expand_selection([], ADJ) == set()


def test_toggle_adds_and_removes_descendants():
    selected = toggle_with_descendants(["E-1"], [], ADJ)
    assert selected == {"E-1", "S-1", "S-2", "T-1", "T-2", "T-3"}
    # deselecting S-1 drops its sub-tasks but keeps the rest
    after = toggle_with_descendants(selected - {"S-1"}, selected, ADJ)
    assert after == {"E-1", "S-2", "T-3"}


def test_toggle_leaf_only_affects_leaf():
    assert toggle_with_descendants(["T-1"], [], ADJ) == {"T-1"}


def test_single_selection_prefers_new_key():
    assert single_selection_change(["S-1", "T-3"], ["S-1"]) == ["T-3"]
    assert single_selection_change(["S-1"], ["S-1", "T-3"]) == ["S-1"]
    assert single_selection_change([], ["S-1"]) == []


def test_extract_all_keys():
    assert extract_all_keys(_tree()) == {"E-1", "S-1", "S-2", "T-1", "T-2", "T-3", "B-1"}


def test_collapsible_parents_skip_epics():
    assert collapsible_parent_keys(_tree()) == ["S-1", "S-2"]


def test_toggle_subtask_visibility_round_trip():
    collapsed, visible = toggle_subtask_visibility({"X-9"}, _tree(), True)
    assert collapsed == {"X-9", "S-1", "S-2"}
    assert visible is False
    collapsed, visible = toggle_subtask_visibility(collapsed, _tree(), visible)
    assert collapsed == {"X-9"}
    assert visible is True


def test_resolve_selection_orders_like_the_tree():
    assert resolve_selection(["B-1", "S-2"], [], _tree(), ADJ) == ["S-2", "T-3", "B-1"]


def test_resolve_selection_newest_change_replaces_previous():
    first = resolve_selection(["S-2", "B-1"], [], _tree(), ADJ)
    second = resolve_selection(["B-1"], first, _tree(), ADJ)
    assert second == ["B-1"]
    third = resolve_selection(["S-1", "B-1"], second, _tree(), ADJ)
    assert third == ["S-1", "T-1", "T-2", "B-1"]


def test_resolve_selection_single_mode():
    assert resolve_selection(["S-1", "T-3"], ["S-1"], _tree(), ADJ, with_descendants=False) == ["T-3"]
    assert resolve_selection([], ["S-1"], _tree(), ADJ, with_descendants=False) == []
