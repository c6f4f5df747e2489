"""Selection helpers for the issue tree (descendant toggling, expansion state)."""

from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence

from cycletime_app.analytics.hierarchy.tree import descendant_keys, flatten_tree
from cycletime_app.core.config import NON_SUBTASK_PARENT_TYPES
from cycletime_app.core.models import IssueTimeline


def expand_selection(keys: Iterable[str], adjacency: dict[str, list[str]]) -> set[str]:
    """Selected keys plus every descendant of each selected key."""
    roots = list(keys)
    return set(roots) | set(descendant_keys(roots, adjacency))


def toggle_with_descendants(
    next_selection: Collection[str],
    current_selection: Collection[str],
    adjacency: dict[str, list[str]],
) -> set[str]:
    """Apply a selection change so that descendants follow their ancestor.

    Keys newly present in ``next_selection`` pull in all their descendants;
    keys that disappeared drop theirs.
    """
    old = set(current_selection)
    new = set(next_selection)
    added = [k for k in new if k not in old]
    removed = [k for k in old if k not in new]

    result = set(new)
    result.update(descendant_keys(added, adjacency))
    result.difference_update(descendant_keys(removed, adjacency))
    return result


def single_selection_change(next_selection: Sequence[str], current_selection: Collection[str]) -> list[str]:
    """Reduce a selection to one key, favouring the newly added one."""
    if not next_selection:
        return []
    old = set(current_selection)
    new_key = next((k for k in next_selection if k not in old), None)
    if new_key is not None:
        return [new_key]
    return [next_selection[-1]]


def extract_all_keys(tree: Iterable[IssueTimeline]) -> set[str]:
    keys: set[str] = set()
    stack = list(tree)
    while stack:
        node = stack.pop()
        keys.add(node.key)
        stack.extend(node.sub_rows or [])
    return keys


def collapsible_parent_keys(tree: Iterable[IssueTimeline]) -> list[str]:
    """Keys of nodes that directly own sub-tasks (non Epic/Feature parents)."""
    out: list[str] = []
    stack = list(tree)
    while stack:
        node = stack.pop(0)
        if node.has_children and (node.issue_type or "") not in NON_SUBTASK_PARENT_TYPES:
            out.append(node.key)
        stack[:0] = list(node.sub_rows or [])
    return out


def toggle_subtask_visibility(
    collapsed_ids: Collection[str],
    tree: Iterable[IssueTimeline],
    subtasks_visible: bool,
) -> tuple[set[str], bool]:
    """Collapse (or expand) every parent of sub-tasks in one step.

    Returns the new collapsed-id set and the new visibility flag.
    """
    tree = list(tree)
    parents = set(collapsible_parent_keys(tree))
    collapsed = set(collapsed_ids)
    if subtasks_visible:
        collapsed |= parents
    else:
        collapsed -= parents
    return collapsed, not subtasks_visible


def resolve_selection(
    picked: Sequence[str],
    current: Collection[str],
    tree: Iterable[IssueTimeline],
    adjacency: dict[str, list[str]],
    *,
    with_descendants: bool = True,
) -> list[str]:
    """The selection after a widget change, in tree display order.

    Only ``picked`` and ``current`` decide the result, so the newest change
    always replaces whatever was selected before it.
    """
    if with_descendants:
        selected = toggle_with_descendants(picked, current, adjacency)
    else:
        selected = set(single_selection_change(picked, current))
    return [node.key for node in flatten_tree(tree) if node.key in selected]
