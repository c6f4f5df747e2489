"""Issue hierarchy reconstruction from flat records.

Parent references are plain keys, resolved through a key-indexed map. A
reference to a key outside the fetched set means "no parent": the issue
becomes a root instead of being dropped.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Any

from cycletime_app.analytics.metrics.calendar import BusinessCalendar
from cycletime_app.analytics.metrics.status_flow import timeline_from_record
from cycletime_app.core.mappers import normalize_issue
from cycletime_app.core.models import IssueTimeline

logger = logging.getLogger(__name__)


def reconstruct(
    raw_issues: Iterable[dict[str, Any]],
    *,
    now: datetime | None = None,
    calendar: BusinessCalendar | None = None,
) -> list[IssueTimeline]:
    """Build timelines for every raw issue and order them depth-first.

    Returns a preorder list (each root followed by all of its descendants)
    with ``depth``, ``parent_id`` and ``has_children`` set. Duplicate keys
    keep their first occurrence.
    """
    records = []
    seen: set[str] = set()
    for raw in raw_issues:
        record = normalize_issue(raw)
        if not record.key or record.key in seen:
            continue
        seen.add(record.key)
        records.append(record)

    timelines = {r.key: timeline_from_record(r, now=now, calendar=calendar) for r in records}

    parent_of: dict[str, str] = {}
    children: dict[str, list[str]] = {}
    for r in records:
        parent = r.parent_key
        if parent and parent != r.key and parent in timelines:
            parent_of[r.key] = parent
            children.setdefault(parent, []).append(r.key)

    out: list[IssueTimeline] = []
    visited: set[str] = set()

    def visit(key: str, depth: int, parent_id: str | None) -> None:
        visited.add(key)
        kids = [k for k in children.get(key, []) if k not in visited]
        out.append(
            replace(
                timelines[key],
                depth=depth,
                parent_id=parent_id,
                has_children=bool(kids),
            )
        )
        for kid in kids:
            if kid not in visited:
                visit(kid, depth + 1, key)

    for r in records:
        if r.key not in parent_of:
            visit(r.key, 0, None)

    # Members of a parent cycle have no natural root; promote them in input order
    for r in records:
        if r.key not in visited:
            logger.warning("Issue %s is part of a parent cycle; treating it as a root", r.key)
            visit(r.key, 0, None)

    logger.debug("Reconstructed %d issues (%d roots)", len(out), sum(1 for t in out if t.depth == 0))
    return out


def _first_start_sort_key(item: IssueTimeline):
    return item.segments[0].start


def sort_issue_timelines(items: Sequence[IssueTimeline]) -> list[IssueTimeline]:
    """Sort siblings: issues with intervals by first start, then the rest by key."""
    with_data = [i for i in items if i.segments]
    without_data = [i for i in items if not i.segments]
    with_data.sort(key=_first_start_sort_key)
    without_data.sort(key=lambda i: i.key)
    return with_data + without_data


def build_tree(flat: Sequence[IssueTimeline]) -> list[IssueTimeline]:
    """Nest flat timelines into roots with ``sub_rows`` for tree tables.

    Inputs are cloned, never mutated. Nodes whose ``parent_id`` does not
    resolve become roots. Leaves carry ``sub_rows=None``.
    """
    nodes: dict[str, IssueTimeline] = {}
    order: list[str] = []
    for item in flat:
        if item.key in nodes:
            continue
        nodes[item.key] = replace(item, sub_rows=[])
        order.append(item.key)

    roots: list[IssueTimeline] = []
    for key in order:
        node = nodes[key]
        parent_id = node.parent_id
        if parent_id and parent_id != key and parent_id in nodes:
            nodes[parent_id].sub_rows.append(node)
        else:
            roots.append(node)

    # Nodes trapped in a parent_id cycle are unreachable from any root
    reachable: set[str] = set()
    queue = deque(roots)
    while queue:
        node = queue.popleft()
        reachable.add(node.key)
        queue.extend(node.sub_rows or [])
    for key in order:
        if key not in reachable:
            node = nodes[key]
            parent = nodes.get(node.parent_id or "")
            if parent is not None and parent.sub_rows:
                parent.sub_rows = [c for c in parent.sub_rows if c.key != key]
            node.parent_id = None
            roots.append(node)
            stack = [node]
            while stack:
                current = stack.pop()
                reachable.add(current.key)
                stack.extend(c for c in current.sub_rows or [] if c.key not in reachable)

    def finalize(node: IssueTimeline) -> IssueTimeline:
        if node.sub_rows:
            node.sub_rows = sort_issue_timelines([finalize(c) for c in node.sub_rows])
        else:
            node.sub_rows = None
        return node

    return sort_issue_timelines([finalize(r) for r in roots])


def flatten_tree(tree: Iterable[IssueTimeline]) -> list[IssueTimeline]:
    """Preorder traversal of a nested tree back into a flat list."""
    out: list[IssueTimeline] = []

    def walk(nodes: Iterable[IssueTimeline]) -> None:
        for node in nodes:
            out.append(node)
            if node.sub_rows:
                walk(node.sub_rows)

    walk(tree)
    return out


def build_adjacency_map(flat: Iterable[IssueTimeline]) -> dict[str, list[str]]:
    """Map parent key -> child keys, in flat-list order."""
    adjacency: dict[str, list[str]] = {}
    for item in flat:
        if item.parent_id:
            adjacency.setdefault(item.parent_id, []).append(item.key)
    return adjacency


def descendant_keys(root_keys: Iterable[str], adjacency: dict[str, list[str]]) -> list[str]:
    """Breadth-first list of all descendants of ``root_keys`` (roots excluded)."""
    out: list[str] = []
    seen: set[str] = set(root_keys)
    queue = deque(seen)
    while queue:
        current = queue.popleft()
        for child in adjacency.get(current, []):
            if child in seen:
                continue
            seen.add(child)
            out.append(child)
            queue.append(child)
    return out


def filter_timeline_by_issue_type(
    flat: Sequence[IssueTimeline],
    excluded_types: Iterable[str] | None,
    adjacency: dict[str, list[str]],
) -> list[IssueTimeline]:
    """Drop issues of excluded types together with all of their descendants."""
    excluded = {str(t).strip().lower() for t in excluded_types or () if str(t).strip()}
    if not excluded:
        return list(flat)
    matched = [i.key for i in flat if (i.issue_type or "").strip().lower() in excluded]
    removed = set(matched) | set(descendant_keys(matched, adjacency))
    return [i for i in flat if i.key not in removed]
