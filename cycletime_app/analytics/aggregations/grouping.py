"""Keyword-based sub-task classification into user defined groups."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence

import pandas as pd

from cycletime_app.core.models import OTHER_GROUP_ID, IssueTimeline, SubTaskGroup

OTHER_GROUP_NAME = "Other"


def _keyword_needle(keyword: str) -> str:
    # "*" is accepted in keywords but only ever means "contains"
    return str(keyword or "").strip().lower().replace("*", "")


def classify_subtask(summary: str | None, groups: Sequence[SubTaskGroup]) -> str:
    """Return the id of the first group with a keyword contained in ``summary``.

    Groups are scanned in list order and keywords in group order; the first
    hit wins. Falls back to ``OTHER_GROUP_ID``.
    """
    summary_lower = str(summary or "").lower()
    for group in groups:
        for keyword in group.keywords:
            needle = _keyword_needle(keyword)
            if needle and needle in summary_lower:
                return group.id
    return OTHER_GROUP_ID


def group_subtasks(
    subtasks: Iterable[IssueTimeline],
    groups: Sequence[SubTaskGroup],
) -> dict[str, list[IssueTimeline]]:
    """Bucket sub-tasks by group id; every group plus "Other" is present."""
    result: dict[str, list[IssueTimeline]] = {g.id: [] for g in groups}
    result[OTHER_GROUP_ID] = []
    for task in subtasks:
        group_id = classify_subtask(task.summary, groups)
        result.get(group_id, result[OTHER_GROUP_ID]).append(task)
    return result


def group_names(groups: Sequence[SubTaskGroup]) -> dict[str, str]:
    names = {g.id: g.name for g in groups}
    names[OTHER_GROUP_ID] = OTHER_GROUP_NAME
    return names


def group_counts(subtasks: Sequence[IssueTimeline], groups: Sequence[SubTaskGroup]) -> pd.DataFrame:
    """Per-group member counts, in configured order with "Other" last."""
    grouped = group_subtasks(subtasks, groups)
    names = group_names(groups)
    rows = [{"group_id": gid, "group": names.get(gid, gid), "count": len(items)} for gid, items in grouped.items()]
    return pd.DataFrame(rows, columns=["group_id", "group", "count"])


def summary_frequencies(subtasks: Iterable[IssueTimeline], groups: Sequence[SubTaskGroup] | None = None) -> pd.DataFrame:
    """Distinct sub-task summaries with occurrence counts, most frequent first.

    When ``groups`` is given, each summary is annotated with the group it
    currently classifies into, which helps spot unallocated summaries.
    """
    counts = Counter(str(t.summary or "").strip() for t in subtasks)
    rows = [{"summary": s, "count": c} for s, c in counts.most_common()]
    df = pd.DataFrame(rows, columns=["summary", "count"])
    if groups is not None and not df.empty:
        names = group_names(groups)
        df["group"] = df["summary"].apply(lambda s: names[classify_subtask(s, groups)])
    return df


def move_group(groups: Sequence[SubTaskGroup], index: int, direction: str) -> list[SubTaskGroup]:
    """Swap the group at ``index`` with its neighbour ("up" or "down")."""
    out = list(groups)
    swap = index - 1 if direction == "up" else index + 1
    if index < 0 or index >= len(out) or swap < 0 or swap >= len(out):
        return out
    out[index], out[swap] = out[swap], out[index]
    return out
