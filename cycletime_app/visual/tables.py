"""Tree table helpers for Streamlit rendering."""

from __future__ import annotations

from collections.abc import Collection, Sequence

import pandas as pd
import pytz
import streamlit as st

from cycletime_app.core.config import TIMEZONE
from cycletime_app.core.models import IssueTimeline
from cycletime_app.visual.formatting import format_work_days
from cycletime_app.visual.layout import interpolate_color

INDENT = "\u2003\u2003"


def tree_rows(tree: Sequence[IssueTimeline], collapsed_ids: Collection[str] = ()) -> list[IssueTimeline]:
    """Visible rows in display order; children of collapsed nodes are hidden."""
    collapsed = set(collapsed_ids)
    out: list[IssueTimeline] = []

    def walk(nodes: Sequence[IssueTimeline]) -> None:
        for node in nodes:
            out.append(node)
            if node.sub_rows and node.key not in collapsed:
                walk(node.sub_rows)

    walk(tree)
    return out


def build_tree_table(tree: Sequence[IssueTimeline], collapsed_ids: Collection[str] = ()) -> pd.DataFrame:
    rows = tree_rows(tree, collapsed_ids)
    collapsed = set(collapsed_ids)
    tz = pytz.timezone(TIMEZONE)
    records = []
    for node in rows:
        if node.sub_rows:
            marker = "▸ " if node.key in collapsed else "▾ "
        else:
            marker = ""
        records.append(
            {
                "key": node.key,
                "Ticket": node.url,
                "Issue": f"{INDENT * node.depth}{marker}{node.key}",
                "Summary": node.summary,
                "Type": node.issue_type,
                "Status": node.segments[-1].status if node.segments else "",
                "Start": node.start.astimezone(tz).strftime("%Y-%m-%d") if node.start else "",
                "End": node.end.astimezone(tz).strftime("%Y-%m-%d") if node.end else "",
                "Cycle time": format_work_days(node.total_cycle_time),
                "cycle_time_value": round(node.total_cycle_time, 3),
            }
        )
    return pd.DataFrame(
        records,
        columns=["key", "Ticket", "Issue", "Summary", "Type", "Status", "Start", "End", "Cycle time", "cycle_time_value"],
    )


def cycle_time_colors(table: pd.DataFrame) -> list[str]:
    """CSS text colors from green (fastest row) to orange (slowest row)."""
    values = table["cycle_time_value"]
    if values.empty:
        return []
    low, high = float(values.min()), float(values.max())
    return [f"color: {interpolate_color(float(v), low, high)}" for v in values]


def render_tree_table(tree: Sequence[IssueTimeline], collapsed_ids: Collection[str] = (), limit: int = 2000):
    table = build_tree_table(tree, collapsed_ids)
    cfg = {
        "Ticket": st.column_config.LinkColumn(
            "Ticket",
            display_text=r"browse/(.*)$",
            help="Open in Jira",
            width="small",
        ),
        "cycle_time_value": None,
        "key": None,
    }
    shown = table.head(limit)
    styled = shown.style.apply(lambda _: cycle_time_colors(shown), subset=["Cycle time"], axis=0)
    st.dataframe(styled, hide_index=True, column_config=cfg, use_container_width=True)
    return table
