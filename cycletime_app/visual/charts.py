"""Chart builders (Altair) for status timelines and cycle time distributions."""

from __future__ import annotations

from collections.abc import Sequence

import altair as alt
import pandas as pd
import pytz

from cycletime_app.core.config import SETTINGS, TIMEZONE
from cycletime_app.core.mappers import segments_to_dataframe
from cycletime_app.core.models import DistributionPoint, GroupStats, IssueTimeline
from cycletime_app.core.status import status_color
from cycletime_app.visual.layout import monday_ticks


def _points_frame(points: Sequence[DistributionPoint]) -> pd.DataFrame:
    tz = pytz.timezone(TIMEZONE)
    df = pd.DataFrame(
        [
            {
                "key": p.key,
                "summary": p.summary,
                "issue_type": p.issue_type,
                "cycle_time": round(p.cycle_time, 2),
                "end": p.end,
            }
            for p in points
        ]
    )
    if not df.empty:
        df["end"] = pd.to_datetime(df["end"], utc=True, errors="coerce").dt.tz_convert(tz)
    return df


def status_timeline_chart(timelines: Sequence[IssueTimeline]):
    """Gantt-style chart: one row per issue, one bar per status interval."""
    df = segments_to_dataframe(timelines)
    if df.empty:
        return None
    tz = pytz.timezone(TIMEZONE)
    df["start"] = pd.to_datetime(df["start"], utc=True, errors="coerce").dt.tz_convert(tz)
    df["end"] = pd.to_datetime(df["end"], utc=True, errors="coerce").dt.tz_convert(tz)
    df["duration_work_days"] = df["duration_work_days"].round(2)

    statuses = sorted(df["status"].dropna().unique().tolist())
    colors = [status_color(s) for s in statuses]
    order = [t.key for t in timelines]

    ticks = monday_ticks(df["start"].min(), df["end"].max())
    x_axis = alt.Axis(values=[t.isoformat() for t in ticks], format="%b %d") if ticks else alt.Axis()

    return (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("start:T", title="Date", axis=x_axis),
            x2="end:T",
            y=alt.Y("key:N", sort=order, title=None),
            color=alt.Color(
                "status:N",
                scale=alt.Scale(domain=statuses, range=colors),
                legend=alt.Legend(title="Status"),
            ),
            tooltip=[
                alt.Tooltip("key:N", title="Issue"),
                alt.Tooltip("summary:N", title="Summary"),
                alt.Tooltip("status:N", title="Status"),
                alt.Tooltip("start:T", title="Start", format="%Y-%m-%d %H:%M"),
                alt.Tooltip("end:T", title="End", format="%Y-%m-%d %H:%M"),
                alt.Tooltip("duration_work_days:Q", title="Work days"),
            ],
        )
        .properties(height=max(120, 22 * len(order)))
    )


def distribution_chart(points: Sequence[DistributionPoint], *, title: str):
    """Scatter of cycle time against end date, colored by issue type."""
    df = _points_frame(points)
    if df.empty:
        return None
    return (
        alt.Chart(df)
        .mark_circle(size=80, opacity=0.8)
        .encode(
            x=alt.X("end:T", title="End date"),
            y=alt.Y("cycle_time:Q", title="Cycle time (work days)"),
            color=alt.Color("issue_type:N", legend=alt.Legend(title="Issue type")),
            tooltip=[
                alt.Tooltip("key:N", title="Issue"),
                alt.Tooltip("summary:N", title="Summary"),
                alt.Tooltip("issue_type:N", title="Type"),
                alt.Tooltip("cycle_time:Q", title="Work days"),
            ],
        )
        .properties(title=title, height=SETTINGS.chart_height)
    )


def subtask_group_chart(groups: Sequence[GroupStats]):
    """Per-group scatter of sub-task cycle times with the group mean as a tick."""
    rows = []
    for g in groups:
        for p in g.issues:
            rows.append(
                {
                    "group": g.group_name,
                    "key": p.key,
                    "summary": p.summary,
                    "cycle_time": round(p.cycle_time, 2),
                }
            )
    if not rows:
        return None
    df = pd.DataFrame(rows)
    means = pd.DataFrame([{"group": g.group_name, "mean": round(g.average, 2), "label": g.label} for g in groups])
    order = [g.group_name for g in groups]

    points = (
        alt.Chart(df)
        .mark_circle(size=70, opacity=0.75)
        .encode(
            x=alt.X("group:N", sort=order, title="Group"),
            y=alt.Y("cycle_time:Q", title="Cycle time (work days)"),
            color=alt.Color("group:N", sort=order, legend=None),
            tooltip=[
                alt.Tooltip("key:N", title="Sub-task"),
                alt.Tooltip("summary:N", title="Summary"),
                alt.Tooltip("cycle_time:Q", title="Work days"),
            ],
        )
    )
    mean_ticks = (
        alt.Chart(means)
        .mark_tick(color="#212529", thickness=2, size=30)
        .encode(
            x=alt.X("group:N", sort=order),
            y="mean:Q",
            tooltip=[alt.Tooltip("group:N", title="Group"), alt.Tooltip("label:N", title="Average")],
        )
    )
    return (points + mean_ticks).properties(height=SETTINGS.chart_height)
