"""Cycle time page.

Pulls one issue with its descendants, renders the status timeline tree and
computes statistics for whatever subset of the tree is selected.
"""

from __future__ import annotations

import logging

import streamlit as st

from cycletime_app.analytics.aggregations.stats import compute_stats
from cycletime_app.analytics.hierarchy.selection import (
    collapsible_parent_keys,
    extract_all_keys,
    resolve_selection,
    toggle_subtask_visibility,
)
from cycletime_app.analytics.hierarchy.tree import flatten_tree
from cycletime_app.analytics.segments.filters import issue_types_in, statuses_in
from cycletime_app.app import register_page
from cycletime_app.core.config import SETTINGS
from cycletime_app.core.mappers import timelines_to_dataframe
from cycletime_app.core.models import SelectedIssueStats, TierStats
from cycletime_app.core.service import CycleTimeDataset, IssueService, build_dataset
from cycletime_app.core.settings import SettingsError, SettingsStore, UserSettings
from cycletime_app.visual.charts import distribution_chart, status_timeline_chart, subtask_group_chart
from cycletime_app.visual.formatting import format_calendar_weeks, format_week_value, format_work_days
from cycletime_app.visual.progress import ProgressReporter
from cycletime_app.visual.tables import render_tree_table, tree_rows

logger = logging.getLogger(__name__)

DATASET_KEY = "cycle_time_dataset"
SELECTION_KEY = "cycle_time_selection"
SELECTION_WIDGET_KEY = "cycle_time_selection_widget"


def load_user_settings() -> UserSettings:
    if "user_settings" not in st.session_state:
        try:
            st.session_state["user_settings"] = SettingsStore().load()
        except SettingsError as exc:
            logger.warning("%s", exc)
            st.warning(f"{exc}. Starting from defaults.")
            st.session_state["user_settings"] = UserSettings()
    return st.session_state["user_settings"]


def save_user_settings(settings: UserSettings) -> None:
    st.session_state["user_settings"] = settings
    try:
        SettingsStore().save(settings)
    except OSError as exc:
        logger.warning("Could not save settings: %s", exc)
        st.caption(f"(Info) Settings not saved: {exc}")


def _on_selection_change(dataset: CycleTimeDataset, with_descendants: bool) -> None:
    ordered = resolve_selection(
        st.session_state.get(SELECTION_WIDGET_KEY, []),
        st.session_state.get(SELECTION_KEY, []),
        dataset.tree,
        dataset.adjacency,
        with_descendants=with_descendants,
    )
    st.session_state[SELECTION_KEY] = ordered
    st.session_state[SELECTION_WIDGET_KEY] = ordered


def _select_all(dataset: CycleTimeDataset) -> None:
    keys = extract_all_keys(dataset.tree)
    ordered = [t.key for t in flatten_tree(dataset.tree) if t.key in keys]
    st.session_state[SELECTION_KEY] = ordered
    st.session_state[SELECTION_WIDGET_KEY] = ordered


def _render_tier(tier: TierStats | None) -> None:
    if tier is None:
        st.caption("No completed work in this tier.")
        return
    cols = st.columns(3)
    cols[0].metric("Issues", tier.count)
    cols[1].metric("Average", tier.average or "-")
    if tier.longest:
        cols[2].metric("Longest", tier.longest.key, tier.longest.label, delta_color="off")
    if tier.last:
        st.caption(f"Last to finish: {tier.last.key} {tier.last.summary} ({tier.last.label})")
    chart = distribution_chart(tier.distribution, title=f"{tier.tier} cycle times")
    if chart is not None:
        st.altair_chart(chart, use_container_width=True)


def _render_stats(stats: SelectedIssueStats) -> None:
    st.subheader("Selection statistics")
    if stats.root_key:
        st.caption(f"{stats.root_key}: {stats.root_summary}")
    cols = st.columns(3)
    cols[0].metric("Cycle time", format_work_days(stats.cycle_time))
    cols[1].metric("Calendar time", format_week_value(stats.calendar_weeks))
    cols[2].metric("Issues", stats.participant_count)
    if stats.start and stats.end:
        st.caption(f"Wall-clock span: {format_calendar_weeks(stats.start, stats.end)}")

    tabs = st.tabs(["Epics", "Stories / Tasks", "Sub-tasks", "Sub-task groups"])
    with tabs[0]:
        _render_tier(stats.epic_stats)
    with tabs[1]:
        _render_tier(stats.story_stats)
    with tabs[2]:
        _render_tier(stats.sub_task_stats)
    with tabs[3]:
        groups = stats.group_stats
        if groups is None:
            st.caption("No sub-tasks selected.")
            return
        st.metric("All sub-tasks", groups.global_average or "-")
        if groups.longest_group:
            st.write(f"Longest group: **{groups.longest_group.group_name}** ({groups.longest_group.label})")
        if groups.last_group:
            st.write(
                f"Usually last: **{groups.last_group.group_name}** "
                f"({groups.last_group.votes} parent(s))"
            )
        chart = subtask_group_chart(groups.groups)
        if chart is not None:
            st.altair_chart(chart, use_container_width=True)


@register_page("Cycle Time")
def cycle_time_page():
    st.title("Cycle Time")
    st.caption("Work-day time spent per status across an issue and everything below it.")
    service: IssueService | None = st.session_state.get("issue_service")
    if service is None:
        st.warning("Initialize connection on Setup page first.")
        return
    settings = load_user_settings()

    issue_id = st.text_input("Issue key", value=settings.issue_id, placeholder="PROJ-123")
    if st.button("Pull", type="primary"):
        reporter = ProgressReporter(f"Pulling {issue_id}")
        dataset, error = service.pull(
            issue_id,
            excluded_statuses=settings.excluded_statuses,
            excluded_issue_types=settings.excluded_issue_types,
            progress=reporter.callback,
        )
        if error:
            reporter.error(error)
            return
        st.session_state[DATASET_KEY] = dataset
        st.session_state[SELECTION_KEY] = []
        st.session_state[SELECTION_WIDGET_KEY] = []
        settings.issue_id = issue_id.strip().upper()
        save_user_settings(settings)
        reporter.complete(f"Loaded {len(dataset.unfiltered)} issue(s).")

    dataset: CycleTimeDataset | None = st.session_state.get(DATASET_KEY)
    if dataset is None:
        st.info("Pull an issue to see its timeline.")
        return

    st.sidebar.markdown("### Exclusions")
    status_options = sorted(set(statuses_in(dataset.unfiltered)) | set(settings.excluded_statuses), key=str.lower)
    type_options = sorted(set(issue_types_in(dataset.unfiltered)) | set(settings.excluded_issue_types), key=str.lower)
    excluded_statuses = st.sidebar.multiselect("Excluded statuses", status_options, default=settings.excluded_statuses)
    excluded_types = st.sidebar.multiselect("Excluded issue types", type_options, default=settings.excluded_issue_types)
    if excluded_statuses != settings.excluded_statuses or excluded_types != settings.excluded_issue_types:
        settings.excluded_statuses = list(excluded_statuses)
        settings.excluded_issue_types = list(excluded_types)
        save_user_settings(settings)
        dataset = build_dataset(
            dataset.raw,
            excluded_statuses=excluded_statuses,
            excluded_issue_types=excluded_types,
        )
        st.session_state[DATASET_KEY] = dataset
        visible = {t.key for t in dataset.flat}
        kept = [k for k in st.session_state.get(SELECTION_KEY, []) if k in visible]
        st.session_state[SELECTION_KEY] = kept
        st.session_state[SELECTION_WIDGET_KEY] = kept

    if dataset.empty:
        st.info("Every issue was excluded by the current filters.")
        return

    # Tree table
    subtasks_visible = not set(collapsible_parent_keys(dataset.tree)) <= set(settings.collapsed_ids)
    label = "Hide sub-tasks" if subtasks_visible else "Show sub-tasks"
    if st.button(label):
        collapsed, _ = toggle_subtask_visibility(settings.collapsed_ids, dataset.tree, subtasks_visible)
        settings.collapsed_ids = sorted(collapsed)
        save_user_settings(settings)
        st.rerun()
    table = render_tree_table(dataset.tree, settings.collapsed_ids, limit=SETTINGS.max_table_rows)

    chart = status_timeline_chart(tree_rows(dataset.tree, settings.collapsed_ids))
    if chart is not None:
        st.altair_chart(chart, use_container_width=True)

    # Selection
    with_descendants = st.toggle("Select descendants with their parent", value=True)
    st.button("Select all", on_click=_select_all, args=(dataset,))
    st.multiselect(
        "Selected issues",
        [t.key for t in flatten_tree(dataset.tree)],
        key=SELECTION_WIDGET_KEY,
        on_change=_on_selection_change,
        args=(dataset, with_descendants),
    )
    # Only the newest selection reaches this point: a widget change reruns the
    # script and stops any run still computing an older one.
    selection = st.session_state.get(SELECTION_KEY, [])
    stats = compute_stats(selection, dataset.flat, dataset.adjacency, settings.groups)
    if stats is None:
        st.info("Select one or more issues to see statistics.")
    else:
        _render_stats(stats)

    st.markdown("---")
    csv = timelines_to_dataframe(dataset.flat).to_csv(index=False).encode(SETTINGS.download_encoding)
    st.download_button(
        "Download timelines (CSV)",
        data=csv,
        file_name=f"{settings.issue_id or 'cycle_time'}_timelines.csv",
        mime="text/csv",
    )
    st.caption(f"{len(table)} row(s) shown of {len(dataset.flat)} issue(s).")
