"""Sub-task groups page: manage keyword groups used to bucket sub-task stats."""

from __future__ import annotations

import streamlit as st

from cycletime_app.analytics.aggregations.grouping import group_counts, move_group, summary_frequencies
from cycletime_app.analytics.aggregations.stats import TIER_SUBTASK, tier_of
from cycletime_app.app import register_page
from cycletime_app.core.models import SubTaskGroup, parse_keywords
from cycletime_app.pages.cycle_time import DATASET_KEY, load_user_settings, save_user_settings


@register_page("Sub-task Groups")
def groups_page():
    st.title("Sub-task Groups")
    st.caption(
        "Sub-tasks are assigned to the first group with a keyword contained in their summary "
        "(case-insensitive). Unmatched sub-tasks fall into Other."
    )
    settings = load_user_settings()
    groups = list(settings.groups)

    changed = False
    for index, group in enumerate(groups):
        with st.container(border=True):
            name_col, kw_col, btn_col = st.columns([2, 5, 2])
            name = name_col.text_input("Name", value=group.name, key=f"group_name_{group.id}")
            keywords = kw_col.text_input(
                "Keywords (comma separated)",
                value=", ".join(group.keywords),
                key=f"group_keywords_{group.id}",
            )
            if name != group.name or parse_keywords(keywords) != group.keywords:
                groups[index] = SubTaskGroup(id=group.id, name=name, keywords=parse_keywords(keywords))
                changed = True
            up, down, delete = btn_col.columns(3)
            if up.button("↑", key=f"group_up_{group.id}", disabled=index == 0):
                groups = move_group(groups, index, "up")
                changed = True
            if down.button("↓", key=f"group_down_{group.id}", disabled=index == len(groups) - 1):
                groups = move_group(groups, index, "down")
                changed = True
            if delete.button("✕", key=f"group_delete_{group.id}"):
                groups = [g for g in groups if g.id != group.id]
                changed = True

    if st.button("Add group"):
        groups.append(SubTaskGroup.new())
        changed = True

    if changed:
        settings.groups = groups
        save_user_settings(settings)
        st.rerun()

    dataset = st.session_state.get(DATASET_KEY)
    if dataset is None or dataset.empty:
        st.info("Pull an issue on the Cycle Time page to preview group membership.")
        return
    subtasks = [t for t in dataset.flat if tier_of(t.issue_type) == TIER_SUBTASK]
    if not subtasks:
        st.info("The pulled hierarchy has no sub-tasks.")
        return

    st.subheader("Membership")
    st.dataframe(group_counts(subtasks, groups)[["group", "count"]], hide_index=True)
    st.subheader("Sub-task summaries")
    st.dataframe(summary_frequencies(subtasks, groups), hide_index=True, use_container_width=True)
