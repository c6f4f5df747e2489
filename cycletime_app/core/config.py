"""Central configuration, constants, and shared defaults."""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

# =============================================================================
# Jira Connection Settings
# =============================================================================
JIRA_DEFAULT_SERVER = "https://your-domain.atlassian.net"
JIRA_MAX_RESULTS = 500

# Canonical field list for Jira fetches (changelog is requested via expand)
JIRA_FETCH_BASE_FIELDS = [
    "summary",
    "status",
    "issuetype",
    "parent",
    "created",
    "subtasks",
]

# Field names resolved to custom field ids once per client
EPIC_LINK_FIELD_NAME = "Epic Link"
PARENT_LINK_FIELD_NAME = "Parent Link"

# Descendant fan-out tuning
# Sub-tasks missing from the hierarchy query are fetched by key in chunks.
# Threads are used because the jira client is synchronous and I/O bound.
DESCENDANT_FETCH_CHUNK = 50
DESCENDANT_FETCH_MAX_WORKERS = 4

# =============================================================================
# Business Calendar
# =============================================================================
TIMEZONE = "America/Los_Angeles"
WORKDAY_START_HOUR = 9
WORKDAY_END_HOUR = 17
MINUTES_PER_WORKDAY = (WORKDAY_END_HOUR - WORKDAY_START_HOUR) * 60

# Used when holidays.yaml is missing or unreadable
FALLBACK_HOLIDAYS: Sequence[str] = (
    "2024-01-01",
    "2024-05-27",
    "2024-07-04",
    "2024-09-02",
    "2024-11-28",
    "2024-11-29",
    "2024-12-25",
    "2025-01-01",
    "2025-05-26",
    "2025-07-04",
    "2025-09-01",
    "2025-11-27",
    "2025-11-28",
    "2025-12-25",
)

# =============================================================================
# Issue Type Tiers
# =============================================================================
EPIC_LIKE_TYPES: frozenset[str] = frozenset({"epic", "feature", "initiative"})
SUBTASK_TYPE = "Sub-task"

# Pulling a root of these types is refused (hierarchy above Epic)
BLOCKED_ROOT_TYPES: frozenset[str] = frozenset({"Initiative", "Theme"})

# Parents whose children are toggled by "show/hide sub-tasks"
NON_SUBTASK_PARENT_TYPES: frozenset[str] = frozenset({"Epic", "Feature"})

# =============================================================================
# Workflow Status Configuration
# =============================================================================
# Statuses excluded from cycle time after every pull
DEFAULT_EXCLUDED_STATUSES: Sequence[str] = (
    "To Do",
    "Open",
    "Backlog",
    "Done",
    "Resolved",
    "Closed",
)

STATUS_COLORS: dict[str, str] = {
    "To Do": "#e9ecef",
    "Open": "#e9ecef",
    "Backlog": "#e9ecef",
    "In Progress": "#4dabf7",
    "In Development": "#4dabf7",
    "Implementing": "#4dabf7",
    "In Review": "#ffd43b",
    "Code Review": "#ffd43b",
    "Under Review": "#ffd43b",
    "In Testing": "#ff922b",
    "Testing": "#ff922b",
    "QA": "#ff922b",
    "Done": "#51cf66",
    "Closed": "#2f9e44",
    "Resolved": "#51cf66",
}
UNKNOWN_STATUS_COLOR = "#868e96"

# =============================================================================
# Local Settings
# =============================================================================
SETTINGS_PATH = Path(
    os.environ.get("CYCLETIME_SETTINGS_PATH", Path.home() / ".cycletime_app" / "settings.json")
)
DEFAULT_ISSUE_ID = ""


@dataclass(slots=True)
class AppSettings:
    max_table_rows: int = 2000
    chart_height: int = 320
    download_encoding: str = "utf-8"


SETTINGS = AppSettings()
