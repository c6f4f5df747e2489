"""Domain data models for issue timelines, sub-task groups, and statistics."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Bucket for sub-tasks matching no user group; user groups never take this id
OTHER_GROUP_ID = "other"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    date: datetime
    from_status: str
    to_status: str


@dataclass(frozen=True, slots=True)
class StatusInterval:
    status: str
    start: datetime
    end: datetime
    duration_work_days: float


@dataclass(slots=True)
class IssueRecord:
    """Canonical raw issue, independent of the shape the tracker delivered."""

    key: str
    summary: str
    status: str
    created: datetime | None
    issue_type: str
    url: str = ""
    issue_type_icon_url: str | None = None
    parent_key: str | None = None
    histories: list[dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class IssueTimeline:
    key: str
    summary: str
    issue_type: str
    segments: list[StatusInterval] = field(default_factory=list)
    total_cycle_time: float = 0.0
    url: str = ""
    issue_type_icon_url: str | None = None
    depth: int = 0
    has_children: bool = False
    parent_id: str | None = None
    # Populated by build_tree only; None marks a leaf
    sub_rows: list[IssueTimeline] | None = None

    @property
    def start(self) -> datetime | None:
        return self.segments[0].start if self.segments else None

    @property
    def end(self) -> datetime | None:
        return self.segments[-1].end if self.segments else None


@dataclass(slots=True)
class SubTaskGroup:
    id: str
    name: str
    keywords: list[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.id or self.id.strip().lower() == OTHER_GROUP_ID:
            self.id = str(uuid.uuid4())

    @classmethod
    def new(cls, name: str = "New Group", keywords: list[str] | None = None) -> SubTaskGroup:
        return cls(id=str(uuid.uuid4()), name=name, keywords=list(keywords or []))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SubTaskGroup:
        keywords = data.get("keywords") or []
        if isinstance(keywords, str):
            keywords = parse_keywords(keywords)
        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            name=str(data.get("name") or ""),
            keywords=[str(k) for k in keywords],
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "keywords": list(self.keywords)}


def parse_keywords(text: str) -> list[str]:
    """Split comma-separated keyword text, dropping blanks."""
    return [k.strip() for k in str(text or "").split(",") if k.strip()]


# -----------------------------------------------------------------------------
# Statistics results
# -----------------------------------------------------------------------------
@dataclass(slots=True)
class IssueHighlight:
    key: str
    summary: str
    cycle_time: float
    label: str


@dataclass(slots=True)
class DistributionPoint:
    key: str
    summary: str
    issue_type: str
    cycle_time: float
    end: datetime | None


@dataclass(slots=True)
class TierStats:
    tier: str
    count: int
    average: str | None
    longest: IssueHighlight | None
    last: IssueHighlight | None
    distribution: list[DistributionPoint] = field(default_factory=list)


@dataclass(slots=True)
class GroupStats:
    group_id: str
    group_name: str
    count: int
    average: float
    std_dev: float
    label: str
    issues: list[DistributionPoint] = field(default_factory=list)


@dataclass(slots=True)
class GroupVote:
    group_id: str
    group_name: str
    votes: int


@dataclass(slots=True)
class SubTaskGroupStats:
    global_average: str | None
    groups: list[GroupStats] = field(default_factory=list)
    longest_group: GroupStats | None = None
    last_group: GroupVote | None = None


@dataclass(slots=True)
class SelectedIssueStats:
    participant_count: int
    cycle_time: float
    calendar_weeks: float
    root_key: str | None = None
    root_summary: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    epic_stats: TierStats | None = None
    story_stats: TierStats | None = None
    sub_task_stats: TierStats | None = None
    group_stats: SubTaskGroupStats | None = None


@dataclass(slots=True)
class FetchResult:
    success: bool
    data: list[dict[str, Any]] | None = None
    error: str | None = None
