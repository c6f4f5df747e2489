"""Mapping raw Jira issue JSON (native or pre-flattened) into IssueRecord instances."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

import pandas as pd

from .models import IssueRecord, IssueTimeline


def parse_dt(val) -> datetime | None:
    """Parse an ISO 8601 timestamp into a UTC-aware datetime (None if invalid)."""
    if val is None or val == "":
        return None
    if isinstance(val, datetime) and val.tzinfo is not None:
        return val
    ts = pd.to_datetime(val, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _name_of(value: Any) -> str | None:
    if isinstance(value, dict):
        name = value.get("name")
        return str(name) if name is not None else None
    if value is None:
        return None
    return str(value)


def _parent_key_of(value: Any) -> str | None:
    # Parent Link values arrive as a key string, {"key": ...} or {"data": {"key": ...}}
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        key = value.get("key") or (value.get("data") or {}).get("key")
        return str(key) if key else None
    return None


def _histories_of(changelog: Any) -> list[dict[str, Any]]:
    if isinstance(changelog, dict):
        histories = changelog.get("histories") or []
    elif isinstance(changelog, list):
        histories = changelog
    else:
        histories = []
    return [h for h in histories if isinstance(h, dict)]


def normalize_issue(raw: dict[str, Any]) -> IssueRecord:
    """Map either raw issue shape into one canonical record.

    The tracker-native shape nests everything under ``fields`` (status under
    ``fields.status.name``); the pre-flattened shape carries ``status``,
    ``issueType`` and ``parentKey`` at the top level. Both keep history
    under ``changelog``.
    """
    fields = raw.get("fields")
    if isinstance(fields, dict):
        issuetype = fields.get("issuetype") or {}
        parent_key = _parent_key_of(raw.get("parentKey")) or _parent_key_of(fields.get("parent"))
        record = IssueRecord(
            key=str(raw.get("key") or ""),
            summary=str(fields.get("summary") or raw.get("summary") or ""),
            status=_name_of(fields.get("status")) or _name_of(raw.get("status")) or "Unknown",
            created=parse_dt(fields.get("created") or raw.get("created")),
            issue_type=_name_of(issuetype) or raw.get("issueType") or "Unknown",
            url=str(raw.get("url") or ""),
            issue_type_icon_url=(issuetype.get("iconUrl") if isinstance(issuetype, dict) else None)
            or raw.get("issueTypeIconUrl"),
            parent_key=parent_key,
            histories=_histories_of(raw.get("changelog")),
        )
    else:
        record = IssueRecord(
            key=str(raw.get("key") or ""),
            summary=str(raw.get("summary") or ""),
            status=_name_of(raw.get("status")) or "Unknown",
            created=parse_dt(raw.get("created")),
            issue_type=_name_of(raw.get("issueType")) or "Unknown",
            url=str(raw.get("url") or ""),
            issue_type_icon_url=raw.get("issueTypeIconUrl"),
            parent_key=_parent_key_of(raw.get("parentKey")),
            histories=_histories_of(raw.get("changelog")),
        )
    record.status = record.status.strip() or "Unknown"
    return record


def timelines_to_dataframe(timelines: Iterable[IssueTimeline]) -> pd.DataFrame:
    rows = []
    for t in timelines:
        rows.append(
            {
                "key": t.key,
                "summary": t.summary,
                "issue_type": t.issue_type,
                "url": t.url,
                "depth": t.depth,
                "parent_id": t.parent_id,
                "has_children": t.has_children,
                "status": t.segments[-1].status if t.segments else None,
                "start": t.start,
                "end": t.end,
                "total_cycle_time": t.total_cycle_time,
                "segment_count": len(t.segments),
            }
        )
    return pd.DataFrame(rows)


def segments_to_dataframe(timelines: Iterable[IssueTimeline]) -> pd.DataFrame:
    """Long-form frame with one row per status interval."""
    rows = []
    for t in timelines:
        for seg in t.segments:
            rows.append(
                {
                    "key": t.key,
                    "summary": t.summary,
                    "issue_type": t.issue_type,
                    "status": seg.status,
                    "start": seg.start,
                    "end": seg.end,
                    "duration_work_days": seg.duration_work_days,
                }
            )
    return pd.DataFrame(rows)
