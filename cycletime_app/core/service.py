"""IssueService: fetches an issue hierarchy and runs the cycle time pipeline."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import requests

from cycletime_app.analytics.hierarchy.tree import (
    build_adjacency_map,
    build_tree,
    filter_timeline_by_issue_type,
    reconstruct,
)
from cycletime_app.analytics.metrics.calendar import BusinessCalendar
from cycletime_app.analytics.segments.filters import filter_statuses

from .config import (
    BLOCKED_ROOT_TYPES,
    DEFAULT_EXCLUDED_STATUSES,
    DESCENDANT_FETCH_CHUNK,
    DESCENDANT_FETCH_MAX_WORKERS,
    JIRA_FETCH_BASE_FIELDS,
)
from .jira_client import JiraAPI
from .models import FetchResult, IssueTimeline

ProgressCallback = Callable[[str, int | None, int | None], None]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CycleTimeDataset:
    """Everything the pages need after one pull."""

    flat: list[IssueTimeline] = field(default_factory=list)
    tree: list[IssueTimeline] = field(default_factory=list)
    adjacency: dict[str, list[str]] = field(default_factory=dict)
    unfiltered: list[IssueTimeline] = field(default_factory=list)
    raw: list[dict[str, Any]] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.flat


def build_dataset(
    raw_issues: Iterable[dict[str, Any]],
    *,
    excluded_statuses: Iterable[str] | None = DEFAULT_EXCLUDED_STATUSES,
    excluded_issue_types: Iterable[str] | None = None,
    now: datetime | None = None,
    calendar: BusinessCalendar | None = None,
) -> CycleTimeDataset:
    """Run the full transformation on an already fetched issue set.

    reconstruct -> issue-type exclusion (cascading) -> status filter -> tree.
    The adjacency map is rebuilt after exclusion so it only references
    surviving issues.
    """
    raw = list(raw_issues)
    unfiltered = reconstruct(raw, now=now, calendar=calendar)
    adjacency = build_adjacency_map(unfiltered)
    kept = filter_timeline_by_issue_type(unfiltered, excluded_issue_types, adjacency)
    flat = filter_statuses(kept, excluded_statuses)
    return CycleTimeDataset(
        flat=flat,
        tree=build_tree(flat),
        adjacency=build_adjacency_map(flat),
        unfiltered=unfiltered,
        raw=raw,
    )


def _parent_key(issue: dict[str, Any], field_ids: dict[str, str | None]) -> str | None:
    fields = issue.get("fields") or {}
    parent_key = (fields.get("parent") or {}).get("key")
    epic_link = field_ids.get("epic_link")
    parent_link = field_ids.get("parent_link")
    for fid in (epic_link, parent_link):
        if parent_key or not fid:
            continue
        value = fields.get(fid)
        if isinstance(value, str):
            parent_key = value
        elif isinstance(value, dict):
            parent_key = value.get("key") or (value.get("data") or {}).get("key")
    return parent_key or None


class IssueService:
    def __init__(self, api: JiraAPI):
        self.api = api

    # ------------------ Fetch Methods ------------------
    def fetch_issue_and_descendants(
        self,
        issue_key: str,
        *,
        progress: ProgressCallback | None = None,
    ) -> FetchResult:
        """Fetch an issue plus every descendant as flattened raw records.

        Tracker failures are reported through ``FetchResult.error``; nothing
        is raised for expected failure modes.
        """
        issue_key = (issue_key or "").strip().upper()
        if not issue_key:
            return FetchResult(success=False, error="No issue key given.")
        try:
            self.api.clear_cache()
            field_ids = self.api.field_ids()
            fields = self._fetch_fields(field_ids)

            if progress:
                progress(f"Looking up {issue_key}", None, None)
            root = self.api.search_enhanced(f'key = "{issue_key}"', fields=fields, expand=["changelog"])
            if not root:
                return FetchResult(success=False, error=f"Issue {issue_key} not found.")
            type_name = ((root[0].get("fields") or {}).get("issuetype") or {}).get("name")
            if type_name in BLOCKED_ROOT_TYPES:
                return FetchResult(
                    success=False,
                    error="Hierarchy levels above Epic are currently not supported.",
                )

            if progress:
                progress(f"Gathering the hierarchy below {issue_key}", None, None)
            issues = self.api.search_enhanced(
                f'key = "{issue_key}" OR issue in childIssuesOf("{issue_key}")',
                fields=fields,
                expand=["changelog"],
            )
        except (RuntimeError, requests.RequestException) as exc:
            logger.warning("Jira fetch for %s failed: %s", issue_key, exc)
            return FetchResult(success=False, error=str(exc))

        issues = list(issues) + self._fetch_missing_subtasks(issues, fields, progress=progress)
        data = [self._to_record(issue, field_ids) for issue in issues if issue.get("key")]
        logger.info("Fetched %d issues for hierarchy of %s", len(data), issue_key)
        return FetchResult(success=True, data=data)

    def pull(
        self,
        issue_key: str,
        *,
        excluded_statuses: Iterable[str] | None = DEFAULT_EXCLUDED_STATUSES,
        excluded_issue_types: Iterable[str] | None = None,
        now: datetime | None = None,
        progress: ProgressCallback | None = None,
    ) -> tuple[CycleTimeDataset | None, str | None]:
        """Fetch and transform; returns ``(dataset, None)`` or ``(None, error)``."""
        result = self.fetch_issue_and_descendants(issue_key, progress=progress)
        if not result.success:
            return None, result.error or "Unknown error occurred"
        if progress:
            progress("Building status timelines", None, None)
        dataset = build_dataset(
            result.data or [],
            excluded_statuses=excluded_statuses,
            excluded_issue_types=excluded_issue_types,
            now=now,
        )
        return dataset, None

    # ------------------ Internal Helpers ------------------
    @staticmethod
    def _fetch_fields(field_ids: dict[str, str | None]) -> list[str]:
        fields = list(JIRA_FETCH_BASE_FIELDS)
        for fid in field_ids.values():
            if fid and fid not in fields:
                fields.append(fid)
        return fields

    def _to_record(self, issue: dict[str, Any], field_ids: dict[str, str | None]) -> dict[str, Any]:
        fields = issue.get("fields") or {}
        issuetype = fields.get("issuetype") or {}
        key = issue.get("key")
        return {
            "key": key,
            "url": self.api.browse_url(key),
            "summary": fields.get("summary") or "",
            "status": (fields.get("status") or {}).get("name") or "Unknown",
            "created": fields.get("created"),
            "issueType": issuetype.get("name") or "Unknown",
            "issueTypeIconUrl": issuetype.get("iconUrl"),
            "parentKey": _parent_key(issue, field_ids),
            "changelog": issue.get("changelog") or {"histories": []},
        }

    def _fetch_missing_subtasks(
        self,
        issues: Sequence[dict[str, Any]],
        fields: list[str],
        *,
        progress: ProgressCallback | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch sub-tasks referenced by fetched issues but absent from the result.

        Chunks that fail are logged and skipped; whatever was fetched is kept.
        """
        present = {i.get("key") for i in issues}
        missing: list[str] = []
        for issue in issues:
            for sub in (issue.get("fields") or {}).get("subtasks") or []:
                key = sub.get("key") if isinstance(sub, dict) else None
                if key and key not in present and key not in missing:
                    missing.append(key)
        if not missing:
            return []

        chunks = [missing[i : i + DESCENDANT_FETCH_CHUNK] for i in range(0, len(missing), DESCENDANT_FETCH_CHUNK)]

        def _task(chunk: list[str]) -> list[dict[str, Any]]:
            keys = ", ".join(f'"{k}"' for k in chunk)
            return self.api.search_enhanced(f"key in ({keys})", fields=fields, expand=["changelog"])

        if progress:
            progress("Loading remaining sub-tasks", 0, len(chunks))
        out: list[dict[str, Any]] = []
        completed = 0
        with ThreadPoolExecutor(max_workers=DESCENDANT_FETCH_MAX_WORKERS) as pool:
            futures = [pool.submit(_task, chunk) for chunk in chunks]
            for fut in as_completed(futures):
                try:
                    out.extend(fut.result())
                except Exception as exc:
                    logger.warning("Sub-task fetch failed, keeping the rest: %s", exc)
                finally:
                    completed += 1
                    if progress:
                        progress("Loading remaining sub-tasks", completed, len(chunks))
        return [i for i in out if i.get("key") not in present]
