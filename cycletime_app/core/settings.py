"""Local key-value settings persisted as a JSON blob."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import DEFAULT_EXCLUDED_STATUSES, DEFAULT_ISSUE_ID, SETTINGS_PATH
from .models import SubTaskGroup

logger = logging.getLogger(__name__)


class SettingsError(RuntimeError):
    """Raised when the settings file exists but cannot be parsed."""


@dataclass(slots=True)
class UserSettings:
    issue_id: str = DEFAULT_ISSUE_ID
    groups: list[SubTaskGroup] = field(default_factory=list)
    excluded_statuses: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_STATUSES))
    excluded_issue_types: list[str] = field(default_factory=list)
    collapsed_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserSettings:
        defaults = cls()

        def _str_list(name: str, fallback: list[str]) -> list[str]:
            value = data.get(name)
            if not isinstance(value, list):
                return fallback
            return [str(v) for v in value if str(v).strip()]

        groups_raw = data.get("subTaskGroups", data.get("groups"))
        groups = [SubTaskGroup.from_dict(g) for g in groups_raw if isinstance(g, dict)] if isinstance(groups_raw, list) else []
        return cls(
            issue_id=str(data.get("issueId") or data.get("issue_id") or defaults.issue_id),
            groups=groups,
            excluded_statuses=_str_list("excludedStatuses", defaults.excluded_statuses),
            excluded_issue_types=_str_list("excludedIssueTypes", defaults.excluded_issue_types),
            collapsed_ids=_str_list("collapsedIds", defaults.collapsed_ids),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "issueId": self.issue_id,
            "subTaskGroups": [g.to_dict() for g in self.groups],
            "excludedStatuses": list(self.excluded_statuses),
            "excludedIssueTypes": list(self.excluded_issue_types),
            "collapsedIds": list(self.collapsed_ids),
        }


class SettingsStore:
    def __init__(self, path: str | Path | None = None):
        self.path = Path(path or SETTINGS_PATH)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> UserSettings:
        """Read saved settings; defaults when nothing was saved yet."""
        if not self.path.exists():
            return UserSettings()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise SettingsError(f"Failed to load settings from {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise SettingsError(f"Settings file {self.path} does not contain a JSON object")
        return UserSettings.from_dict(data)

    def save(self, settings: UserSettings) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(settings.to_dict(), indent=2), encoding="utf-8")
        logger.debug("Saved settings to %s", self.path)
