"""Jira API client wrapper (REST v3 enhanced search + field id lookup)."""

from __future__ import annotations

import logging
import time
from typing import Any

import requests
from jira import JIRA, JIRAError

from .config import EPIC_LINK_FIELD_NAME, JIRA_MAX_RESULTS, PARENT_LINK_FIELD_NAME

logger = logging.getLogger(__name__)

SEARCH_CACHE_TTL_SECONDS = 300.0


class JiraFetchError(RuntimeError):
    """A tracker request failed (HTTP status, transport or undecodable body)."""


class JiraAPI:
    def __init__(self, server: str, email: str, token: str):
        self.server = server.rstrip("/")
        self.client = JIRA(
            basic_auth=(email, token), options={"server": self.server, "rest_api_version": "3"}
        )
        # (jql, fields, expand, page_size) -> (fetched_at, issues)
        self._searches: dict[tuple, tuple[float, list[dict[str, Any]]]] = {}
        self._field_ids: dict[str, str | None] | None = None

    def clear_cache(self) -> None:
        """Forget cached search results so the next pull hits Jira again."""
        self._searches.clear()

    def browse_url(self, issue_key: str) -> str:
        return f"{self.server}/browse/{issue_key}"

    def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        session = getattr(self.client, "_session", None)
        if session is None:
            raise JiraFetchError("Jira session unavailable; reconnect on the setup page.")
        try:
            resp = session.get(url, params=params)
        except requests.RequestException as exc:
            raise JiraFetchError(f"Could not reach Jira: {exc}") from exc
        if resp.status_code >= 400:
            raise JiraFetchError(f"Jira search failed with HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            return resp.json()
        except ValueError as exc:
            raise JiraFetchError(f"Jira returned a non-JSON response: {exc}") from exc

    def search_enhanced(
        self,
        jql: str,
        fields: list[str] | None = None,
        expand: list[str] | None = None,
        page_size: int = JIRA_MAX_RESULTS,
    ) -> list[dict[str, Any]]:
        """Run a JQL query through ``/search/jql``, following ``nextPageToken``.

        Raises ``JiraFetchError`` for any failed page; nothing partial is cached.
        """
        cache_key = (jql, tuple(fields or ()), tuple(expand or ()), page_size)
        hit = self._searches.get(cache_key)
        if hit and time.time() - hit[0] < SEARCH_CACHE_TTL_SECONDS:
            return hit[1]

        params: dict[str, Any] = {"jql": jql, "maxResults": page_size}
        if fields:
            params["fields"] = ",".join(fields)
        if expand:
            params["expand"] = ",".join(expand)
        logger.debug("Jira search: %s", jql)

        url = f"{self.server}/rest/api/3/search/jql"
        issues: list[dict[str, Any]] = []
        page = self._get_json(url, params)
        while True:
            issues.extend(page.get("issues", []))
            next_token = page.get("nextPageToken")
            if not next_token or page.get("isLast") is True:
                break
            page = self._get_json(url, {**params, "nextPageToken": next_token})
        self._searches[cache_key] = (time.time(), issues)
        return issues

    def field_ids(self) -> dict[str, str | None]:
        """Custom field ids for "Epic Link" and "Parent Link", looked up once per client."""
        if self._field_ids is not None:
            return self._field_ids
        try:
            fields = self.client.fields()
        except (JIRAError, requests.RequestException) as exc:
            raise JiraFetchError(f"Could not load Jira field definitions: {exc}") from exc
        by_name = {f.get("name"): f.get("id") for f in fields if isinstance(f, dict)}
        self._field_ids = {
            "epic_link": by_name.get(EPIC_LINK_FIELD_NAME),
            "parent_link": by_name.get(PARENT_LINK_FIELD_NAME),
        }
        return self._field_ids
