from datetime import datetime
from types import SimpleNamespace

import pytest
import pytz
import requests

from cycletime_app.core.jira_client import JiraAPI, JiraFetchError
from cycletime_app.core.service import IssueService, build_dataset

NOW = datetime(2025, 1, 17, 17, tzinfo=pytz.UTC)


def _issue(key, issue_type, parent=None, subtasks=(), **extra_fields):
    fields = {
        "summary": f"{key} summary",
        "status": {"name": "In Progress"},
        "issuetype": {"name": issue_type, "iconUrl": f"https://example/{issue_type}.png"},
        "created": "2025-01-06T17:00:00.000+0000",
        "subtasks": [{"key": k} for k in subtasks],
    }
    if parent:
        fields["parent"] = {"key": parent}
    fields.update(extra_fields)
    return {"key": key, "fields": fields, "changelog": {"histories": []}}


class DummyAPI(JiraAPI):
    def __init__(self, root_type="Epic", fail=False):
        self.server = "https://example.atlassian.net"
        self.root_type = root_type
        self.fail = fail
        self.queries = []
        self._searches = {}

    def field_ids(self):
        return {"epic_link": "customfield_10014", "parent_link": None}

    def search_enhanced(self, jql, fields=None, expand=None, page_size=500):
        self.queries.append(jql)
        if self.fail:
            raise RuntimeError("Enhanced search failed 500: boom")
        if "childIssuesOf" in jql:
            return [
                _issue("E-1", self.root_type),
                _issue("S-1", "Story", subtasks=("T-1", "T-2"), customfield_10014="E-1"),
                _issue("T-1", "Sub-task", parent="S-1"),
            ]
        if jql.startswith("key in ("):
            return [_issue("T-2", "Sub-task", parent="S-1")]
        if jql == 'key = "E-1"':
            return [_issue("E-1", self.root_type)]
        return []


def test_fetch_hierarchy_resolves_parents_and_missing_subtasks():
    api = DummyAPI()
    result = IssueService(api).fetch_issue_and_descendants(" e-1 ")
    assert result.success
    by_key = {r["key"]: r for r in result.data}
    assert set(by_key) == {"E-1", "S-1", "T-1", "T-2"}
    assert by_key["S-1"]["parentKey"] == "E-1"
    assert by_key["T-2"]["parentKey"] == "S-1"
    assert by_key["E-1"]["parentKey"] is None
    assert by_key["E-1"]["url"] == "https://example.atlassian.net/browse/E-1"
    assert by_key["T-1"]["issueTypeIconUrl"] == "https://example/Sub-task.png"
    assert 'key = "E-1" OR issue in childIssuesOf("E-1")' in api.queries
    assert api.queries[-1] == 'key in ("T-2")'


def test_fetch_not_found():
    result = IssueService(DummyAPI()).fetch_issue_and_descendants("NOPE-1")
    assert not result.success
    assert result.error == "Issue NOPE-1 not found."


def test_fetch_blocks_roots_above_epic():
    result = IssueService(DummyAPI(root_type="Initiative")).fetch_issue_and_descendants("E-1")
    assert not result.success
    assert "above Epic" in result.error


def test_fetch_reports_tracker_errors():
    result = IssueService(DummyAPI(fail=True)).fetch_issue_and_descendants("E-1")
    assert not result.success
    assert "500" in result.error
    assert not IssueService(DummyAPI()).fetch_issue_and_descendants("  ").success


def test_pull_builds_dataset():
    progress = []
    dataset, error = IssueService(DummyAPI()).pull(
        "E-1",
        excluded_statuses=(),
        now=NOW,
        progress=lambda msg, cur, total: progress.append(msg),
    )
    assert error is None
    assert [t.key for t in dataset.flat] == ["E-1", "S-1", "T-1", "T-2"]
    assert [n.key for n in dataset.tree] == ["E-1"]
    assert dataset.adjacency == {"E-1": ["S-1"], "S-1": ["T-1", "T-2"]}
    assert len(dataset.raw) == 4
    assert progress[-1] == "Building status timelines"


def test_pull_error_passthrough():
    dataset, error = IssueService(DummyAPI()).pull("NOPE-1")
    assert dataset is None
    assert error == "Issue NOPE-1 not found."


def test_build_dataset_exclusions():
    api = DummyAPI()
    data = IssueService(api).fetch_issue_and_descendants("E-1").data
    dataset = build_dataset(data, excluded_issue_types=["sub-task"], excluded_statuses=(), now=NOW)
    assert [t.key for t in dataset.flat] == ["E-1", "S-1"]
    assert dataset.adjacency == {"E-1": ["S-1"]}
    assert len(dataset.unfiltered) == 4

    all_excluded = build_dataset(data, excluded_statuses=["In Progress"], now=NOW)
    assert not all_excluded.empty
    assert all(t.total_cycle_time == 0 for t in all_excluded.flat)


class FlakyAPI(DummyAPI):
    """Drops the connection for selected queries."""

    def __init__(self, broken):
        super().__init__()
        self.broken = broken

    def search_enhanced(self, jql, fields=None, expand=None, page_size=500):
        if self.broken(jql):
            self.queries.append(jql)
            raise requests.exceptions.ConnectionError("connection reset")
        return super().search_enhanced(jql, fields, expand, page_size)


def test_failed_subtask_chunk_keeps_the_rest():
    api = FlakyAPI(lambda jql: jql.startswith("key in ("))
    result = IssueService(api).fetch_issue_and_descendants("E-1")
    assert result.success
    assert {r["key"] for r in result.data} == {"E-1", "S-1", "T-1"}
    assert api.queries[-1] == 'key in ("T-2")'


def test_transport_error_on_root_lookup_is_reported():
    api = FlakyAPI(lambda jql: jql == 'key = "E-1"')
    result = IssueService(api).fetch_issue_and_descendants("E-1")
    assert not result.success
    assert "connection reset" in result.error
    dataset, error = IssueService(api).pull("E-1")
    assert dataset is None and "connection reset" in error


class _Response:
    def __init__(self, payload=None, status_code=200, text=""):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class _Session:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def get(self, url, params=None):
        self.calls.append(dict(params or {}))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client_api(session, fields=None):
    api = JiraAPI.__new__(JiraAPI)
    api.server = "https://example.atlassian.net"
    api._searches = {}
    api._field_ids = None

    def _fields():
        if isinstance(fields, Exception):
            raise fields
        return fields or []

    api.client = SimpleNamespace(_session=session, fields=_fields)
    return api


def test_search_follows_page_tokens_and_caches():
    session = _Session(
        _Response({"issues": [{"key": "A-1"}], "nextPageToken": "p2"}),
        _Response({"issues": [{"key": "A-2"}], "isLast": True}),
    )
    api = _client_api(session)
    assert [i["key"] for i in api.search_enhanced("project = A", fields=["summary"])] == ["A-1", "A-2"]
    assert session.calls[1]["nextPageToken"] == "p2"
    assert session.calls[0]["fields"] == "summary"
    # second call is served from the cache
    assert len(api.search_enhanced("project = A", fields=["summary"])) == 2
    assert len(session.calls) == 2
    api.clear_cache()
    assert api._searches == {}


@pytest.mark.parametrize(
    "outcome, message",
    [
        (requests.exceptions.ConnectionError("connection reset"), "Could not reach Jira"),
        (requests.exceptions.Timeout("read timed out"), "Could not reach Jira"),
        (_Response(status_code=503, text="unavailable"), "HTTP 503"),
        (_Response(ValueError("Expecting value")), "non-JSON"),
    ],
)
def test_search_failures_become_fetch_errors(outcome, message):
    api = _client_api(_Session(outcome))
    with pytest.raises(JiraFetchError, match=message):
        api.search_enhanced("project = A")
    assert api._searches == {}


def test_field_lookup_transport_error():
    api = _client_api(_Session(), fields=requests.exceptions.ConnectionError("dns failure"))
    with pytest.raises(JiraFetchError, match="field definitions"):
        api.field_ids()
    assert api._field_ids is None


def test_field_lookup_by_name():
    api = _client_api(_Session(), fields=[{"name": "Epic Link", "id": "customfield_10014"}, {"name": "Rank", "id": "x"}])
    assert api.field_ids() == {"epic_link": "customfield_10014", "parent_link": None}
