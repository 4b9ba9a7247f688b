"""
Shared pytest fixtures for the issuebridge test suite.

Fixture Categories:
- Domain: raw records and an in-memory issue source
- Mocks: mocked requests sessions and responses
- CLI: Console
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from issuebridge.core.cancellation import CancellationToken, check_cancelled
from issuebridge.core.domain.entities import IssueVersion, RawIssueRecord
from issuebridge.core.domain.value_objects import IssueFilter
from issuebridge.core.ports.issue_source import IssueSourcePort
from issuebridge.core.query import render_wiql


# =============================================================================
# Domain
# =============================================================================


def make_record(
    id: str,
    status: str | None = "New",
    title: str = "Title",
    labels: tuple[str, ...] = ("Bug",),
    created: str | None = "2024-03-01T10:00:00Z",
    author: str | None = "alice",
) -> RawIssueRecord:
    """Build a RawIssueRecord with sensible defaults."""
    return RawIssueRecord(
        id=id,
        title=title,
        labels=labels,
        description=f"Description of {id}",
        status=status,
        created=created,
        author=author,
        url=f"https://tracker.example/{id}",
    )


class InMemoryIssueSource(IssueSourcePort):
    """
    Issue source backed by a list of records.

    Updates change the stored status, so a second run sees the result of
    the first. ``fail_on`` ids raise the given error on update.
    """

    def __init__(
        self,
        records: list[RawIssueRecord] | None = None,
        versions: list[IssueVersion] | None = None,
    ):
        self.records = list(records or [])
        self.versions = list(versions or [])
        self.updates: list[tuple[str, str | None, str | None]] = []
        self.queries: list[str] = []
        self.fail_on: dict[str, Exception] = {}
        self.refuse: set[str] = set()
        self.ensured: list[tuple[str, IssueVersion]] = []

    @property
    def name(self) -> str:
        return "Memory"

    def render_query(self, issue_filter: IssueFilter) -> str:
        return render_wiql(issue_filter)

    def fetch_issues(
        self, query: str, cancel_token: CancellationToken | None = None
    ) -> Iterator[RawIssueRecord]:
        self.queries.append(query)
        for record in list(self.records):
            check_cancelled(cancel_token)
            yield record

    def fetch_versions(
        self, project: str, cancel_token: CancellationToken | None = None
    ) -> Iterator[IssueVersion]:
        yield from self.versions

    def update_issue(
        self, issue_id: str, status: str | None = None, comment: str | None = None
    ) -> bool:
        if issue_id in self.fail_on:
            raise self.fail_on[issue_id]
        if issue_id in self.refuse:
            return False
        self.updates.append((issue_id, status, comment))
        self.records = [
            RawIssueRecord(**{**vars(r), "status": status}) if r.id == issue_id else r
            for r in self.records
        ]
        return True

    def ensure_version(self, project: str, version: IssueVersion) -> None:
        self.ensured.append((project, version))


@pytest.fixture
def memory_source() -> InMemoryIssueSource:
    """Source with three records in New, Resolved and Active."""
    return InMemoryIssueSource(
        records=[
            make_record("1", status="New"),
            make_record("2", status="Resolved"),
            make_record("3", status="Active"),
        ]
    )


@pytest.fixture
def mapping_filter() -> IssueFilter:
    return IssueFilter.mapping("Fabrikam", "Fabrikam\\Release 1.4")


# =============================================================================
# Mocks
# =============================================================================


def make_response(
    status_code: int = 200,
    json_data: Any = None,
    headers: dict[str, str] | None = None,
    text: str | None = None,
) -> MagicMock:
    """Create a mock requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.headers = headers or {}
    response.json.return_value = json_data if json_data is not None else {}
    if text is None:
        text = "" if json_data is None else "{...}"
    response.text = text
    return response


@pytest.fixture
def mock_session():
    """Patch requests.Session used by the API clients."""
    with patch("issuebridge.adapters.http_base.requests.Session") as mock:
        session = MagicMock()
        mock.return_value = session
        yield session


@pytest.fixture
def no_sleep():
    """Make retry backoff instantaneous."""
    with patch("issuebridge.adapters.http_base.time.sleep") as mock:
        yield mock


# =============================================================================
# CLI
# =============================================================================


@pytest.fixture
def console():
    from issuebridge.cli.output import Console

    return Console(color=False)


@pytest.fixture
def record_factory():
    """Factory for RawIssueRecords; see make_record."""
    return make_record


@pytest.fixture
def source_factory():
    """Factory for InMemoryIssueSource instances."""
    return InMemoryIssueSource


@pytest.fixture
def response_factory():
    """Factory for mocked responses; see make_response."""
    return make_response
