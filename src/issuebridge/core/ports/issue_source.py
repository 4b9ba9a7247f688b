"""
Issue Source Port - Abstract interface for a tracker that holds issues.

Implementations:
- AzureDevOpsIssueSource: Azure DevOps work items (WIQL)
- GitLabIssueSource: GitLab project issues (REST query parameters)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator

from ..cancellation import CancellationToken
from ..domain.entities import IssueVersion, RawIssueRecord
from ..domain.value_objects import IssueFilter


class IssueSourcePort(ABC):
    """
    Abstract interface for issue sources.

    Sources own query rendering for their query language, paging and
    retries. Every iterator they return is lazy, forward-only and checks
    the cancellation token between pages and records.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the tracker name (e.g., 'Azure DevOps', 'GitLab')."""
        ...

    @abstractmethod
    def render_query(self, issue_filter: IssueFilter) -> str:
        """
        Render a filter into this tracker's query language.

        Raises:
            ConfigurationError: If the filter cannot produce a bounded query.
        """
        ...

    def canonical_status(self, status: str) -> str:
        """
        Map a requested status onto the name this tracker reports.

        Trackers that accept aliases for a state (GitLab's ``close`` for
        ``closed``) override this so already-transitioned issues compare
        equal to the target.
        """
        return status

    @abstractmethod
    def fetch_issues(
        self,
        query: str,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[RawIssueRecord]:
        """
        Execute a query and stream the matching raw records.

        Args:
            query: A query produced by render_query.
            cancel_token: Checked between pages and records.
        """
        ...

    @abstractmethod
    def fetch_versions(
        self,
        project: str,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[IssueVersion]:
        """Stream the iterations/milestones of a project."""
        ...

    @abstractmethod
    def update_issue(
        self,
        issue_id: str,
        status: str | None = None,
        comment: str | None = None,
    ) -> bool:
        """
        Update an issue's status.

        Args:
            issue_id: Issue identifier as reported in RawIssueRecord.id.
            status: New status, or None to leave it unchanged.
            comment: Optional comment recorded with the change.

        Returns:
            True if successful.

        Raises:
            TrackerError: If the tracker rejected the update.
        """
        ...

    @abstractmethod
    def ensure_version(self, project: str, version: IssueVersion) -> None:
        """Make sure a version exists with the requested closed state."""
        ...
