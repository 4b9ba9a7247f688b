"""
Issue Tracker Service - the enumeration and transition entry points.

Binds the query builder, classifier and transition engine to one
IssueSourcePort. Every enumeration is lazy: nothing is fetched until the
returned iterator is consumed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping

from issuebridge.core.cancellation import CancellationToken, check_cancelled
from issuebridge.core.classifier import classify, parse_closed_states
from issuebridge.core.domain.entities import Issue, IssueVersion, TransitionResult
from issuebridge.core.domain.value_objects import ClosedStateSet, IssueFilter
from issuebridge.core.exceptions import MalformedRecordError, TrackerError
from issuebridge.core.ports.issue_source import IssueSourcePort
from issuebridge.core.query import create_filter
from issuebridge.core.transitions import TransitionEngine


class IssueTrackerService:
    """
    Issue enumeration, version enumeration and status transitions.

    Args:
        source: Tracker the issues live in.
        closed_states: Comma-separated closed state names, or a prepared
            ClosedStateSet. Defaults to "Resolved,Closed,Done".
    """

    def __init__(
        self,
        source: IssueSourcePort,
        closed_states: str | ClosedStateSet | None = None,
    ):
        self.source = source
        if isinstance(closed_states, ClosedStateSet):
            self.closed_states = closed_states
        else:
            self.closed_states = parse_closed_states(closed_states)
        self.engine = TransitionEngine(source)
        self.logger = logging.getLogger("IssueTrackerService")

    def create_filter(
        self,
        custom_query_template: str | None = None,
        simple_mapping_expression: str | None = None,
        project: str | None = None,
        variables: Mapping[str, str] | None = None,
        extra_clause: str | None = None,
    ) -> IssueFilter:
        """Create a filter; see issuebridge.core.query.create_filter."""
        return create_filter(
            custom_query_template=custom_query_template,
            simple_mapping_expression=simple_mapping_expression,
            project=project,
            variables=variables,
            extra_clause=extra_clause,
        )

    def enumerate_issues(
        self,
        issue_filter: IssueFilter,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[Issue]:
        """
        Lazily yield the normalized issues matching ``issue_filter``.

        The query is rendered immediately, so configuration errors are
        raised by this call rather than on first iteration.

        Raises:
            ConfigurationError: If the filter cannot be rendered.
            MalformedRecordError: If a record cannot be classified; the
                enumeration stops there.
            TrackerError: If the tracker fails; the query is logged.
        """
        query = self.source.render_query(issue_filter)
        self.logger.debug(f"Enumerating {self.source.name} issues for {issue_filter.describe()}")
        return self._iter_issues(query, cancel_token)

    def _iter_issues(
        self,
        query: str,
        cancel_token: CancellationToken | None,
    ) -> Iterator[Issue]:
        try:
            for record in self.source.fetch_issues(query, cancel_token):
                check_cancelled(cancel_token)
                yield classify(record, self.closed_states)
        except (TrackerError, MalformedRecordError):
            self.logger.error(
                f"Failed to enumerate {self.source.name} issues with query \"{query}\""
            )
            raise

    def enumerate_versions(
        self,
        project: str,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[IssueVersion]:
        """Lazily yield the iterations/milestones of ``project``."""
        try:
            yield from self.source.fetch_versions(project, cancel_token)
        except TrackerError:
            self.logger.error(f"Failed to enumerate {self.source.name} versions of project '{project}'")
            raise

    def transition_issues(
        self,
        issue_filter: IssueFilter,
        to_status: str,
        from_status: str | None = None,
        comment: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> TransitionResult:
        """
        Move every matching issue to ``to_status``.

        Issues not in ``from_status`` (when given) and issues already in
        ``to_status`` are skipped. Stops at the first failed update.

        Returns:
            TransitionResult; ``count`` is the number of issues updated.
        """
        to_status = self.source.canonical_status(to_status)
        if from_status:
            from_status = self.source.canonical_status(from_status)
        self.logger.info(
            f"Transitioning {self.source.name} issues for {issue_filter.describe()} to '{to_status}'"
        )
        issues = self.enumerate_issues(issue_filter, cancel_token)
        return self.engine.run(
            issues,
            to_status=to_status,
            from_status=from_status,
            comment=comment,
            cancel_token=cancel_token,
        )

    def ensure_version(self, project: str, version: IssueVersion) -> None:
        """Make sure ``version`` exists in the tracker with the requested state."""
        self.source.ensure_version(project, version)
