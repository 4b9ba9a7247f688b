"""
GitLab Issue Source - implements IssueSourcePort over project issues.

GitLab has no query language; filters render to issue-list query strings
(see issuebridge.core.query.build_gitlab_params). Issue states are limited
to ``opened`` and ``closed``, so a transition target must map to one of
them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any
from urllib.parse import parse_qsl, urlencode

from issuebridge.core.cancellation import CancellationToken, check_cancelled
from issuebridge.core.domain.entities import IssueVersion, RawIssueRecord
from issuebridge.core.domain.value_objects import IssueFilter
from issuebridge.core.exceptions import TransitionError
from issuebridge.core.ports.issue_source import IssueSourcePort
from issuebridge.core.query import build_gitlab_params

from .client import GitLabApiClient


STATE_EVENTS = {
    "closed": "close",
    "close": "close",
    "opened": "reopen",
    "open": "reopen",
    "reopened": "reopen",
    "reopen": "reopen",
}

# GitLab reports only these two states; aliases collapse onto them.
CANONICAL_STATES = {"close": "closed", "reopen": "opened"}

# Carries the filter's project through the rendered query string. The
# project issues endpoint has no parameter of this name.
PROJECT_PARAM = "project"


def label_names(labels: Any) -> tuple[str, ...]:
    """Label names from either plain strings or label objects."""
    names = []
    for label in labels or []:
        if isinstance(label, dict):
            label = label.get("name")
        if label:
            names.append(str(label))
    return tuple(names)


class GitLabIssueSource(IssueSourcePort):
    """GitLab implementation of IssueSourcePort."""

    def __init__(self, client: GitLabApiClient, project: str | None = None):
        self._client = client
        self.project = project or client.project_id
        self._issue_projects: dict[str, str] = {}
        self.logger = logging.getLogger("GitLabIssueSource")

    @property
    def name(self) -> str:
        return "GitLab"

    @property
    def client(self) -> GitLabApiClient:
        return self._client

    def render_query(self, issue_filter: IssueFilter) -> str:
        if issue_filter.is_custom:
            self.logger.debug(
                f"Ignoring milestone and using custom issue query ({issue_filter.custom_query})"
            )
        params = build_gitlab_params(issue_filter)
        if issue_filter.project and not issue_filter.is_custom:
            params = {PROJECT_PARAM: issue_filter.project, **params}
        return urlencode(params)

    def canonical_status(self, status: str) -> str:
        state_event = STATE_EVENTS.get(status.casefold())
        if state_event is None:
            return status
        return CANONICAL_STATES[state_event]

    def fetch_issues(
        self,
        query: str,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[RawIssueRecord]:
        params = dict(parse_qsl(query, keep_blank_values=True))
        project = params.pop(PROJECT_PARAM, None) or self.project
        for issue in self._client.iter_issues(params, project, cancel_token):
            record = self._to_raw_record(issue)
            self._issue_projects[record.id] = project
            yield record

    def _to_raw_record(self, issue: dict[str, Any]) -> RawIssueRecord:
        author = issue.get("author")
        return RawIssueRecord(
            id=str(issue["iid"]),
            title=issue.get("title"),
            labels=label_names(issue.get("labels")),
            description=issue.get("description"),
            status=issue.get("state"),
            created=issue.get("created_at"),
            author=author.get("username") if isinstance(author, dict) else None,
            url=issue.get("web_url"),
        )

    def fetch_versions(
        self,
        project: str,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[IssueVersion]:
        for milestone in self._client.iter_milestones(project or self.project, cancel_token):
            check_cancelled(cancel_token)
            yield IssueVersion(name=milestone["title"], is_closed=milestone.get("state") == "closed")

    def update_issue(
        self,
        issue_id: str,
        status: str | None = None,
        comment: str | None = None,
    ) -> bool:
        project = self._issue_projects.get(issue_id, self.project)
        if status is not None:
            state_event = STATE_EVENTS.get(status.casefold())
            if state_event is None:
                raise TransitionError(
                    f"GitLab issues can only be opened or closed, not moved to '{status}'",
                    issue_key=issue_id,
                    to_status=status,
                )
            self._client.update_issue(issue_id, {"state_event": state_event}, project)

        if comment:
            self._client.add_note(issue_id, comment, project)
        return True

    def ensure_version(self, project: str, version: IssueVersion) -> None:
        """Create the milestone if missing, then align its open/closed state."""
        project = project or self.project
        milestone = next(
            (
                m
                for m in self._client.iter_milestones(project, title=version.name)
                if m.get("title") == version.name
            ),
            None,
        )

        if milestone is None:
            self.logger.info(f"Creating milestone '{version.name}'")
            milestone = self._client.create_milestone(version.name, project)
            if not milestone:
                return

        is_closed = milestone.get("state") == "closed"
        if version.is_closed and not is_closed:
            self.logger.info(f"Closing milestone '{version.name}'")
            self._client.update_milestone(milestone["id"], {"state_event": "close"}, project)
        elif not version.is_closed and is_closed:
            self.logger.info(f"Reopening milestone '{version.name}'")
            self._client.update_milestone(milestone["id"], {"state_event": "activate"}, project)
