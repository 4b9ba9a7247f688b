"""
Azure DevOps Issue Source - implements IssueSourcePort over work items.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from issuebridge.core.cancellation import CancellationToken, check_cancelled
from issuebridge.core.domain.entities import IssueVersion, RawIssueRecord
from issuebridge.core.domain.value_objects import IssueFilter
from issuebridge.core.ports.issue_source import IssueSourcePort
from issuebridge.core.query import render_wiql

from .client import AzureDevOpsApiClient


def identity_name(value: Any) -> str | None:
    """Display name of an identity field (object in newer APIs, string in older)."""
    if isinstance(value, dict):
        return value.get("displayName") or value.get("uniqueName")
    if value:
        return str(value)
    return None


class AzureDevOpsIssueSource(IssueSourcePort):
    """
    Azure DevOps implementation of IssueSourcePort.

    The work item type stands in for the label list, so it becomes the
    issue type. Iterations whose time frame is in the past are closed.
    """

    def __init__(self, client: AzureDevOpsApiClient):
        self._client = client
        self.logger = logging.getLogger("AzureDevOpsIssueSource")

    @property
    def name(self) -> str:
        return "Azure DevOps"

    @property
    def client(self) -> AzureDevOpsApiClient:
        return self._client

    def render_query(self, issue_filter: IssueFilter) -> str:
        if issue_filter.is_custom:
            self.logger.debug(
                f"Ignoring project/iteration and using custom WIQL query ({issue_filter.custom_query})"
            )
        else:
            self.logger.debug(
                f"Constructing WIQL query for project '{issue_filter.project}' "
                f"and iteration path '{issue_filter.iteration_path}'"
            )
        return render_wiql(issue_filter)

    def fetch_issues(
        self,
        query: str,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[RawIssueRecord]:
        for work_item in self._client.iter_work_items(query, cancel_token):
            yield self._to_raw_record(work_item)

    def _to_raw_record(self, work_item: dict[str, Any]) -> RawIssueRecord:
        fields = work_item.get("fields", {})
        work_item_type = fields.get("System.WorkItemType")
        return RawIssueRecord(
            id=str(work_item["id"]),
            title=fields.get("System.Title"),
            labels=(work_item_type,) if work_item_type else (),
            description=fields.get("System.Description"),
            status=fields.get("System.State"),
            created=fields.get("System.CreatedDate"),
            author=identity_name(fields.get("System.CreatedBy")),
            url=self._client.work_item_html_url(work_item),
        )

    def fetch_versions(
        self,
        project: str,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[IssueVersion]:
        for iteration in self._client.get_iterations(project):
            check_cancelled(cancel_token)
            time_frame = iteration.get("attributes", {}).get("timeFrame")
            yield IssueVersion(name=iteration["name"], is_closed=time_frame == "past")

    def update_issue(
        self,
        issue_id: str,
        status: str | None = None,
        comment: str | None = None,
    ) -> bool:
        fields: dict[str, Any] = {}
        if status is not None:
            fields["System.State"] = status
        if comment:
            fields["System.History"] = comment
        if not fields:
            return True

        self._client.update_work_item(issue_id, fields)
        return True

    def ensure_version(self, project: str, version: IssueVersion) -> None:
        self.logger.warning(
            "Azure DevOps does not support closing iterations; iterations close "
            "automatically once their end date has passed"
        )
