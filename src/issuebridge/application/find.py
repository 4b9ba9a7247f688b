"""
Find Work Items - Azure DevOps work items as plain column maps.
"""

from __future__ import annotations

import logging
from typing import Any

from issuebridge.adapters.azure_devops.client import AzureDevOpsApiClient
from issuebridge.core.cancellation import CancellationToken
from issuebridge.core.classifier import parse_closed_states
from issuebridge.core.domain.value_objects import ClosedStateSet
from issuebridge.core.query import build_wiql


logger = logging.getLogger("FindWorkItems")

FIND_COLUMNS: tuple[str, ...] = (
    "System.Id",
    "System.State",
    "System.Title",
    "System.Description",
)


def find_work_items(
    client: AzureDevOpsApiClient,
    project: str | None = None,
    iteration_path: str | None = None,
    extra_clause: str | None = None,
    custom_query: str | None = None,
    closed_states: str | ClosedStateSet | None = None,
    cancel_token: CancellationToken | None = None,
) -> list[dict[str, Any]]:
    """
    Find work items and return one dictionary per item.

    Each dictionary has ``Id``, ``URL``, ``IsClosed`` (only when
    System.State was returned for any item) and every field returned for
    any item, None where an item lacks it.
    """
    if not isinstance(closed_states, ClosedStateSet):
        closed_states = parse_closed_states(closed_states)

    if custom_query:
        logger.debug("Using custom WIQL query to filter work items")
    else:
        logger.debug(
            f"Constructing WIQL query for project '{project or ''}' "
            f"and iteration path '{iteration_path or ''}'"
        )
    wiql = build_wiql(
        project=project,
        iteration_path=iteration_path,
        extra_clause=extra_clause,
        custom_query=custom_query,
        columns=FIND_COLUMNS,
    )

    work_items = list(client.iter_work_items(wiql, cancel_token))

    columns: list[str] = []
    for work_item in work_items:
        for name in work_item.get("fields", {}):
            if name not in columns:
                columns.append(name)

    results = []
    for work_item in work_items:
        fields = work_item.get("fields", {})
        item: dict[str, Any] = {
            "Id": str(work_item["id"]),
            "URL": client.work_item_html_url(work_item),
        }
        if "System.State" in columns:
            state = fields.get("System.State")
            item["IsClosed"] = state is not None and str(state) in closed_states
        for column in columns:
            if column not in item:
                value = fields.get(column)
                item[column] = str(value) if value is not None else None
        results.append(item)

    logger.info(f"Found {len(results)} work item(s)")
    return results
