"""
Create Work Item - create an Azure DevOps work item.
"""

from __future__ import annotations

import logging
from typing import Any

from issuebridge.adapters.azure_devops.client import AzureDevOpsApiClient
from issuebridge.core.domain.entities import CreatedWorkItem
from issuebridge.core.exceptions import TrackerError


logger = logging.getLogger("CreateWorkItem")


def create_work_item(
    client: AzureDevOpsApiClient,
    project: str,
    work_item_type: str,
    title: str,
    description: str | None = None,
    iteration_path: str | None = None,
) -> CreatedWorkItem | None:
    """
    Create a work item.

    Returns:
        The created work item, or None in dry-run mode.

    Raises:
        TrackerError: If the tracker rejects the work item.
    """
    fields: dict[str, Any] = {"System.Title": title}
    if description:
        fields["System.Description"] = description
    if iteration_path:
        fields["System.IterationPath"] = iteration_path

    logger.info(f"Creating {work_item_type} work item in project '{project}'")
    created = client.create_work_item(work_item_type, fields, project=project)
    if not created:
        return None

    if "id" not in created:
        raise TrackerError(f"Azure DevOps did not return an id for the new {work_item_type}")

    work_item = CreatedWorkItem(id=str(created["id"]), url=client.work_item_html_url(created))
    logger.info(f"Work item {work_item.id} created")
    return work_item
