"""
Azure DevOps API Client - Low-level HTTP client for the Azure DevOps REST API.

Covers work item tracking (WIQL, batch fetch, create, update), team
iterations, projects, and builds (definitions, builds, artifacts).

API documentation:
https://learn.microsoft.com/en-us/rest/api/azure/devops/
"""

from __future__ import annotations

import base64
from collections.abc import Iterator
from typing import Any
from urllib.parse import quote

import requests

from issuebridge.adapters.http_base import BaseApiClient, TokenBucketRateLimiter
from issuebridge.core.cancellation import CancellationToken, check_cancelled


class AzureDevOpsRateLimiter(TokenBucketRateLimiter):
    """Token bucket tuned for Azure DevOps throttling (TSTU based)."""


class AzureDevOpsApiClient(BaseApiClient):
    """
    Low-level Azure DevOps REST API client.

    Authenticates with a Personal Access Token (basic auth, empty user).
    Paged collections are followed through the ``x-ms-continuationtoken``
    response header.
    """

    API_VERSION = "7.1"

    # workitemsbatch accepts at most 200 ids per call
    BATCH_SIZE = 200

    DEFAULT_REQUESTS_PER_SECOND = 5.0
    DEFAULT_BURST_SIZE = 10

    AUTH_HINT = "Check AZURE_DEVOPS_PAT."

    def __init__(
        self,
        organization: str,
        pat: str,
        project: str | None = None,
        base_url: str = "https://dev.azure.com",
        dry_run: bool = True,
        requests_per_second: float | None = DEFAULT_REQUESTS_PER_SECOND,
        burst_size: int = DEFAULT_BURST_SIZE,
        **kwargs: Any,
    ):
        """
        Initialize the Azure DevOps client.

        Args:
            organization: Organization name (dev.azure.com/<organization>)
            pat: Personal Access Token
            project: Default project for project-scoped calls
            base_url: Service URL, for Azure DevOps Server instances
            dry_run: If True, don't make write operations
            requests_per_second: Maximum request rate (None to disable rate limiting)
            burst_size: Maximum burst capacity for rate limiting
            **kwargs: Retry and timeout settings passed to BaseApiClient
        """
        super().__init__(
            dry_run=dry_run,
            requests_per_second=requests_per_second,
            burst_size=burst_size,
            **kwargs,
        )
        self.organization = organization
        self.project = project
        self.organization_url = f"{base_url.rstrip('/')}/{organization}"

        token = base64.b64encode(f":{pat}".encode()).decode("ascii")
        self.headers = {
            "Accept": "application/json",
            "Authorization": f"Basic {token}",
            "Content-Type": "application/json",
        }
        self._session.headers.update(self.headers)

    def _create_rate_limiter(
        self, requests_per_second: float, burst_size: int
    ) -> TokenBucketRateLimiter:
        return AzureDevOpsRateLimiter(requests_per_second=requests_per_second, burst_size=burst_size)

    def _build_url(self, endpoint: str) -> str:
        """Build a full URL; absolute URLs pass through unchanged."""
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.organization_url}/{endpoint.lstrip('/')}"

    def _project_path(self, project: str | None) -> str:
        name = project or self.project
        if not name:
            raise ValueError("A project is required for this Azure DevOps call")
        return quote(name, safe="")

    def send(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        """Send a request, adding the api-version to relative endpoints."""
        if not endpoint.startswith(("http://", "https://")):
            params = dict(kwargs.pop("params", None) or {})
            params.setdefault("api-version", self.API_VERSION)
            kwargs["params"] = params
        return super().send(method, endpoint, **kwargs)

    def iter_paged(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[dict[str, Any]]:
        """
        Yield every item of a paged ``value`` collection.

        Follows the ``x-ms-continuationtoken`` header until it is absent.
        """
        page_params = dict(params or {})
        while True:
            check_cancelled(cancel_token)
            response = self.send("GET", endpoint, params=page_params)
            data = self._handle_response(response, endpoint)
            for item in data.get("value", []):
                check_cancelled(cancel_token)
                yield item

            continuation = response.headers.get("x-ms-continuationtoken")
            if not continuation:
                return
            page_params["continuationToken"] = continuation

    # -------------------------------------------------------------------------
    # Work Items
    # -------------------------------------------------------------------------

    def query_wiql(self, wiql: str, project: str | None = None) -> dict[str, Any]:
        """
        Run a WIQL query.

        Returns:
            The raw response: ``workItems`` (ids and API urls) and
            ``columns`` (reference names of the selected fields).
        """
        endpoint = "_apis/wit/wiql"
        if project or self.project:
            endpoint = f"{self._project_path(project)}/_apis/wit/wiql"
        self.logger.debug(f"Running WIQL: {wiql}")
        return self.request("POST", endpoint, json={"query": wiql})

    def get_work_items_batch(
        self, ids: list[int], fields: list[str] | None = None
    ) -> list[dict[str, Any]]:
        """Fetch up to BATCH_SIZE work items by id."""
        body: dict[str, Any] = {"ids": ids, "errorPolicy": "omit"}
        if fields:
            body["fields"] = fields
        data = self.request("POST", "_apis/wit/workitemsbatch", json=body)
        return [item for item in data.get("value", []) if item]

    def iter_work_items(
        self,
        wiql: str,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[dict[str, Any]]:
        """
        Run a WIQL query and yield the matching work items lazily.

        Work items are fetched in batches of BATCH_SIZE, restricted to the
        columns selected by the query.
        """
        result = self.query_wiql(wiql)
        ids = [ref["id"] for ref in result.get("workItems", [])]
        fields = [column["referenceName"] for column in result.get("columns", [])]
        self.logger.debug(f"WIQL matched {len(ids)} work item(s)")

        for start in range(0, len(ids), self.BATCH_SIZE):
            check_cancelled(cancel_token)
            batch = self.get_work_items_batch(ids[start : start + self.BATCH_SIZE], fields)
            for item in batch:
                check_cancelled(cancel_token)
                yield item

    def work_item_html_url(self, work_item: dict[str, Any]) -> str:
        """Browser URL of a work item."""
        href = work_item.get("_links", {}).get("html", {}).get("href")
        if href:
            return href
        return f"{self.organization_url}/_workitems/edit/{work_item.get('id')}"

    def create_work_item(
        self,
        work_item_type: str,
        fields: dict[str, Any],
        project: str | None = None,
    ) -> dict[str, Any]:
        """
        Create a work item from a field map.

        Returns:
            The created work item, or {} in dry-run mode.
        """
        endpoint = f"{self._project_path(project)}/_apis/wit/workitems/${quote(work_item_type, safe='')}"
        operations = [
            {"op": "add", "path": f"/fields/{name}", "value": value}
            for name, value in fields.items()
        ]
        return self.post(
            endpoint,
            json=operations,
            headers={"Content-Type": "application/json-patch+json"},
        )

    def update_work_item(
        self,
        work_item_id: int | str,
        fields: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Set fields on a work item.

        Returns:
            The updated work item, or {} in dry-run mode.
        """
        operations = [
            {"op": "add", "path": f"/fields/{name}", "value": value}
            for name, value in fields.items()
        ]
        return self.patch(
            f"_apis/wit/workitems/{work_item_id}",
            json=operations,
            headers={"Content-Type": "application/json-patch+json"},
        )

    # -------------------------------------------------------------------------
    # Projects & Iterations
    # -------------------------------------------------------------------------

    def iter_projects(
        self, cancel_token: CancellationToken | None = None
    ) -> Iterator[dict[str, Any]]:
        """Yield every team project of the organization."""
        return self.iter_paged("_apis/projects", cancel_token=cancel_token)

    def get_iterations(self, project: str | None = None) -> list[dict[str, Any]]:
        """List the default team's iterations of a project."""
        data = self.get(f"{self._project_path(project)}/_apis/work/teamsettings/iterations")
        return data.get("value", [])

    # -------------------------------------------------------------------------
    # Builds
    # -------------------------------------------------------------------------

    def get_build_definitions(
        self, name: str | None = None, project: str | None = None
    ) -> list[dict[str, Any]]:
        """List build definitions, optionally filtered by exact name."""
        params = {"name": name} if name else None
        data = self.get(f"{self._project_path(project)}/_apis/build/definitions", params=params)
        return data.get("value", [])

    def iter_builds(
        self,
        project: str | None = None,
        definition_id: int | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Yield builds, newest first."""
        params: dict[str, Any] = {"queryOrder": "queueTimeDescending"}
        if definition_id is not None:
            params["definitions"] = definition_id
        return self.iter_paged(
            f"{self._project_path(project)}/_apis/build/builds",
            params=params,
            cancel_token=cancel_token,
        )

    def get_build(self, build_id: int, project: str | None = None) -> dict[str, Any]:
        return self.get(f"{self._project_path(project)}/_apis/build/builds/{build_id}")

    def get_build_artifacts(
        self, build_id: int, project: str | None = None
    ) -> list[dict[str, Any]]:
        data = self.get(f"{self._project_path(project)}/_apis/build/builds/{build_id}/artifacts")
        return data.get("value", [])

    def queue_build(
        self,
        definition_id: int,
        source_branch: str | None = None,
        project: str | None = None,
    ) -> dict[str, Any]:
        """
        Queue a build of a definition.

        Returns:
            The queued build, or {} in dry-run mode.
        """
        body: dict[str, Any] = {"definition": {"id": definition_id}}
        if source_branch:
            body["sourceBranch"] = source_branch
        return self.post(f"{self._project_path(project)}/_apis/build/builds", json=body)

    def download(self, url: str) -> requests.Response:
        """
        Open a streaming download of an absolute URL.

        The caller must close the returned response.
        """
        response = self.send("GET", url, stream=True)
        if not response.ok:
            try:
                self._handle_response(response, url)
            finally:
                response.close()
        return response
