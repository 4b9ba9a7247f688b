"""
GitLab API Client - Low-level HTTP client for the GitLab REST API (v4).

API documentation:
https://docs.gitlab.com/ee/api/rest/
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any
from urllib.parse import quote

from issuebridge.adapters.http_base import BaseApiClient, TokenBucketRateLimiter
from issuebridge.core.cancellation import CancellationToken, check_cancelled


class GitLabRateLimiter(TokenBucketRateLimiter):
    """
    Token bucket expressed in requests per hour.

    GitLab.com allows 2000 authenticated API requests per minute per user;
    self-managed instances are often stricter.
    """

    def __init__(self, requests_per_hour: float = 3600.0, burst_size: int = 10):
        self.requests_per_hour = requests_per_hour
        super().__init__(requests_per_second=requests_per_hour / 3600.0, burst_size=burst_size)


class GitLabApiClient(BaseApiClient):
    """
    Low-level GitLab REST API client.

    Paged collections are followed through the ``X-Next-Page`` response
    header. Project IDs may be numeric or a URL-encoded full path.
    """

    DEFAULT_PER_PAGE = 100
    DEFAULT_REQUESTS_PER_HOUR = 36000.0

    AUTH_HINT = "Check GITLAB_TOKEN."

    def __init__(
        self,
        token: str,
        project_id: str | None = None,
        base_url: str = "https://gitlab.com/api/v4",
        dry_run: bool = True,
        requests_per_hour: float | None = DEFAULT_REQUESTS_PER_HOUR,
        **kwargs: Any,
    ):
        """
        Initialize the GitLab client.

        Args:
            token: Personal, project or group access token
            project_id: Default project (numeric id or "group/project")
            base_url: API root, e.g. https://gitlab.example.com/api/v4
            dry_run: If True, don't make write operations
            requests_per_hour: Maximum request rate (None to disable rate limiting)
            **kwargs: Retry and timeout settings passed to BaseApiClient
        """
        self.requests_per_hour = requests_per_hour
        super().__init__(dry_run=dry_run, requests_per_second=None, **kwargs)
        if requests_per_hour is not None and requests_per_hour > 0:
            self._rate_limiter = GitLabRateLimiter(requests_per_hour=requests_per_hour)

        self.project_id = project_id
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        self._session.headers.update(self.headers)

    def _build_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def project_endpoint(self, path: str = "", project: str | None = None) -> str:
        """Build a project-scoped endpoint, URL-encoding path-style ids."""
        project_id = project or self.project_id
        if not project_id:
            raise ValueError("A project is required for this GitLab call")
        endpoint = f"projects/{quote(str(project_id), safe='')}"
        if path:
            endpoint = f"{endpoint}/{path}"
        return endpoint

    def iter_paged(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Yield every item of a paged list endpoint, following X-Next-Page."""
        page_params = {"per_page": self.DEFAULT_PER_PAGE, **(params or {})}
        while True:
            check_cancelled(cancel_token)
            response = self.send("GET", endpoint, params=page_params)
            for item in self._handle_response(response, endpoint) or []:
                check_cancelled(cancel_token)
                yield item

            next_page = response.headers.get("X-Next-Page")
            if not next_page:
                return
            page_params["page"] = next_page

    # -------------------------------------------------------------------------
    # Issues
    # -------------------------------------------------------------------------

    def iter_issues(
        self,
        params: dict[str, Any] | None = None,
        project: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Yield a project's issues matching the list parameters."""
        return self.iter_paged(self.project_endpoint("issues", project), params, cancel_token)

    def update_issue(
        self,
        issue_iid: int | str,
        data: dict[str, Any],
        project: str | None = None,
    ) -> dict[str, Any]:
        return self.put(self.project_endpoint(f"issues/{issue_iid}", project), json=data)

    def add_note(
        self,
        issue_iid: int | str,
        body: str,
        project: str | None = None,
    ) -> dict[str, Any]:
        """Add a comment to an issue."""
        return self.post(self.project_endpoint(f"issues/{issue_iid}/notes", project), json={"body": body})

    # -------------------------------------------------------------------------
    # Milestones
    # -------------------------------------------------------------------------

    def iter_milestones(
        self,
        project: str | None = None,
        cancel_token: CancellationToken | None = None,
        title: str | None = None,
    ) -> Iterator[dict[str, Any]]:
        params = {"title": title} if title else None
        return self.iter_paged(self.project_endpoint("milestones", project), params, cancel_token)

    def create_milestone(self, title: str, project: str | None = None) -> dict[str, Any]:
        return self.post(self.project_endpoint("milestones", project), json={"title": title})

    def update_milestone(
        self,
        milestone_id: int,
        data: dict[str, Any],
        project: str | None = None,
    ) -> dict[str, Any]:
        return self.put(self.project_endpoint(f"milestones/{milestone_id}", project), json=data)

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    def iter_projects(
        self, cancel_token: CancellationToken | None = None
    ) -> Iterator[dict[str, Any]]:
        """Yield projects the token's user is a member of."""
        return self.iter_paged("projects", {"membership": "true", "simple": "true"}, cancel_token)
