"""
Tests for GitLabApiClient.
"""

import pytest

from issuebridge.adapters.gitlab.client import GitLabApiClient, GitLabRateLimiter


@pytest.fixture
def client(mock_session):
    return GitLabApiClient(
        token="glpat-xyz",
        project_id="group/app",
        dry_run=False,
        requests_per_hour=None,
    )


def sent(mock_session, index=-1):
    call = mock_session.request.call_args_list[index]
    return call.args[0], call.args[1], call.kwargs


class TestGitLabRateLimiter:
    def test_per_hour_rate(self):
        limiter = GitLabRateLimiter(requests_per_hour=7200, burst_size=5)

        assert limiter.requests_per_second == 2.0
        assert limiter.burst_size == 5


class TestGitLabApiClientInit:
    """Tests for GitLabApiClient initialization."""

    def test_bearer_token(self, client):
        assert client.headers["Authorization"] == "Bearer glpat-xyz"

    def test_base_url_trailing_slash(self, mock_session):
        client = GitLabApiClient(token="t", base_url="https://gitlab.example.com/api/v4/")

        assert client.base_url == "https://gitlab.example.com/api/v4"

    def test_rate_limiter(self, mock_session):
        client = GitLabApiClient(token="t")

        assert isinstance(client.rate_limiter, GitLabRateLimiter)

    def test_dry_run_default(self, mock_session):
        assert GitLabApiClient(token="t").dry_run is True


class TestProjectEndpoint:
    def test_path_is_encoded(self, client):
        assert client.project_endpoint("issues") == "projects/group%2Fapp/issues"

    def test_numeric_id(self, client):
        assert client.project_endpoint(project="123") == "projects/123"

    def test_project_required(self, mock_session):
        with pytest.raises(ValueError):
            GitLabApiClient(token="t").project_endpoint("issues")


class TestPaging:
    def test_follows_next_page(self, client, mock_session, response_factory):
        mock_session.request.side_effect = [
            response_factory(json_data=[{"iid": 1}], headers={"X-Next-Page": "2"}),
            response_factory(json_data=[{"iid": 2}], headers={"X-Next-Page": ""}),
        ]

        issues = list(client.iter_issues({"milestone": "v1.4"}))

        assert [i["iid"] for i in issues] == [1, 2]
        first = sent(mock_session, 0)
        assert first[1] == "https://gitlab.com/api/v4/projects/group%2Fapp/issues"
        assert first[2]["params"]["milestone"] == "v1.4"
        assert first[2]["params"]["per_page"] == 100
        assert sent(mock_session, 1)[2]["params"]["page"] == "2"
        assert mock_session.request.call_count == 2

    def test_empty_page(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory(status_code=200)

        assert list(client.iter_projects()) == []


class TestWrites:
    """Tests for issue and milestone writes."""

    def test_update_issue_put(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory(json_data={"iid": 3})

        client.update_issue(3, {"state_event": "close"})

        method, url, kwargs = sent(mock_session)
        assert method == "PUT"
        assert url.endswith("/projects/group%2Fapp/issues/3")
        assert kwargs["json"] == {"state_event": "close"}

    def test_add_note(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory(json_data={"id": 1})

        client.add_note(3, "Released")

        method, url, kwargs = sent(mock_session)
        assert method == "POST"
        assert url.endswith("/issues/3/notes")
        assert kwargs["json"] == {"body": "Released"}

    def test_dry_run(self, mock_session):
        client = GitLabApiClient(token="t", project_id="1", requests_per_hour=None)

        assert client.create_milestone("v1") == {}
        mock_session.request.assert_not_called()

    def test_milestone_title_filter(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory(json_data=[])

        list(client.iter_milestones(title="v1.4"))

        assert sent(mock_session)[2]["params"]["title"] == "v1.4"
