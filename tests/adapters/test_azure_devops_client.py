"""
Tests for AzureDevOpsApiClient.

Tests REST API client with mocked HTTP responses.
"""

import base64

import pytest

from issuebridge.adapters.azure_devops.client import AzureDevOpsApiClient, AzureDevOpsRateLimiter
from issuebridge.core.cancellation import CancellationToken
from issuebridge.core.exceptions import OperationCancelledError, ResourceNotFoundError


@pytest.fixture
def client(mock_session):
    return AzureDevOpsApiClient(
        organization="contoso",
        pat="secret",
        project="Fabrikam Fiber",
        dry_run=False,
        requests_per_second=None,
    )


def sent(mock_session, index=-1):
    """(method, url, kwargs) of a request made through the session."""
    call = mock_session.request.call_args_list[index]
    return call.args[0], call.args[1], call.kwargs


class TestAzureDevOpsApiClientInit:
    """Tests for AzureDevOpsApiClient initialization."""

    def test_init_sets_attributes(self, client):
        assert client.organization == "contoso"
        assert client.project == "Fabrikam Fiber"
        assert client.organization_url == "https://dev.azure.com/contoso"

    def test_dry_run_default(self, mock_session):
        assert AzureDevOpsApiClient(organization="o", pat="p").dry_run is True

    def test_pat_basic_auth(self, client):
        expected = base64.b64encode(b":secret").decode("ascii")

        assert client.headers["Authorization"] == f"Basic {expected}"

    def test_server_base_url(self, mock_session):
        client = AzureDevOpsApiClient(
            organization="DefaultCollection", pat="p", base_url="https://tfs.example.com/tfs/"
        )

        assert client.organization_url == "https://tfs.example.com/tfs/DefaultCollection"

    def test_rate_limiter(self, mock_session):
        client = AzureDevOpsApiClient(organization="o", pat="p", requests_per_second=5.0)

        assert isinstance(client.rate_limiter, AzureDevOpsRateLimiter)

    def test_without_rate_limiter(self, client):
        assert client.rate_limiter is None


class TestRequests:
    def test_api_version_added(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory(json_data={"value": []})

        client.get_iterations()

        method, url, kwargs = sent(mock_session)
        assert method == "GET"
        assert url == (
            "https://dev.azure.com/contoso/Fabrikam%20Fiber/_apis/work/teamsettings/iterations"
        )
        assert kwargs["params"] == {"api-version": "7.1"}

    def test_absolute_url_untouched(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory()

        client.download("https://artifacts.example.com/drop.zip")

        method, url, kwargs = sent(mock_session)
        assert url == "https://artifacts.example.com/drop.zip"
        assert "params" not in kwargs
        assert kwargs["stream"] is True

    def test_download_error_closes_response(self, client, mock_session, response_factory):
        response = response_factory(status_code=404)
        mock_session.request.return_value = response

        with pytest.raises(ResourceNotFoundError):
            client.download("https://artifacts.example.com/missing.zip")

        response.close.assert_called_once()

    def test_project_required(self, mock_session):
        client = AzureDevOpsApiClient(organization="o", pat="p", requests_per_second=None)

        with pytest.raises(ValueError):
            client.get_iterations()


class TestPaging:
    def test_follows_continuation_token(self, client, mock_session, response_factory):
        mock_session.request.side_effect = [
            response_factory(
                json_data={"value": [{"name": "a"}]},
                headers={"x-ms-continuationtoken": "tok"},
            ),
            response_factory(json_data={"value": [{"name": "b"}]}),
        ]

        names = [p["name"] for p in client.iter_projects()]

        assert names == ["a", "b"]
        assert sent(mock_session, 1)[2]["params"]["continuationToken"] == "tok"

    def test_cancelled(self, client, mock_session):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            list(client.iter_projects(token))

        mock_session.request.assert_not_called()


class TestWorkItems:
    """Tests for WIQL and work item calls."""

    def test_query_wiql_project_scoped(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory(json_data={"workItems": []})

        client.query_wiql("SELECT [System.Id] FROM WorkItems")

        method, url, kwargs = sent(mock_session)
        assert method == "POST"
        assert url.endswith("/Fabrikam%20Fiber/_apis/wit/wiql")
        assert kwargs["json"] == {"query": "SELECT [System.Id] FROM WorkItems"}

    def test_query_wiql_runs_in_dry_run(self, mock_session, response_factory):
        client = AzureDevOpsApiClient(organization="o", pat="p", requests_per_second=None)
        mock_session.request.return_value = response_factory(json_data={"workItems": []})

        assert client.query_wiql("SELECT 1") == {"workItems": []}
        assert sent(mock_session)[1] == "https://dev.azure.com/o/_apis/wit/wiql"

    def test_iter_work_items_batches(self, client, mock_session, response_factory):
        ids = [{"id": i} for i in range(1, 206)]
        mock_session.request.side_effect = [
            response_factory(
                json_data={
                    "workItems": ids,
                    "columns": [{"referenceName": "System.Id"}, {"referenceName": "System.State"}],
                }
            ),
            response_factory(json_data={"value": [{"id": i} for i in range(1, 201)]}),
            response_factory(json_data={"value": [{"id": i} for i in range(201, 206)]}),
        ]

        items = list(client.iter_work_items("SELECT ..."))

        assert len(items) == 205
        first_batch = sent(mock_session, 1)[2]["json"]
        assert len(first_batch["ids"]) == 200
        assert first_batch["fields"] == ["System.Id", "System.State"]
        assert first_batch["errorPolicy"] == "omit"
        assert sent(mock_session, 2)[2]["json"]["ids"] == [201, 202, 203, 204, 205]

    def test_iter_work_items_no_matches(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory(json_data={"workItems": []})

        assert list(client.iter_work_items("SELECT ...")) == []
        assert mock_session.request.call_count == 1

    def test_omitted_items_dropped(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory(json_data={"value": [{"id": 1}, None]})

        assert client.get_work_items_batch([1, 2]) == [{"id": 1}]

    def test_update_work_item_json_patch(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory(json_data={"id": 5})

        client.update_work_item(5, {"System.State": "Resolved"})

        method, url, kwargs = sent(mock_session)
        assert method == "PATCH"
        assert url == "https://dev.azure.com/contoso/_apis/wit/workitems/5"
        assert kwargs["json"] == [{"op": "add", "path": "/fields/System.State", "value": "Resolved"}]
        assert kwargs["headers"]["Content-Type"] == "application/json-patch+json"

    def test_update_work_item_dry_run(self, mock_session):
        client = AzureDevOpsApiClient(organization="o", pat="p", requests_per_second=None)

        assert client.update_work_item(5, {"System.State": "Resolved"}) == {}
        mock_session.request.assert_not_called()

    def test_create_work_item(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory(json_data={"id": 9})

        client.create_work_item("User Story", {"System.Title": "T"})

        method, url, _ = sent(mock_session)
        assert method == "POST"
        assert url.endswith("/Fabrikam%20Fiber/_apis/wit/workitems/$User%20Story")

    def test_html_url(self, client):
        assert client.work_item_html_url({"_links": {"html": {"href": "https://x/1"}}}) == "https://x/1"
        assert client.work_item_html_url({"id": 3}) == "https://dev.azure.com/contoso/_workitems/edit/3"


class TestBuilds:
    def test_iter_builds_params(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory(json_data={"value": [{"id": 1}]})

        assert list(client.iter_builds(definition_id=12)) == [{"id": 1}]

        params = sent(mock_session)[2]["params"]
        assert params["definitions"] == 12
        assert params["queryOrder"] == "queueTimeDescending"

    def test_definitions_by_name(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory(json_data={"value": [{"id": 3}]})

        assert client.get_build_definitions("CI") == [{"id": 3}]
        assert sent(mock_session)[2]["params"] == {"name": "CI", "api-version": "7.1"}

    def test_queue_build(self, client, mock_session, response_factory):
        mock_session.request.return_value = response_factory(json_data={"id": 77})

        client.queue_build(3, source_branch="refs/heads/main")

        assert sent(mock_session)[2]["json"] == {
            "definition": {"id": 3},
            "sourceBranch": "refs/heads/main",
        }
