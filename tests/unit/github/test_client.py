"""
Unit tests for GitHub API client.

Why: Ensure the client sends the GraphQL and REST calls the action relies on
     with the right URLs, bodies and authentication, and maps failures to
     the GitHub exception hierarchy.

What: Tests GitHubClient graphql, request route expansion,
      list_workflow_runs_for_repo, error mapping and retries.

How: Uses aioresponses to intercept aiohttp requests without making real
     GitHub API calls.
"""

import re
import time
from typing import Any
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
import pytest_asyncio
from aioresponses import aioresponses
from yarl import URL

from mergeable_rerun.github.auth import TokenAuth
from mergeable_rerun.github.client import GitHubClient, GitHubClientConfig
from mergeable_rerun.github.exceptions import (
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubError,
    GitHubGraphQLError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubValidationError,
)

API = "https://api.github.com"
RERUN_URL = f"{API}/repos/foo/bar/actions/runs/1337/rerun"


def sent_requests(m: aioresponses, method: str) -> list[tuple[URL, dict[str, Any]]]:
    """Requests recorded by aioresponses as (url, kwargs) pairs."""
    return [
        (url, call.kwargs)
        for (recorded_method, url), calls in m.requests.items()
        if recorded_method == method
        for call in calls
    ]


def limit_headers(resource: str, remaining: int) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": "5000",
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": str(int(time.time()) + 3600),
        "X-RateLimit-Resource": resource,
    }


class TestGitHubClientConfig:
    """Test GitHubClientConfig data class."""

    def test_defaults(self) -> None:
        config = GitHubClientConfig()

        assert config.base_url == "https://api.github.com"
        assert config.timeout == 30
        assert config.max_retries == 3
        assert config.retry_backoff_factor == 2.0
        assert config.max_concurrent_requests == 10
        assert config.resolved_graphql_url == "https://api.github.com/graphql"

    def test_graphql_url_for_enterprise_server(self) -> None:
        config = GitHubClientConfig(base_url="https://ghe.example.com/api/v3")
        assert config.resolved_graphql_url == "https://ghe.example.com/api/v3/graphql"

        config = GitHubClientConfig(
            base_url="https://ghe.example.com/api/v3",
            graphql_url="https://ghe.example.com/api/graphql",
        )
        assert config.resolved_graphql_url == "https://ghe.example.com/api/graphql"


class TestGitHubClient:
    """Test GitHubClient class."""

    @pytest_asyncio.fixture
    async def github_client(self) -> Any:
        client = GitHubClient(
            auth=TokenAuth("test_token"),
            config=GitHubClientConfig(max_retries=0),
        )
        yield client
        await client.close()

    @pytest.mark.asyncio
    async def test_context_manager(self) -> None:
        """Session is opened on entry and closed on exit."""
        client = GitHubClient(auth=TokenAuth("test_token"))
        async with client:
            assert client._session is not None
            assert not client._session.closed

        assert client._session is None

    @pytest.mark.asyncio
    async def test_graphql_returns_data(self, github_client: GitHubClient) -> None:
        """The query and variables are posted and ``data`` is returned."""
        with aioresponses() as m:
            m.post(f"{API}/graphql", payload={"data": {"repository": {"id": "R1"}}})

            data = await github_client.graphql("query { x }", {"owner": "foo"})

            assert data == {"repository": {"id": "R1"}}
            ((url, kwargs),) = sent_requests(m, "POST")
            assert str(url) == f"{API}/graphql"
            assert kwargs["json"] == {
                "query": "query { x }",
                "variables": {"owner": "foo"},
            }
            assert kwargs["headers"] == {"Authorization": "Bearer test_token"}

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self, github_client: GitHubClient) -> None:
        """An ``errors`` member becomes GitHubGraphQLError."""
        with aioresponses() as m:
            m.post(
                f"{API}/graphql",
                payload={
                    "data": None,
                    "errors": [{"message": "Could not resolve to a Repository"}],
                },
            )

            with pytest.raises(GitHubGraphQLError, match="Could not resolve") as exc_info:
                await github_client.graphql("query { x }")

            assert exc_info.value.errors == [
                {"message": "Could not resolve to a Repository"}
            ]

    @pytest.mark.asyncio
    async def test_request_expands_route(self, github_client: GitHubClient) -> None:
        """Route placeholders are filled and an empty 201 yields None."""
        with aioresponses() as m:
            m.post(RERUN_URL, status=201, body="")

            result = await github_client.request(
                "POST /repos/{owner}/{repo}/actions/runs/{run_id}/rerun",
                {"owner": "foo", "repo": "bar", "run_id": 1337},
            )

            assert result is None
            ((url, kwargs),) = sent_requests(m, "POST")
            assert str(url) == RERUN_URL
            assert "json" not in kwargs

    @pytest.mark.asyncio
    async def test_request_sends_leftover_params_as_body(
        self, github_client: GitHubClient
    ) -> None:
        with aioresponses() as m:
            m.post(RERUN_URL, status=201, payload={})

            await github_client.request(
                "POST /repos/{owner}/{repo}/actions/runs/{run_id}/rerun",
                {"owner": "foo", "repo": "bar", "run_id": 1337, "enable_debug_logging": True},
            )

            ((_, kwargs),) = sent_requests(m, "POST")
            assert kwargs["json"] == {"enable_debug_logging": True}

    @pytest.mark.asyncio
    async def test_request_missing_route_param(
        self, github_client: GitHubClient
    ) -> None:
        with pytest.raises(ValueError, match="missing route parameter 'run_id'"):
            await github_client.request(
                "POST /repos/{owner}/{repo}/actions/runs/{run_id}/rerun",
                {"owner": "foo", "repo": "bar"},
            )

    @pytest.mark.asyncio
    async def test_list_workflow_runs_for_repo(
        self, github_client: GitHubClient
    ) -> None:
        """Filters are sent as query parameters."""
        runs = {"total_count": 1, "workflow_runs": [{"id": 1, "name": "CI"}]}
        with aioresponses() as m:
            m.get(re.compile(rf"^{API}/repos/foo/bar/actions/runs\?.*$"), payload=runs)

            result = await github_client.list_workflow_runs_for_repo(
                owner="foo", repo="bar", event="pull_request", branch="feature/x"
            )

            assert result == runs
            ((url, _),) = sent_requests(m, "GET")
            assert url.path == "/repos/foo/bar/actions/runs"
            assert dict(url.query) == {"event": "pull_request", "branch": "feature/x"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,payload,error_class",
        [
            (401, {"message": "Bad credentials"}, GitHubAuthenticationError),
            (403, {"message": "Resource not accessible by integration"}, GitHubAuthenticationError),
            (403, {"message": "API rate limit exceeded"}, GitHubRateLimitError),
            (404, {"message": "Not Found"}, GitHubNotFoundError),
            (422, {"message": "Validation Failed"}, GitHubValidationError),
            (500, {"message": "Internal Server Error"}, GitHubServerError),
        ],
    )
    async def test_error_mapping(
        self,
        github_client: GitHubClient,
        status: int,
        payload: dict[str, Any],
        error_class: type[Exception],
    ) -> None:
        """Error statuses raise the matching exception."""
        with aioresponses() as m:
            m.post(RERUN_URL, status=status, payload=payload)

            with pytest.raises(error_class, match=payload["message"]):
                await github_client.request(
                    "POST /repos/{owner}/{repo}/actions/runs/{run_id}/rerun",
                    {"owner": "foo", "repo": "bar", "run_id": 1337},
                )

    @pytest.mark.asyncio
    async def test_retries_server_errors(self) -> None:
        """5xx responses are retried with backoff, then succeed."""
        client = GitHubClient(
            auth=TokenAuth("test_token"), config=GitHubClientConfig(max_retries=2)
        )
        try:
            with aioresponses() as m, patch(
                "mergeable_rerun.github.client.asyncio.sleep", new=AsyncMock()
            ) as sleep:
                m.post(f"{API}/graphql", status=502, payload={"message": "Bad Gateway"})
                m.post(f"{API}/graphql", payload={"data": {"ok": True}})

                assert await client.graphql("query { ok }") == {"ok": True}
                sleep.assert_awaited_once_with(1.0)
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_does_not_retry_client_errors(self) -> None:
        """4xx responses fail immediately."""
        client = GitHubClient(
            auth=TokenAuth("test_token"), config=GitHubClientConfig(max_retries=3)
        )
        try:
            with aioresponses() as m:
                m.post(f"{API}/graphql", status=404, payload={"message": "Not Found"})

                with pytest.raises(GitHubNotFoundError):
                    await client.graphql("query { x }")

                assert len(sent_requests(m, "POST")) == 1
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_connection_error(self, github_client: GitHubClient) -> None:
        """Transport failures become GitHubConnectionError."""
        with aioresponses() as m:
            m.post(
                f"{API}/graphql",
                exception=aiohttp.ClientConnectionError("Connection refused"),
            )

            with pytest.raises(GitHubConnectionError, match="Connection refused"):
                await github_client.graphql("query { x }")

    @pytest.mark.asyncio
    async def test_tracks_rate_limit_headers(self, github_client: GitHubClient) -> None:
        with aioresponses() as m:
            m.post(
                f"{API}/graphql",
                payload={"data": {}},
                headers={
                    "X-RateLimit-Limit": "5000",
                    "X-RateLimit-Remaining": "4500",
                    "X-RateLimit-Reset": "1234567890",
                    "X-RateLimit-Used": "500",
                    "X-RateLimit-Resource": "graphql",
                },
            )

            await github_client.graphql("query { x }")

        info = github_client.rate_limiter.get_rate_limit("graphql")
        assert info is not None
        assert info.remaining == 4500
        assert info.used == 500

    @pytest.mark.asyncio
    async def test_rate_limits_are_checked_per_resource(
        self, github_client: GitHubClient
    ) -> None:
        """
        Why: GraphQL and REST calls draw on separate budgets.
        What: Tests that an exhausted core budget leaves graphql() usable while
              an exhausted graphql budget stops it before any request is sent.
        How: Records both budgets, then calls graphql() with aioresponses.
        """
        rate_limiter = github_client.rate_limiter
        rate_limiter.update_rate_limit(limit_headers("core", remaining=0))
        rate_limiter.update_rate_limit(limit_headers("graphql", remaining=4999))

        with aioresponses() as m:
            m.post(f"{API}/graphql", payload={"data": {"ok": True}})

            assert await github_client.graphql("query { ok }") == {"ok": True}

            with pytest.raises(GitHubRateLimitError, match="core"):
                await github_client.request(
                    "POST /repos/{owner}/{repo}/actions/runs/{run_id}/rerun",
                    {"owner": "foo", "repo": "bar", "run_id": 1337},
                )
            assert len(sent_requests(m, "POST")) == 1

        rate_limiter.update_rate_limit(limit_headers("graphql", remaining=0))
        with pytest.raises(GitHubRateLimitError, match="graphql"):
            await github_client.graphql("query { ok }")

    @pytest.mark.asyncio
    async def test_invalid_json_in_success_response(
        self, github_client: GitHubClient
    ) -> None:
        """A 2xx body that is not JSON raises GitHubError."""
        with aioresponses() as m:
            m.get(
                re.compile(rf"^{API}/repos/foo/bar/actions/runs.*$"),
                status=200,
                body="<html>maintenance</html>",
            )

            with pytest.raises(GitHubError, match="Invalid JSON") as exc_info:
                await github_client.list_workflow_runs_for_repo(owner="foo", repo="bar")

            assert exc_info.value.status_code == 200
