"""GitHub API client with authentication, retries and rate limit tracking."""

import asyncio
import json
import logging
import re
import time
import uuid
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urljoin

import aiohttp

from .auth import AuthProvider
from .exceptions import (
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubError,
    GitHubGraphQLError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubTimeoutError,
    GitHubValidationError,
)
from .rate_limiting import RateLimitManager

logger = logging.getLogger(__name__)

_ROUTE_PARAM = re.compile(r"\{(\w+)\}")

# Errors worth another attempt; everything else is final.
_RETRYABLE = (GitHubConnectionError, GitHubTimeoutError, GitHubServerError)


@dataclass
class GitHubClientConfig:
    """Configuration for GitHub client."""

    base_url: str = "https://api.github.com"
    graphql_url: str | None = None
    timeout: int = 30
    max_retries: int = 3
    retry_backoff_factor: float = 2.0
    user_agent: str = "mergeable-rerun/1.0"
    max_concurrent_requests: int = 10

    @property
    def resolved_graphql_url(self) -> str:
        """GraphQL endpoint, derived from the REST base URL unless given."""
        if self.graphql_url:
            return self.graphql_url
        return urljoin(self.base_url.rstrip("/") + "/", "graphql")


class GitHubClient:
    """Async GitHub API client exposing the REST and GraphQL calls we need."""

    def __init__(
        self,
        auth: AuthProvider,
        config: GitHubClientConfig | None = None,
    ) -> None:
        """Initialize GitHub client.

        Args:
            auth: Authentication provider
            config: Client configuration
        """
        self.auth = auth
        self.config = config or GitHubClientConfig()
        self.rate_limiter = RateLimitManager()

        # HTTP session will be initialized on first use
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()
        self._request_semaphore = asyncio.Semaphore(self.config.max_concurrent_requests)

    async def __aenter__(self) -> "GitHubClient":
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure HTTP session is initialized."""
        if self._session is None or self._session.closed:
            async with self._session_lock:
                if self._session is None or self._session.closed:
                    self._session = aiohttp.ClientSession(
                        timeout=aiohttp.ClientTimeout(total=self.config.timeout),
                        headers={
                            "User-Agent": self.config.user_agent,
                            "Accept": "application/vnd.github+json",
                            "X-GitHub-Api-Version": "2022-11-28",
                        },
                    )

    async def close(self) -> None:
        """Close HTTP session and cleanup resources."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _url(self, path: str) -> str:
        return urljoin(self.config.base_url.rstrip("/") + "/", path.lstrip("/"))

    async def _make_request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        resource: str = "core",
    ) -> Any:
        """Make HTTP request with retry logic and error handling.

        Args:
            method: HTTP method
            url: Request URL
            params: Query parameters
            data: JSON request body
            resource: Rate limit bucket the request counts against

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            GitHubError: Various GitHub API errors
        """
        correlation_id = str(uuid.uuid4())[:8]

        self.rate_limiter.check_rate_limit(resource)

        auth_token = await self.auth.get_token()
        await self._ensure_session()
        if not self._session:
            raise GitHubConnectionError("Failed to initialize HTTP session")

        request_kwargs: dict[str, Any] = {"headers": auth_token.to_header()}
        if params:
            request_kwargs["params"] = params
        if data is not None:
            request_kwargs["json"] = data

        last_exception: GitHubError | None = None
        for attempt in range(self.config.max_retries + 1):
            try:
                async with self._request_semaphore:
                    start_time = time.time()
                    logger.debug(
                        f"GitHub API request [{correlation_id}] {method} {url} "
                        f"(attempt {attempt + 1})"
                    )

                    async with self._session.request(
                        method, url, **request_kwargs
                    ) as response:
                        self.rate_limiter.update_rate_limit(response.headers)
                        logger.debug(
                            f"GitHub API response [{correlation_id}] "
                            f"{response.status} in {time.time() - start_time:.2f}s"
                        )

                        if 200 <= response.status < 300:
                            body = await response.text()
                            if not body.strip():
                                return None
                            try:
                                return json.loads(body)
                            except json.JSONDecodeError as e:
                                raise GitHubError(
                                    f"Invalid JSON in response to {method} {url}: {e}",
                                    response.status,
                                ) from e

                        await self._handle_error_response(response, correlation_id)

            except TimeoutError:
                last_exception = GitHubTimeoutError(
                    f"Request timeout for {method} {url}"
                )
            except aiohttp.ClientError as e:
                last_exception = GitHubConnectionError(
                    f"Connection error for {method} {url}: {e}"
                )
            except _RETRYABLE as e:
                last_exception = e

            if attempt < self.config.max_retries:
                backoff_time = self.config.retry_backoff_factor**attempt
                logger.warning(
                    f"Request [{correlation_id}] failed (attempt {attempt + 1}), "
                    f"retrying in {backoff_time:.1f}s: {last_exception}"
                )
                await asyncio.sleep(backoff_time)

        if last_exception:
            raise last_exception
        raise GitHubError(f"Request failed after {self.config.max_retries} retries")

    async def _handle_error_response(
        self, response: aiohttp.ClientResponse, correlation_id: str
    ) -> None:
        """Handle error responses from GitHub API.

        Args:
            response: HTTP response
            correlation_id: Request correlation ID

        Raises:
            GitHubError: Appropriate error based on status code
        """
        text = await response.text()
        try:
            error_data = json.loads(text)
        except json.JSONDecodeError:
            error_data = {"message": text}
        if not isinstance(error_data, dict):
            error_data = {"message": text}

        error_message = error_data.get("message") or f"HTTP {response.status}"

        logger.warning(
            f"GitHub API error [{correlation_id}] {response.status}: {error_message}"
        )

        if response.status == 401:
            raise GitHubAuthenticationError(error_message, response.status, error_data)
        elif response.status in (403, 429):
            if response.status == 429 or "rate limit" in error_message.lower():
                reset_time = response.headers.get("X-RateLimit-Reset")
                raise GitHubRateLimitError(
                    error_message,
                    reset_time=int(reset_time) if reset_time else None,
                    remaining=int(response.headers.get("X-RateLimit-Remaining", "0")),
                    limit=int(response.headers.get("X-RateLimit-Limit", "0")),
                )
            raise GitHubAuthenticationError(error_message, response.status, error_data)
        elif response.status == 404:
            raise GitHubNotFoundError(error_message, response.status, error_data)
        elif response.status == 422:
            raise GitHubValidationError(error_message, response.status, error_data)
        elif 500 <= response.status < 600:
            raise GitHubServerError(error_message, response.status, error_data)
        else:
            raise GitHubError(error_message, response.status, error_data)

    async def request(self, route: str, params: dict[str, Any] | None = None) -> Any:
        """Call a REST endpoint described by an Octokit-style route.

        ``route`` looks like ``"POST /repos/{owner}/{repo}/actions/runs/{run_id}/rerun"``.
        Placeholders are filled from ``params``; leftover params become the
        query string for GET/DELETE and the JSON body otherwise.

        Args:
            route: HTTP method and path template separated by a space
            params: Values for the placeholders and the remaining request

        Returns:
            Decoded JSON body, or None for empty responses
        """
        method, _, template = route.strip().partition(" ")
        if not template:
            method, template = "GET", method
        method = method.upper()

        remaining = dict(params or {})

        def substitute(match: re.Match[str]) -> str:
            name = match.group(1)
            if name not in remaining:
                raise ValueError(f"missing route parameter '{name}' for {route}")
            return quote(str(remaining.pop(name)), safe="")

        url = self._url(_ROUTE_PARAM.sub(substitute, template))

        if method in ("GET", "DELETE", "HEAD"):
            return await self._make_request(method, url, params=remaining or None)
        return await self._make_request(method, url, data=remaining or None)

    async def graphql(
        self, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Execute a GraphQL query and return its ``data`` member.

        Raises:
            GitHubGraphQLError: If the response carries errors
        """
        payload = await self._make_request(
            "POST",
            self.config.resolved_graphql_url,
            data={"query": query, "variables": variables or {}},
            resource="graphql",
        )
        if not isinstance(payload, dict):
            raise GitHubError(f"Unexpected GraphQL response: {payload!r}")
        if payload.get("errors"):
            raise GitHubGraphQLError(payload["errors"], payload.get("data"))
        data: dict[str, Any] = payload.get("data") or {}
        return data

    async def list_workflow_runs_for_repo(
        self,
        owner: str,
        repo: str,
        event: str | None = None,
        branch: str | None = None,
        per_page: int | None = None,
    ) -> dict[str, Any]:
        """List workflow runs for a repository.

        Args:
            owner: Repository owner
            repo: Repository name
            event: Only runs triggered by this event (e.g. ``pull_request``)
            branch: Only runs for this head branch
            per_page: Page size (GitHub default 30, max 100)

        Returns:
            Response body with ``total_count`` and ``workflow_runs``
        """
        params: dict[str, Any] = {"owner": owner, "repo": repo}
        if event is not None:
            params["event"] = event
        if branch is not None:
            params["branch"] = branch
        if per_page is not None:
            params["per_page"] = per_page
        result = await self.request("GET /repos/{owner}/{repo}/actions/runs", params)
        return result or {"total_count": 0, "workflow_runs": []}
