"""GitHub API client exceptions."""

from typing import Any


class GitHubError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict[str, Any] | None = None,
    ):
        """Initialize GitHub error.

        Args:
            message: Error message
            status_code: HTTP status code
            response_data: Response data from GitHub API
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}


class GitHubAuthenticationError(GitHubError):
    """Raised when the token is missing, invalid or lacks permissions."""


class GitHubRateLimitError(GitHubError):
    """Raised when rate limit is exceeded."""

    def __init__(
        self,
        message: str,
        reset_time: int | None = None,
        remaining: int = 0,
        limit: int = 0,
    ):
        """Initialize rate limit error.

        Args:
            message: Error message
            reset_time: Unix timestamp when rate limit resets
            remaining: Remaining API calls
            limit: Total rate limit
        """
        super().__init__(message, status_code=403)
        self.reset_time = reset_time
        self.remaining = remaining
        self.limit = limit


class GitHubNotFoundError(GitHubError):
    """Raised when resource is not found."""


class GitHubValidationError(GitHubError):
    """Raised when request validation fails."""


class GitHubServerError(GitHubError):
    """Raised when GitHub server returns 5xx error."""


class GitHubConnectionError(GitHubError):
    """Raised when connection to GitHub fails."""


class GitHubTimeoutError(GitHubError):
    """Raised when request times out."""


class GitHubGraphQLError(GitHubError):
    """Raised when a GraphQL response carries an ``errors`` list."""

    def __init__(self, errors: list[dict[str, Any]], data: Any = None):
        """Initialize GraphQL error.

        Args:
            errors: Error objects returned by the GraphQL endpoint
            data: Partial data returned alongside the errors, if any
        """
        messages = [str(error.get("message", error)) for error in errors]
        super().__init__("; ".join(messages) or "GraphQL request failed")
        self.errors = errors
        self.data = data
