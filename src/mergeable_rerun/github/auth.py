"""GitHub authentication handlers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from .exceptions import GitHubAuthenticationError


@dataclass
class AuthToken:
    """Authentication token sent with every API request."""

    token: str
    token_type: str = "Bearer"

    def to_header(self) -> dict[str, str]:
        """Convert to authorization header."""
        return {"Authorization": f"{self.token_type} {self.token}"}

    def __repr__(self) -> str:
        return f"AuthToken(token='***', token_type={self.token_type!r})"


class AuthProvider(ABC):
    """Abstract base class for authentication providers."""

    @abstractmethod
    async def get_token(self) -> AuthToken:
        """Get authentication token."""


class TokenAuth(AuthProvider):
    """Bearer token authentication, e.g. the workflow's ``GITHUB_TOKEN``."""

    DEFAULT_TOKEN_TYPE = "Bearer"  # nosec B105

    def __init__(self, token: str, token_type: str | None = None):
        """Initialize token authentication.

        Args:
            token: Authentication token
            token_type: Type of token (Bearer, token, etc.). Uses Bearer by default.
        """
        if not token:
            raise GitHubAuthenticationError("GitHub token is required")
        self._token = AuthToken(
            token=token, token_type=token_type or self.DEFAULT_TOKEN_TYPE
        )

    async def get_token(self) -> AuthToken:
        """Get authentication token."""
        return self._token
