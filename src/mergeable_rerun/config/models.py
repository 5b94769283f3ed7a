"""Pydantic settings for one invocation.

String values may reference environment variables as ``${VAR_NAME}`` or
``${VAR_NAME:default}``; they are substituted before validation.
"""

import os
import re
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationInfo,
    field_validator,
    model_validator,
)

_ENV_REFERENCE = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


class LogLevel(str, Enum):
    """Supported logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ActionSettings(BaseModel):
    """Inputs and tuning knobs of the action."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    github_token: SecretStr = Field(description="Token used for GitHub API calls")

    workflow: str = Field(description="Name of the workflow whose runs are re-run")

    api_url: str = Field(
        default="https://api.github.com", description="GitHub REST API base URL"
    )

    graphql_url: str | None = Field(
        default=None,
        description="GitHub GraphQL endpoint, derived from api_url when unset",
    )

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")

    max_concurrency: int | None = Field(
        default=None,
        ge=1,
        description="Cap on pull requests and runs processed at once",
    )

    timeout: int = Field(
        default=30, ge=1, le=600, description="HTTP request timeout in seconds"
    )

    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for failed HTTP requests (transport and 5xx only)",
    )

    @model_validator(mode="before")
    @classmethod
    def substitute_env_vars(cls, values: Any, info: ValidationInfo) -> Any:
        """Substitute ``${VAR}`` references in string values.

        Variables are looked up in the ``environ`` validation context entry,
        falling back to ``os.environ``.

        Raises:
            ValueError: If a referenced variable without default is missing
        """
        if not isinstance(values, dict):
            return values

        environ = (info.context or {}).get("environ", os.environ)

        def replacer(match: re.Match[str]) -> str:
            var_name, default_value = match.group(1), match.group(2)
            env_value = environ.get(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            raise ValueError(f"Required environment variable '{var_name}' not found")

        return {
            key: _ENV_REFERENCE.sub(replacer, value) if isinstance(value, str) else value
            for key, value in values.items()
        }

    @field_validator("workflow")
    @classmethod
    def validate_workflow(cls, v: str) -> str:
        """Workflow name must not be blank."""
        if not v.strip():
            raise ValueError("Workflow name cannot be empty")
        return v

    @field_validator("github_token")
    @classmethod
    def validate_github_token(cls, v: SecretStr) -> SecretStr:
        """Token must not be blank."""
        if not v.get_secret_value().strip():
            raise ValueError("GitHub token cannot be empty")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v
