"""Configuration loading.

Settings are merged from these sources, later ones winning:
1. Default values from the Pydantic model
2. Optional YAML configuration file
3. GitHub Actions inputs and runner variables from the environment
4. Runtime overrides (command line)
"""

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .exceptions import (
    ConfigurationFileError,
    ConfigurationMissingError,
    ConfigurationValidationError,
)
from .models import ActionSettings

logger = logging.getLogger(__name__)

# Actions exposes `with:` inputs as INPUT_<NAME>, keeping dashes.
ENVIRONMENT_SOURCES: dict[str, tuple[str, ...]] = {
    "github_token": ("INPUT_GITHUB-TOKEN", "INPUT_GITHUB_TOKEN"),
    "workflow": ("INPUT_WORKFLOW",),
    "log_level": ("INPUT_LOG-LEVEL", "INPUT_LOG_LEVEL"),
    "max_concurrency": ("INPUT_MAX-CONCURRENCY", "INPUT_MAX_CONCURRENCY"),
    "api_url": ("GITHUB_API_URL",),
    "graphql_url": ("GITHUB_GRAPHQL_URL",),
}

REQUIRED_FIELDS = ("github_token", "workflow")


class ConfigurationLoader:
    """Builds ``ActionSettings`` from files, environment and overrides."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        """Initialize configuration loader.

        Args:
            environ: Environment to read; defaults to ``os.environ``
        """
        self.environ = os.environ if environ is None else environ

    def read_file(self, config_path: str | Path) -> dict[str, Any]:
        """Read settings from a YAML file.

        Raises:
            ConfigurationFileError: If the file cannot be read or parsed
        """
        config_path = Path(config_path)

        if not config_path.is_file():
            raise ConfigurationFileError(
                f"Configuration file not found: {config_path}",
                file_path=str(config_path),
            )

        try:
            with open(config_path, encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationFileError(
                f"Failed to parse YAML configuration: {e}", file_path=str(config_path)
            ) from e
        except OSError as e:
            raise ConfigurationFileError(
                f"Failed to read configuration file: {e}", file_path=str(config_path)
            ) from e

        if config_data is None:
            return {}
        if not isinstance(config_data, dict):
            raise ConfigurationFileError(
                "Configuration file must contain a mapping",
                file_path=str(config_path),
            )
        return config_data

    def read_environment(self) -> dict[str, Any]:
        """Collect settings from Actions inputs and runner variables.

        Empty values count as unset, matching how Actions passes omitted inputs.
        """
        values: dict[str, Any] = {}
        for field_name, variables in ENVIRONMENT_SOURCES.items():
            for variable in variables:
                value = self.environ.get(variable, "").strip()
                if value:
                    values[field_name] = value
                    break

        if "log_level" not in values and self.environ.get("RUNNER_DEBUG") == "1":
            values["log_level"] = "DEBUG"
        return values

    def load(
        self,
        config_path: str | Path | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> ActionSettings:
        """Load and validate settings from all sources.

        Args:
            config_path: Optional YAML file
            overrides: Values taking precedence over everything else; None
                values are ignored

        Raises:
            ConfigurationFileError: If the YAML file is unusable
            ConfigurationMissingError: If a required setting has no value
            ConfigurationValidationError: If a value is invalid
        """
        config_data: dict[str, Any] = {}
        if config_path is not None:
            config_data.update(self.read_file(config_path))
        config_data.update(self.read_environment())
        config_data.update(
            {key: value for key, value in (overrides or {}).items() if value is not None}
        )

        missing = [name for name in REQUIRED_FIELDS if not config_data.get(name)]
        if missing:
            raise ConfigurationMissingError(
                f"Input required and not supplied: {', '.join(missing)}",
                missing_fields=missing,
            )

        try:
            settings = ActionSettings.model_validate(
                config_data, context={"environ": self.environ}
            )
        except ValidationError as e:
            raise ConfigurationValidationError(
                f"Configuration validation failed: {e}",
                validation_errors=e.errors(),
            ) from e

        logger.debug(
            f"Loaded settings for workflow '{settings.workflow}' "
            f"(api_url={settings.api_url}, max_concurrency={settings.max_concurrency})"
        )
        return settings

    def load_event(
        self,
        event_name: str | None = None,
        event_path: str | Path | None = None,
    ) -> tuple[str, dict[str, Any]]:
        """Read the triggering event's name and webhook payload.

        Falls back to ``GITHUB_EVENT_NAME`` and ``GITHUB_EVENT_PATH``.

        Raises:
            ConfigurationMissingError: If no event name is available
            ConfigurationFileError: If the payload file is unusable
        """
        event_name = event_name or self.environ.get("GITHUB_EVENT_NAME")
        if not event_name:
            raise ConfigurationMissingError(
                "Event name not supplied (GITHUB_EVENT_NAME)",
                missing_fields=["event_name"],
            )

        event_path = event_path or self.environ.get("GITHUB_EVENT_PATH")
        if not event_path:
            logger.debug("No event payload file, using an empty payload")
            return event_name, {}

        try:
            with open(event_path, encoding="utf-8") as f:
                payload = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationFileError(
                f"Failed to parse event payload: {e}", file_path=str(event_path)
            ) from e
        except OSError as e:
            raise ConfigurationFileError(
                f"Failed to read event payload: {e}", file_path=str(event_path)
            ) from e

        if not isinstance(payload, dict):
            raise ConfigurationFileError(
                "Event payload must be a JSON object", file_path=str(event_path)
            )
        return event_name, payload
