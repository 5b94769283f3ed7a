"""Configuration management for the action."""

from .exceptions import (
    ConfigurationError,
    ConfigurationFileError,
    ConfigurationMissingError,
    ConfigurationValidationError,
)
from .loader import ConfigurationLoader
from .models import ActionSettings, LogLevel

__all__ = [
    "ActionSettings",
    "ConfigurationError",
    "ConfigurationFileError",
    "ConfigurationLoader",
    "ConfigurationMissingError",
    "ConfigurationValidationError",
    "LogLevel",
]
