"""Logging configuration.

Inside a GitHub Actions runner, warnings and errors are additionally emitted
as workflow commands so they show up as annotations on the run.
"""

import logging
import os
import sys
from collections.abc import Mapping

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_COMMANDS = {
    logging.DEBUG: "debug",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


def _escape_data(message: str) -> str:
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class ActionsAnnotationFormatter(logging.Formatter):
    """Formats DEBUG/WARNING/ERROR records as ``::<command>::message``."""

    def format(self, record: logging.LogRecord) -> str:
        command = _COMMANDS.get(record.levelno)
        if command is None:
            return super().format(record)

        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"::{command}::{_escape_data(message)}"


def running_in_actions(environ: Mapping[str, str] | None = None) -> bool:
    environ = os.environ if environ is None else environ
    return environ.get("GITHUB_ACTIONS") == "true"


def configure_logging(level: str = "INFO", annotations: bool | None = None) -> None:
    """Configure root logging.

    Args:
        level: Name of the logging level
        annotations: Emit workflow commands; detected from the environment
            when None
    """
    if annotations is None:
        annotations = running_in_actions()

    if annotations:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ActionsAnnotationFormatter(LOG_FORMAT))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
