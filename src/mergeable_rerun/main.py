"""Command line entry point.

Reads the action inputs and the triggering event from the runner
environment, runs the action once and maps failures to exit status 1.
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Mapping, Sequence

from .action import Action, ActionContext
from .config import ConfigurationLoader
from .errors import AggregateProblem, Problem
from .github import GitHubClient, GitHubClientConfig, TokenAuth
from .logging_setup import configure_logging
from .reporter import LoggingReporter

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mergeable-rerun",
        description=(
            "Re-run a workflow for open pull requests whose base branch "
            "was pushed"
        ),
    )
    parser.add_argument("--config", help="YAML configuration file path")
    parser.add_argument("--token", help="GitHub token (default: INPUT_GITHUB-TOKEN)")
    parser.add_argument("--workflow", help="Workflow name (default: INPUT_WORKFLOW)")
    parser.add_argument(
        "--event-name", help="Triggering event (default: GITHUB_EVENT_NAME)"
    )
    parser.add_argument(
        "--event-path", help="Event payload JSON file (default: GITHUB_EVENT_PATH)"
    )
    parser.add_argument(
        "--max-concurrency",
        type=int,
        help="Cap on pull requests and runs processed at once",
    )
    parser.add_argument("--log-level", help="Log level (default: INFO)")
    return parser


def _log_failures(error: AggregateProblem) -> None:
    logger.debug(f"Outcomes: {error.context()}")
    for failure in error.failures:
        subject = failure.subject if failure.subject is not None else "unit"
        logger.debug(f"{subject} failed: {failure.error!r}")
        if isinstance(failure.error, AggregateProblem):
            _log_failures(failure.error)


async def run(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    """Run the action once and return the process exit status."""
    args = build_parser().parse_args(argv)
    loader = ConfigurationLoader(environ)

    try:
        settings = loader.load(
            args.config,
            overrides={
                "github_token": args.token,
                "workflow": args.workflow,
                "max_concurrency": args.max_concurrency,
                "log_level": args.log_level,
            },
        )
    except Exception as e:
        configure_logging()
        logger.error(str(e))
        return 1

    configure_logging(settings.log_level.value)

    try:
        event_name, payload = loader.load_event(args.event_name, args.event_path)
        client_config = GitHubClientConfig(
            base_url=settings.api_url,
            graphql_url=settings.graphql_url,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
        )
        async with GitHubClient(
            TokenAuth(settings.github_token.get_secret_value()), client_config
        ) as client:
            await Action.run(
                ActionContext(
                    event_name=event_name,
                    payload=payload,
                    client=client,
                    workflow_name=settings.workflow,
                    reporter=LoggingReporter(),
                    max_concurrency=settings.max_concurrency,
                )
            )
    except AggregateProblem as e:
        _log_failures(e)
        logger.error(e.message)
        return 1
    except Exception as e:
        if isinstance(e, Problem):
            logger.debug(f"Failure context: {e.context()}")
        logger.exception(f"Action failed: {e}")
        return 1

    return 0


def main() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
