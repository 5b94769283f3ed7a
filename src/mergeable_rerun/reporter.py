"""Progress notifications emitted while handling a push event."""

import logging
from abc import ABC, abstractmethod

from .models import IncomingPullRequest, WorkflowRun

logger = logging.getLogger(__name__)


class Reporter(ABC):
    """Receives progress information about a reconciliation.

    Implementations must not raise; the engine never branches on them.
    """

    @abstractmethod
    def pull_request_ignored(self, pull_request: IncomingPullRequest) -> None:
        """The pull request has a definite non-mergeable state."""

    @abstractmethod
    def rerun_triggered(
        self, pull_request: IncomingPullRequest, run: WorkflowRun
    ) -> None:
        """A re-run of ``run`` was requested for the pull request."""

    @abstractmethod
    def no_runs_found(self, pull_request: IncomingPullRequest) -> None:
        """No run of the workflow is associated with the pull request."""

    @abstractmethod
    def done(self) -> None:
        """All pull requests were processed."""


class LoggingReporter(Reporter):
    """Logs progress, one line per outcome."""

    def __init__(self) -> None:
        self.interactions = False

    def pull_request_ignored(self, pull_request: IncomingPullRequest) -> None:
        self.interactions = True
        logger.info(
            f"Skipped PR #{pull_request.number} in {pull_request.mergeable} state."
        )

    def rerun_triggered(
        self, pull_request: IncomingPullRequest, run: WorkflowRun
    ) -> None:
        self.interactions = True
        logger.info(
            f"Triggered re-run of workflow run {run.id} in {run.status} state "
            f"for PR #{pull_request.number}."
        )

    def no_runs_found(self, pull_request: IncomingPullRequest) -> None:
        self.interactions = True
        logger.error(f"No runs found for PR #{pull_request.number}.")

    def done(self) -> None:
        if not self.interactions:
            logger.info("No pull requests found.")
