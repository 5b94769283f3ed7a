"""Failure types raised while reconciling a push event.

Per-unit failures carry the pull request or workflow run they belong to, so
that an aggregate failure can still say which unit failed and why.
"""

from dataclasses import dataclass
from typing import Any

from .models import IncomingPullRequest, WorkflowRun


def describe(error: BaseException) -> str:
    """Message of an error, falling back to its representation."""
    return str(error) or repr(error)


class Problem(Exception):
    """Base failure with a message and an optional underlying cause."""

    def __init__(self, message: str, cause: BaseException | None = None):
        """Initialize problem.

        Args:
            message: Human-readable error message composed by the raiser
            cause: Underlying error, if any
        """
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.__cause__ = cause

    def context(self) -> dict[str, Any]:
        """Identifying fields of the failed unit, without the cause."""
        return {}

    @property
    def subject(self) -> Any:
        """The unit of work this problem belongs to, if any."""
        return None


class UnsupportedEventError(Problem):
    """Raised for any event other than a push."""

    def __init__(self, event_name: str):
        super().__init__(f"unsupported event: {event_name}")
        self.event_name = event_name

    def context(self) -> dict[str, Any]:
        return {"event_name": self.event_name}


class UnsupportedRefError(Problem):
    """Raised for pushes outside ``refs/heads/``, e.g. tags."""

    def __init__(self, ref: str):
        super().__init__(f"unsupported ref: {ref}")
        self.ref = ref

    def context(self) -> dict[str, Any]:
        return {"ref": self.ref}


class PullRequestProblem(Problem):
    """Reconciling one pull request failed."""

    def __init__(
        self,
        message: str,
        pull_request: IncomingPullRequest,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause)
        self.pull_request = pull_request

    def context(self) -> dict[str, Any]:
        return {"pull_request": self.pull_request.number}

    @property
    def subject(self) -> IncomingPullRequest:
        return self.pull_request


class RunProblem(Problem):
    """Requesting a re-run of one workflow run failed."""

    def __init__(
        self,
        message: str,
        run: WorkflowRun,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause)
        self.run = run

    def context(self) -> dict[str, Any]:
        return {"run": self.run.id}

    @property
    def subject(self) -> WorkflowRun:
        return self.run


@dataclass(frozen=True)
class Failed:
    """Placeholder for a unit that failed inside an aggregate.

    Attributes:
        subject: The pull request or run the unit worked on, if known
        error: The underlying error that made the unit fail
    """

    subject: Any
    error: BaseException


class AggregateProblem(Problem):
    """One or more sibling units failed.

    ``outcomes`` keeps one entry per unit, in submission order: the unit's
    result when it succeeded, a ``Failed`` placeholder otherwise.
    """

    def __init__(self, message: str, outcomes: list[Any]):
        super().__init__(message)
        self.outcomes = outcomes

    @property
    def failures(self) -> list[Failed]:
        return [outcome for outcome in self.outcomes if isinstance(outcome, Failed)]

    @property
    def results(self) -> list[Any]:
        return [
            outcome for outcome in self.outcomes if not isinstance(outcome, Failed)
        ]

    def context(self) -> dict[str, Any]:
        return {
            "succeeded": len(self.results),
            "failed": len(self.failures),
        }
