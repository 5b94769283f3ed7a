"""Re-run pull request workflows after a push to their base branch."""

from .action import Action, ActionContext
from .errors import (
    AggregateProblem,
    Failed,
    Problem,
    PullRequestProblem,
    RunProblem,
    UnsupportedEventError,
    UnsupportedRefError,
)
from .models import IncomingPullRequest, Mergeability, WorkflowRun
from .reporter import LoggingReporter, Reporter

__all__ = [
    "Action",
    "ActionContext",
    "AggregateProblem",
    "Failed",
    "IncomingPullRequest",
    "LoggingReporter",
    "Mergeability",
    "Problem",
    "PullRequestProblem",
    "Reporter",
    "RunProblem",
    "UnsupportedEventError",
    "UnsupportedRefError",
    "WorkflowRun",
]
