"""Re-runs pull request workflows after their base branch was pushed.

A push to a branch may change whether the open pull requests targeting it
still merge cleanly, and GitHub does not re-run their checks by itself. For
every open pull request on the pushed branch the action waits until GitHub
knows the pull request's mergeability, then requests a re-run of the
configured workflow's runs for that pull request.

Pull requests are processed concurrently, as are the runs of a single pull
request. A failure in one unit never stops its siblings: all of them run to
completion and failures are raised together afterwards.
"""

import logging
from dataclasses import dataclass
from typing import Any

from .aggregate import await_all
from .errors import (
    PullRequestProblem,
    RunProblem,
    UnsupportedEventError,
    UnsupportedRefError,
    describe,
)
from .mergeability import MergeabilityResolver
from .models import IncomingPullRequest, Mergeability, WorkflowRun
from .queries import OPEN_PULL_REQUESTS_QUERY
from .reporter import Reporter

logger = logging.getLogger(__name__)

BRANCH_REF_PREFIX = "refs/heads/"
RERUN_ROUTE = "POST /repos/{owner}/{repo}/actions/runs/{run_id}/rerun"


@dataclass
class ActionContext:
    """Everything one invocation needs.

    Attributes:
        event_name: Name of the triggering event, e.g. ``push``
        payload: Webhook payload of the event
        client: GitHub client exposing ``graphql``, ``request`` and
            ``list_workflow_runs_for_repo``
        workflow_name: Name of the workflow whose runs are re-run
        reporter: Receives progress notifications
        max_concurrency: Optional cap on concurrently processed units
        resolver: Mergeability resolver; built from ``client`` if omitted
    """

    event_name: str
    payload: dict[str, Any]
    client: Any
    workflow_name: str
    reporter: Reporter
    max_concurrency: int | None = None
    resolver: MergeabilityResolver | None = None


class Action:
    """Reconciles the pull requests affected by one push event."""

    def __init__(
        self,
        client: Any,
        reporter: Reporter,
        resolver: MergeabilityResolver | None = None,
        max_concurrency: int | None = None,
    ):
        self.client = client
        self.reporter = reporter
        self.resolver = resolver or MergeabilityResolver(client)
        self.max_concurrency = max_concurrency

    @classmethod
    async def run(cls, ctx: ActionContext) -> None:
        """Handle the event described by ``ctx``.

        Raises:
            UnsupportedEventError: If the event is not a push
            UnsupportedRefError: If the push is not to a branch
            AggregateProblem: If any pull request could not be reconciled
        """
        if ctx.event_name != "push":
            raise UnsupportedEventError(ctx.event_name)

        action = cls(ctx.client, ctx.reporter, ctx.resolver, ctx.max_concurrency)
        await action.handle_push_event(ctx.workflow_name, ctx.payload)

    async def handle_push_event(
        self, workflow_name: str, event: dict[str, Any]
    ) -> None:
        ref = event.get("ref") or ""
        if not ref.startswith(BRANCH_REF_PREFIX):
            raise UnsupportedRefError(ref)

        repository = event["repository"]
        open_pull_requests = await self.list_open_incoming_pull_requests(
            owner=repository["owner"]["login"],
            repo=repository["name"],
            branch=ref[len(BRANCH_REF_PREFIX) :],
        )
        logger.debug(
            f"Open incoming PRs: {[pr.number for pr in open_pull_requests]}"
        )

        await await_all(
            (
                self._reconcile_pull_request(workflow_name, pr)
                for pr in open_pull_requests
            ),
            self.max_concurrency,
        )
        self.reporter.done()

    async def list_open_incoming_pull_requests(
        self, owner: str, repo: str, branch: str
    ) -> list[IncomingPullRequest]:
        """Fetch up to 100 open pull requests based on ``branch``."""
        query_vars = {"owner": owner, "repo": repo, "branch": branch}
        logger.debug(f"Fetching open incoming PRs: {query_vars}")
        data = await self.client.graphql(OPEN_PULL_REQUESTS_QUERY, query_vars)
        nodes = data["repository"]["pullRequests"]["nodes"]
        return [IncomingPullRequest.from_graphql(node) for node in nodes]

    async def _reconcile_pull_request(
        self, workflow_name: str, pull_request: IncomingPullRequest
    ) -> None:
        try:
            resolved = await self.resolver.resolve(pull_request)

            if resolved.mergeability is Mergeability.UNKNOWN:
                # Fail open: an unresolved verdict is handled like MERGEABLE.
                logger.warning(f"PR #{resolved.number}: mergeability still unknown")
                await self.trigger_reruns(workflow_name, resolved)
            elif resolved.mergeability is Mergeability.MERGEABLE:
                await self.trigger_reruns(workflow_name, resolved)
            else:
                self.reporter.pull_request_ignored(resolved)
        except Exception as e:
            raise PullRequestProblem(
                f"failed to trigger runs for PR #{pull_request.number}: "
                f"{describe(e)}",
                pull_request,
                cause=e,
            ) from e

    async def list_matching_runs(
        self, workflow_name: str, pull_request: IncomingPullRequest
    ) -> list[WorkflowRun]:
        """Runs of ``workflow_name`` associated with the pull request."""
        response = await self.client.list_workflow_runs_for_repo(
            owner=pull_request.owner,
            repo=pull_request.repo,
            event="pull_request",
            branch=pull_request.head_ref_name,
        )
        runs = [WorkflowRun.from_api(run) for run in response["workflow_runs"]]
        return [
            run
            for run in runs
            if run.name == workflow_name
            and run.is_associated_with(pull_request.number)
        ]

    async def trigger_reruns(
        self, workflow_name: str, pull_request: IncomingPullRequest
    ) -> None:
        runs = await self.list_matching_runs(workflow_name, pull_request)
        if not runs:
            self.reporter.no_runs_found(pull_request)
            return

        await await_all(
            (self._rerun(pull_request, run) for run in runs),
            self.max_concurrency,
        )

    async def _rerun(self, pull_request: IncomingPullRequest, run: WorkflowRun) -> None:
        try:
            await self.trigger_rerun(pull_request, run)
        except Exception as e:
            raise RunProblem(
                f"failed to re-run workflow run {run.id}: {describe(e)}",
                run,
                cause=e,
            ) from e

    async def trigger_rerun(
        self, pull_request: IncomingPullRequest, run: WorkflowRun
    ) -> None:
        # TODO: decide whether runs still queued or in progress should be
        # cancelled first; GitHub rejects re-runs of incomplete runs.
        await self.client.request(
            RERUN_ROUTE,
            {**pull_request.repository, "run_id": run.id},
        )
        self.reporter.rerun_triggered(pull_request, run)
