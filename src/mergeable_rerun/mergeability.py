"""Polling of GitHub's eventually-consistent ``mergeable`` field.

GitHub computes mergeability in the background after a push to the base
branch, so a freshly listed pull request often reports ``UNKNOWN``. The
resolver re-fetches the pull request with a growing, jittered delay until
the verdict is definite or the retry budget runs out.

See https://stackoverflow.com/a/30620973
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .models import IncomingPullRequest, Mergeability
from .queries import PULL_REQUEST_QUERY

logger = logging.getLogger(__name__)

MAX_REFETCHES = 9
BACKOFF_CAP = 4


def backoff_delay_ms(attempt: int, jitter: float) -> int:
    """Delay before re-fetch number ``attempt`` (1-based), in milliseconds.

    The floor grows one second per attempt up to ``BACKOFF_CAP`` seconds and
    ``jitter`` in [0, 1) adds up to one more second.
    """
    return round((min(attempt, BACKOFF_CAP) + jitter) * 1000)


@dataclass(frozen=True)
class PollState:
    """Latest observation of a pull request and how many re-fetches it took."""

    pull_request: IncomingPullRequest
    refetches: int = 0

    @property
    def mergeability(self) -> Mergeability:
        return self.pull_request.mergeability

    def is_terminal(self, max_refetches: int) -> bool:
        return (
            self.mergeability is not Mergeability.UNKNOWN
            or self.refetches >= max_refetches
        )


class MergeabilityResolver:
    """Re-fetches pull requests until their mergeability settles."""

    def __init__(
        self,
        client: Any,
        max_refetches: int = MAX_REFETCHES,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
    ):
        """Initialize resolver.

        Args:
            client: GitHub client exposing ``graphql(query, variables)``
            max_refetches: Re-fetch budget per pull request
            sleep: Coroutine function sleeping for the given seconds
            jitter: Source of uniform random numbers in [0, 1)
        """
        self.client = client
        self.max_refetches = max_refetches
        self._sleep = sleep
        self._jitter = jitter

    async def resolve(self, pull_request: IncomingPullRequest) -> IncomingPullRequest:
        """Return the freshest snapshot once mergeability is known.

        If the budget runs out the last ``UNKNOWN`` snapshot is returned;
        that is not an error and the caller decides what to do with it.
        """
        state = PollState(pull_request)

        while not state.is_terminal(self.max_refetches):
            attempt = state.refetches + 1
            delay_ms = backoff_delay_ms(attempt, self._jitter())
            logger.debug(
                f"Re-fetching PR #{state.pull_request.number} in {delay_ms} ms "
                f"(attempt {attempt}/{self.max_refetches})"
            )
            await self._sleep(delay_ms / 1000)
            state = PollState(await self._fetch(state.pull_request), attempt)

        logger.debug(
            f"Resolved PR #{state.pull_request.number} as "
            f"{state.pull_request.mergeable} after {state.refetches} re-fetches"
        )
        return state.pull_request

    async def _fetch(self, pull_request: IncomingPullRequest) -> IncomingPullRequest:
        data = await self.client.graphql(
            PULL_REQUEST_QUERY,
            {
                "owner": pull_request.owner,
                "repo": pull_request.repo,
                "number": pull_request.number,
            },
        )
        return IncomingPullRequest.from_graphql(data["repository"]["pullRequest"])
