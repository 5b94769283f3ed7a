"""Fan-out helper that runs every unit to completion and aggregates failures."""

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from typing import Any, TypeVar

from .errors import AggregateProblem, Failed, Problem, describe

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrencyController:
    """Optionally bounds how many units are in flight at once."""

    def __init__(self, max_concurrent: int | None = None):
        """Initialize concurrency controller.

        Args:
            max_concurrent: Maximum concurrent units, or None for no limit
        """
        if max_concurrent is not None and max_concurrent < 1:
            raise ValueError("max_concurrent must be positive")
        self.max_concurrent = max_concurrent
        self.semaphore = asyncio.Semaphore(max_concurrent) if max_concurrent else None

    async def run_with_limit(self, aw: Awaitable[T]) -> T:
        """Await ``aw``, holding a slot while it runs."""
        if self.semaphore is None:
            return await aw
        async with self.semaphore:
            return await aw


def _placeholder(error: BaseException) -> Failed:
    if isinstance(error, Problem):
        return Failed(subject=error.subject, error=error.cause or error)
    return Failed(subject=None, error=error)


async def await_all(
    awaitables: Iterable[Awaitable[T]],
    max_concurrent: int | None = None,
) -> list[T]:
    """Await all units, collecting failures instead of stopping at the first.

    Args:
        awaitables: Independent units of work
        max_concurrent: Optional cap on units in flight

    Returns:
        Results of all units, in submission order

    Raises:
        AggregateProblem: If at least one unit failed. Its message joins the
            individual failure messages with ``", "`` and its outcomes keep
            every successful result next to a placeholder for each failure.
    """
    controller = ConcurrencyController(max_concurrent)
    outcomes = await asyncio.gather(
        *(controller.run_with_limit(aw) for aw in awaitables),
        return_exceptions=True,
    )

    results: list[Any] = []
    error_messages: list[str] = []

    for outcome in outcomes:
        if isinstance(outcome, Exception):
            error_messages.append(describe(outcome))
            results.append(_placeholder(outcome))
        elif isinstance(outcome, BaseException):
            # Cancellation and interpreter exits are not unit failures.
            raise outcome
        else:
            results.append(outcome)

    if error_messages:
        logger.debug(
            f"{len(error_messages)} of {len(results)} units failed: {error_messages}"
        )
        raise AggregateProblem(", ".join(error_messages), results)

    return results
