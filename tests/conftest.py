"""
Test configuration and fixtures shared by the unit tests.

Provides a recording reporter, a mocked GitHub client and a resolver that
never really sleeps.
"""

from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from mergeable_rerun.mergeability import MergeabilityResolver
from tests.factories import RecordingReporter


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def mock_client() -> Mock:
    """
    Mock GitHub client.

    Why: Lets tests script every remote response without network access
    What: Provides graphql, request and list_workflow_runs_for_repo
    How: AsyncMock for each call; tests set return values or side effects
    """
    client = Mock()
    client.graphql = AsyncMock()
    client.request = AsyncMock(return_value=None)
    client.list_workflow_runs_for_repo = AsyncMock(
        return_value={"total_count": 0, "workflow_runs": []}
    )
    return client


@pytest.fixture
def mock_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def resolver(mock_client: Mock, mock_sleep: AsyncMock) -> MergeabilityResolver:
    """Resolver that never really sleeps and uses a fixed jitter of 0.5."""
    return MergeabilityResolver(mock_client, sleep=mock_sleep, jitter=lambda: 0.5)


@pytest.fixture
def push_payload() -> dict[str, Any]:
    return {
        "ref": "refs/heads/main",
        "repository": {"owner": {"login": "foo"}, "name": "bar"},
    }
