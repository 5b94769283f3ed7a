"""Data models for pull requests and workflow runs.

Both models are immutable snapshots of what GitHub returned. A fresher value
is obtained by fetching again, never by mutating an existing instance.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Mergeability(str, Enum):
    """Classification of GitHub's eventually-consistent ``mergeable`` field."""

    MERGEABLE = "MERGEABLE"
    UNKNOWN = "UNKNOWN"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, raw: str | None) -> "Mergeability":
        """Map a raw ``MergeableState`` value to a classification.

        ``None`` is treated as still computing; anything that is neither
        ``MERGEABLE`` nor ``UNKNOWN`` (e.g. ``CONFLICTING``) is a definite
        verdict against merging.
        """
        if raw is None or raw == cls.UNKNOWN.value:
            return cls.UNKNOWN
        if raw == cls.MERGEABLE.value:
            return cls.MERGEABLE
        return cls.OTHER


@dataclass(frozen=True)
class IncomingPullRequest:
    """An open pull request whose base branch received the push."""

    number: int
    mergeable: str
    head_ref_name: str
    owner: str
    repo: str

    @classmethod
    def from_graphql(cls, node: dict[str, Any]) -> "IncomingPullRequest":
        """Build from a node fetched with ``PULL_REQUEST_FIELDS``."""
        repository = node["repository"]
        return cls(
            number=int(node["number"]),
            mergeable=node.get("mergeable") or Mergeability.UNKNOWN.value,
            head_ref_name=(node.get("headRef") or {}).get("name", ""),
            owner=repository["owner"]["login"],
            repo=repository["name"],
        )

    @property
    def mergeability(self) -> Mergeability:
        return Mergeability.parse(self.mergeable)

    @property
    def repository(self) -> dict[str, str]:
        """Owner/repo pair in the shape REST routes expect."""
        return {"owner": self.owner, "repo": self.repo}

    def __str__(self) -> str:
        return f"PR #{self.number}"


@dataclass(frozen=True)
class WorkflowRun:
    """One recorded execution of a workflow."""

    id: int
    name: str | None
    status: str | None = None
    pull_request_numbers: tuple[int, ...] = field(default_factory=tuple)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "WorkflowRun":
        """Build from an entry of the ``workflow_runs`` list."""
        return cls(
            id=int(payload["id"]),
            name=payload.get("name"),
            status=payload.get("status"),
            pull_request_numbers=tuple(
                int(pr["number"]) for pr in payload.get("pull_requests") or ()
            ),
        )

    def is_associated_with(self, number: int) -> bool:
        """Check whether the run is linked to the given pull request."""
        return number in self.pull_request_numbers

    def __str__(self) -> str:
        return f"workflow run {self.id}"
