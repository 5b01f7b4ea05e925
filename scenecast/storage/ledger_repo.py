"""Storage interface for quota usage and the settled-artifact log."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol

from scenecast.jobs.models import Artifact, UsageSnapshot


class LedgerRepository(Protocol):
  """Repository contract for usage accounting."""

  async def load_usage(self, user_id: str) -> UsageSnapshot | None:
    """Read the user's current tier and usage from durable storage."""

  async def commit_usage(self, user_id: str, completed_count: int, artifacts: Sequence[Artifact]) -> int:
    """Increment usage, append library rows and log settlements in one transaction.

    Returns the new ``operations_used`` value. Does not deduplicate.
    """

  async def settled_artifact_ids(self, artifact_ids: Iterable[str]) -> set[str]:
    """Return the subset of ``artifact_ids`` already present in the settled log."""
