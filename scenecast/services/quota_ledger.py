"""Admission checks and usage commits for video operations."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from scenecast.jobs.errors import QuotaExceededError, SubscriptionRequiredError
from scenecast.jobs.models import AdmissionResult, Artifact, UsageSnapshot
from scenecast.storage.ledger_repo import LedgerRepository

logger = logging.getLogger(__name__)


def evaluate_admission(usage: UsageSnapshot, requested_count: int) -> AdmissionResult:
  """Compare a request size against the remaining allowance without side effects."""
  if requested_count < 0:
    raise ValueError("requested_count must be zero or positive")
  remaining = usage.allowance - usage.operations_used
  # Over-settled accounts (concurrent batches) report zero, not a negative balance.
  remaining = max(remaining, 0)
  return AdmissionResult(allowed=requested_count <= remaining, remaining=remaining, allowance=usage.allowance, used=usage.operations_used)


class QuotaLedger:
  """Accounting facade over the ledger repository."""

  def __init__(self, repo: LedgerRepository) -> None:
    self._repo = repo

  async def check_admission(self, user_id: str, requested_count: int) -> AdmissionResult:
    """Admit ``requested_count`` operations or raise.

    Usage is re-read from durable storage on every call.
    """
    usage = await self._repo.load_usage(user_id)
    if usage is None or usage.allowance <= 0:
      raise SubscriptionRequiredError()

    result = evaluate_admission(usage, requested_count)
    if not result.allowed:
      logger.info("Admission denied user=%s requested=%d remaining=%d tier=%s", user_id, requested_count, result.remaining, usage.tier.value)
      raise QuotaExceededError(remaining=result.remaining, requested=requested_count, allowance=result.allowance, used=result.used)
    return result

  async def commit_usage(self, user_id: str, completed_count: int, artifacts: Sequence[Artifact]) -> int:
    """Increment usage and append artifacts in one durable transaction."""
    return await self._repo.commit_usage(user_id, completed_count, artifacts)

  async def settled_artifact_ids(self, artifact_ids: Sequence[str]) -> set[str]:
    return await self._repo.settled_artifact_ids(artifact_ids)
