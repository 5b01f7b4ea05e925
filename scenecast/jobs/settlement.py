"""At-most-once settlement of completed artifacts against the quota ledger."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from scenecast.jobs.errors import SettlementFailedError
from scenecast.jobs.models import Artifact, Batch
from scenecast.services.quota_ledger import QuotaLedger

logger = logging.getLogger(__name__)


@dataclass
class SettlementOutcome:
  settled: list[str] = field(default_factory=list)
  already_settled: list[str] = field(default_factory=list)
  operations_used: int | None = None
  failed: bool = False


class Settlement:
  """Bridge between the reconciler and the quota ledger."""

  def __init__(self, ledger: QuotaLedger) -> None:
    self._ledger = ledger

  async def settle(self, batch: Batch, artifacts: Sequence[Artifact], *, timed_out: bool = False) -> SettlementOutcome:
    """Commit usage for artifacts not yet settled, in one durable write.

    Artifacts already in the batch's settled set or in the durable settled log are
    skipped. On failure nothing is marked settled; the next tick retries.
    """
    outcome = SettlementOutcome()

    # Drop anything the batch already settled, and duplicates within this call.
    candidates: list[Artifact] = []
    seen: set[str] = set()
    for artifact in artifacts:
      if artifact.batch_id != batch.batch_id:
        raise ValueError(f"artifact {artifact.artifact_id} does not belong to batch {batch.batch_id}")
      if artifact.artifact_id in batch.settled_ids or artifact.artifact_id in seen:
        continue
      seen.add(artifact.artifact_id)
      candidates.append(artifact)

    if not candidates:
      return outcome

    try:
      # The durable log survives restarts; the in-memory set does not.
      logged = await self._ledger.settled_artifact_ids([artifact.artifact_id for artifact in candidates])
    except SettlementFailedError:
      logger.error("SettlementFailed batch=%s stage=log-read artifacts=%d", batch.batch_id, len(candidates), exc_info=True)
      batch.quota_status = "pending"
      outcome.failed = True
      return outcome

    # Artifacts found in the log were committed by an earlier run; adopt them without charging again.
    if logged:
      logger.warning("Batch %s found %d artifacts already in the settled log: %s", batch.batch_id, len(logged), sorted(logged))
      batch.settled_ids.update(logged)
      outcome.already_settled = sorted(logged)
      candidates = [artifact for artifact in candidates if artifact.artifact_id not in logged]
      if not candidates:
        batch.quota_status = "partial_deducted" if timed_out else "deducted"
        return outcome

    # One transaction: settled log rows, library rows and the usage increment.
    try:
      new_used = await self._commit(batch, candidates)
    except SettlementFailedError:
      logger.error("SettlementFailed batch=%s user=%s artifacts=%d", batch.batch_id, batch.user_id, len(candidates), exc_info=True)
      batch.quota_status = "pending"
      outcome.failed = True
      return outcome

    # Only a committed write marks artifacts settled.
    self._mark_settled(batch, candidates, timed_out=timed_out)
    outcome.settled = [artifact.artifact_id for artifact in candidates]
    outcome.operations_used = new_used
    logger.info("Settled batch=%s user=%s artifacts=%d operations_used=%d", batch.batch_id, batch.user_id, len(candidates), new_used)
    return outcome

  async def _commit(self, batch: Batch, candidates: list[Artifact]) -> int:
    commit = asyncio.ensure_future(self._ledger.commit_usage(batch.user_id, len(candidates), candidates))
    try:
      return await asyncio.shield(commit)
    except asyncio.CancelledError:
      # Shutdown while the write is in flight: let it land, record it, then stop.
      logger.warning("Settlement for batch %s interrupted by cancellation; waiting for commit", batch.batch_id)
      try:
        await commit
      except SettlementFailedError:
        logger.error("SettlementFailed batch=%s during shutdown", batch.batch_id, exc_info=True)
      else:
        self._mark_settled(batch, candidates, timed_out=False)
      raise

  @staticmethod
  def _mark_settled(batch: Batch, candidates: list[Artifact], *, timed_out: bool) -> None:
    batch.settled_ids.update(artifact.artifact_id for artifact in candidates)
    batch.quota_status = "partial_deducted" if timed_out else "deducted"
