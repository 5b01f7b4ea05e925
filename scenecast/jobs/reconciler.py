"""Per-batch reconciliation tick: poll, store, settle, then advance status."""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Callable
from dataclasses import dataclass

from scenecast.config import Settings
from scenecast.jobs.errors import ArtifactStorageError, OperationExpiredError, OperationFailedError, PollingTransientError
from scenecast.jobs.models import Artifact, Batch, OperationState, StoredArtifact
from scenecast.jobs.registry import BatchRegistry
from scenecast.jobs.settlement import Settlement
from scenecast.services.artifact_storage import ArtifactStorage
from scenecast.services.generation_client import GenerationCollaborator, OperationResult
from scenecast.utils.ids import artifact_id_for

logger = logging.getLogger(__name__)


MAX_SETTLEMENT_BACKOFF_ROUNDS = 32


@dataclass(frozen=True)
class ReconcilerPolicy:
  """Tick budget and settlement retry cadence.

  Failed settlement writes are retried every round for ``settlement_grace_ticks``
  consecutive failures, then on an exponential backoff capped at
  ``MAX_SETTLEMENT_BACKOFF_ROUNDS``. Completed work is never dropped.
  """

  max_ticks: int = 60
  settlement_grace_ticks: int = 5
  cost_per_operation: float = 1.20

  def backoff_after(self, failures: int) -> int:
    """Rounds to skip after ``failures`` consecutive failed writes."""
    if failures < self.settlement_grace_ticks:
      return 0
    return min(2 ** (failures - self.settlement_grace_ticks), MAX_SETTLEMENT_BACKOFF_ROUNDS)

  @classmethod
  def from_settings(cls, settings: Settings) -> ReconcilerPolicy:
    return cls(max_ticks=settings.max_poll_ticks, settlement_grace_ticks=settings.settlement_grace_ticks, cost_per_operation=settings.cost_per_operation)


@dataclass(frozen=True)
class _Observation:
  """What one status query produced during a tick."""

  result: OperationResult | None = None
  stored: StoredArtifact | None = None
  transient_error: str | None = None


def _utc_now() -> datetime.datetime:
  return datetime.datetime.now(datetime.UTC)


class Reconciler:
  """Drives one batch forward per tick.

  Status queries for all pending operations run concurrently and are gathered before
  any batch state changes. Settlement for the tick happens before the aggregate status
  is updated.
  """

  def __init__(
    self,
    collaborator: GenerationCollaborator,
    storage: ArtifactStorage,
    settlement: Settlement,
    registry: BatchRegistry,
    policy: ReconcilerPolicy,
    *,
    clock: Callable[[], datetime.datetime] = _utc_now,
  ) -> None:
    self._collaborator = collaborator
    self._storage = storage
    self._settlement = settlement
    self._registry = registry
    self._policy = policy
    self._clock = clock

  async def tick(self, batch_id: str) -> Batch | None:
    batch = await self._registry.get_live(batch_id)
    if batch is None:
      return None
    if not batch.needs_reconcile:
      return batch

    # Terminal batches only come back here to finish settlement.
    if batch.is_terminal:
      await self._retry_settlement(batch)
      await self._registry.save(batch)
      return batch

    batch.ticks += 1
    batch.last_polled_at = self._clock()

    # Query every pending operation concurrently; nothing changes until all have answered.
    pending = batch.pending_operations
    observations = await asyncio.gather(*(self._observe(batch, op) for op in pending), return_exceptions=True)

    for op, observation in zip(pending, observations, strict=True):
      if isinstance(observation, BaseException):
        if not isinstance(observation, Exception):
          raise observation
        logger.error("Unexpected error polling batch=%s scene=%d", batch.batch_id, op.index + 1, exc_info=observation)
        op.error = f"status check failed: {type(observation).__name__}"
        continue
      self._apply(batch, op, observation)

    # Settle everything completed so far in one write, before the aggregate status moves.
    budget_exhausted = batch.ticks >= self._policy.max_ticks
    timing_out = budget_exhausted and bool(batch.pending_operations)
    outcome = await self._settlement.settle(batch, batch.unsettled_artifacts(), timed_out=timing_out)
    self._record_settlement(batch, failed=outcome.failed)

    self._advance_status(batch, budget_exhausted)
    batch.quota_status = batch.resolve_quota_status()

    counts = batch.counts()
    logger.info("Tick %d/%d batch=%s status=%s completed=%d pending=%d failed=%d expired=%d settled=%d", batch.ticks, self._policy.max_ticks, batch.batch_id, batch.status, counts["completed"], counts["pending"], counts["failed"], counts["expired"], counts["settled"])
    await self._registry.save(batch)
    return batch

  async def _observe(self, batch: Batch, op: OperationState) -> _Observation:
    if op.handle is None:
      return _Observation(result=OperationResult(status="failed", progress=100, error="missing operation handle"))
    try:
      result = await self._collaborator.query_status(op.handle)
    except PollingTransientError as exc:
      logger.warning("Transient status error batch=%s scene=%d: %s", batch.batch_id, op.index + 1, exc)
      return _Observation(transient_error=str(exc))
    except OperationExpiredError as exc:
      return _Observation(result=OperationResult(status="expired", error=str(exc)))
    except OperationFailedError as exc:
      return _Observation(result=OperationResult(status="failed", progress=100, error=str(exc) or "generation failed"))

    if result.status != "completed":
      return _Observation(result=result)

    if result.video is None:
      return _Observation(result=OperationResult(status="failed", progress=100, error="completed operation carried no video"))

    # Not completed for settlement purposes until a durable reference exists.
    try:
      stored = await self._storage.store_video(artifact_id_for(batch.batch_id, op.index), result.video)
    except ArtifactStorageError as exc:
      logger.warning("Artifact storage failed batch=%s scene=%d: %s", batch.batch_id, op.index + 1, exc)
      return _Observation(transient_error=str(exc))
    return _Observation(result=result, stored=stored)

  def _apply(self, batch: Batch, op: OperationState, observation: _Observation) -> None:
    # Transient errors leave the operation pending for the next tick.
    if observation.transient_error is not None:
      op.error = observation.transient_error
      return

    result = observation.result
    if result is None:
      return
    # Only a stored video moves an operation to completed; failed and expired are final.
    if result.status == "pending":
      op.progress = result.progress
      op.error = None
    elif result.status == "failed":
      op.status = "failed"
      op.progress = 100
      op.error = result.error or "generation failed"
      logger.warning("OperationFailed batch=%s scene=%d: %s", batch.batch_id, op.index + 1, op.error)
    elif result.status == "expired":
      op.status = "expired"
      op.error = "Operation expired at the video service; resubmit this scene."
      logger.warning("OperationExpired batch=%s scene=%d", batch.batch_id, op.index + 1)
    elif result.status == "completed" and observation.stored is not None:
      op.status = "completed"
      op.progress = 100
      op.error = None
      op.artifact = self._build_artifact(batch, op, observation.stored)

  def _build_artifact(self, batch: Batch, op: OperationState, stored: StoredArtifact) -> Artifact:
    request = op.request
    return Artifact(
      artifact_id=artifact_id_for(batch.batch_id, op.index),
      batch_id=batch.batch_id,
      operation_index=op.index,
      public_url=stored.public_url,
      object_name=stored.object_name,
      size_bytes=stored.size_bytes,
      duration_seconds=float(request.duration_seconds),
      prompt=request.prompt,
      dialogue=request.dialogue,
      aspect_ratio=request.aspect_ratio,
      title=request.title or f"Scene {op.index + 1}",
      provenance={
        "model": batch.model,
        "operationHandle": op.handle,
        "estimatedCost": self._policy.cost_per_operation,
        "completedAt": self._clock().isoformat(),
        "source": "scenecast",
      },
    )

  def _advance_status(self, batch: Batch, budget_exhausted: bool) -> None:
    """Move the aggregate status from operation states alone.

    Unsettled artifacts do not hold a batch open; they keep it active for settlement.
    """
    if not batch.pending_operations:
      batch.status = "completed"
      batch.completed_at = self._clock()
      logger.info("Batch %s completed settled=%d of %d", batch.batch_id, len(batch.settled_ids), len(batch.operations))
      return

    if not budget_exhausted:
      return

    batch.status = "timed_out"
    batch.completed_at = self._clock()
    for op in batch.pending_operations:
      op.status = "failed"
      op.error = "Timed out waiting for the video service."
    logger.warning("Batch %s timed out after %d ticks settled=%d unsettled=%d", batch.batch_id, batch.ticks, len(batch.settled_ids), len(batch.unsettled_artifacts()))

  def _record_settlement(self, batch: Batch, *, failed: bool) -> None:
    if not failed:
      batch.settlement_failures = 0
      batch.settlement_backoff = 0
      return
    batch.settlement_failures += 1
    batch.settlement_backoff = self._policy.backoff_after(batch.settlement_failures)
    if batch.settlement_backoff:
      logger.error("Settlement for batch %s failed %d times in a row; next attempt in %d rounds", batch.batch_id, batch.settlement_failures, batch.settlement_backoff + 1)

  async def _retry_settlement(self, batch: Batch) -> None:
    """Settle what a terminal batch still owes, honouring the retry backoff."""
    if batch.settlement_backoff:
      batch.settlement_backoff -= 1
      return

    outcome = await self._settlement.settle(batch, batch.unsettled_artifacts(), timed_out=batch.status == "timed_out")
    self._record_settlement(batch, failed=outcome.failed)
    batch.quota_status = batch.resolve_quota_status()
    if not outcome.failed:
      logger.info("Deferred settlement finished batch=%s quota=%s", batch.batch_id, batch.quota_status)
