"""Forward generation requests to the video collaborator and register the batch."""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace

from scenecast.config import Settings
from scenecast.jobs.errors import GenerationFailedError, GenerationRejectedError, MalformedOperationError
from scenecast.jobs.models import Batch, GenerationRequest, OperationState
from scenecast.jobs.registry import BatchRegistry
from scenecast.services.generation_client import GenerationCollaborator
from scenecast.utils.ids import generate_batch_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionPolicy:
  min_duration_seconds: int = 1
  max_duration_seconds: int = 60
  default_duration_seconds: int = 8
  spacing_seconds: float = 2.0
  cost_per_operation: float = 1.20
  model: str = "veo-3.0-fast-generate-preview"

  @classmethod
  def from_settings(cls, settings: Settings) -> SubmissionPolicy:
    return cls(
      min_duration_seconds=settings.min_duration_seconds,
      max_duration_seconds=settings.max_duration_seconds,
      default_duration_seconds=settings.default_duration_seconds,
      spacing_seconds=settings.submit_spacing_seconds,
      cost_per_operation=settings.cost_per_operation,
      model=settings.video_model,
    )

  def clamp_duration(self, requested: int | None) -> int:
    if requested is None or requested <= 0:
      requested = self.default_duration_seconds
    return max(self.min_duration_seconds, min(self.max_duration_seconds, int(requested)))


def _utc_now() -> datetime.datetime:
  return datetime.datetime.now(datetime.UTC)


class JobSubmitter:
  """Submits a list of requests as one batch. Performs no accounting."""

  def __init__(
    self,
    collaborator: GenerationCollaborator,
    registry: BatchRegistry,
    policy: SubmissionPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], datetime.datetime] = _utc_now,
    id_factory: Callable[[], str] = generate_batch_id,
  ) -> None:
    self._collaborator = collaborator
    self._registry = registry
    self._policy = policy
    self._sleep = sleep
    self._clock = clock
    self._id_factory = id_factory

  @property
  def policy(self) -> SubmissionPolicy:
    return self._policy

  async def submit(self, user_id: str, requests: Sequence[GenerationRequest]) -> Batch:
    if not requests:
      raise ValueError("at least one generation request is required")

    batch_id = self._id_factory()
    operations: list[OperationState] = []
    logger.info("Submitting batch %s user=%s requests=%d", batch_id, user_id, len(requests))

    for index, request in enumerate(requests):
      # Space out vendor calls to stay under per-minute submit limits.
      if index and self._policy.spacing_seconds > 0:
        await self._sleep(self._policy.spacing_seconds)

      clamped = replace(request, duration_seconds=self._policy.clamp_duration(request.duration_seconds))
      try:
        handle = await self._collaborator.submit(clamped)
      except GenerationRejectedError as exc:
        # Nothing is registered; handles already issued for earlier scenes are abandoned.
        logger.error("Batch %s rejected at scene %d: %s", batch_id, index + 1, exc)
        raise GenerationFailedError(f"Video generation could not be started: {exc}") from exc
      except MalformedOperationError as exc:
        logger.warning("Batch %s scene %d returned no usable handle: %s", batch_id, index + 1, exc)
        operations.append(OperationState(index=index, handle=None, request=clamped, status="failed", progress=100, error=str(exc)))
        continue

      operations.append(OperationState(index=index, handle=handle, request=clamped))

    if all(op.status == "failed" for op in operations):
      logger.error("Batch %s produced no usable operations", batch_id)
      raise GenerationFailedError("Video generation could not be started: no operation handles were returned.")

    batch = Batch(
      batch_id=batch_id,
      user_id=str(user_id),
      operations=operations,
      created_at=self._clock(),
      estimated_cost=len(requests) * self._policy.cost_per_operation,
      model=self._policy.model,
    )
    await self._registry.register(batch)
    return batch
