from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from scenecast.api.deps import get_video_pipeline
from scenecast.api.models import BatchStatusResponse, SubmitBatchRequest, SubmitBatchResponse
from scenecast.core.security import get_current_user
from scenecast.jobs.models import GenerationRequest
from scenecast.jobs.pipeline import VideoPipeline
from scenecast.schema.sql import User

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=SubmitBatchResponse, status_code=status.HTTP_202_ACCEPTED)
async def submit_batch(
  request: SubmitBatchRequest,
  current_user: User = Depends(get_current_user),  # noqa: B008
  pipeline: VideoPipeline = Depends(get_video_pipeline),  # noqa: B008
) -> SubmitBatchResponse:
  """Admit and submit a batch of scenes. Quota is deducted only when scenes are settled."""
  requests = [
    GenerationRequest(prompt=scene.prompt, duration_seconds=scene.duration_seconds, aspect_ratio=scene.aspect_ratio, audio=scene.audio, title=scene.title, dialogue=scene.dialogue)
    for scene in request.scenes
  ]
  # Admission errors (402/429) and GenerationFailedError (500) surface through the pipeline handler.
  batch, admission = await pipeline.submit_batch(str(current_user.id), requests)
  remaining = max(admission.remaining - len(requests), 0)
  logger.info("Batch %s accepted for user %s (%d scenes)", batch.batch_id, current_user.id, len(requests))
  return SubmitBatchResponse(
    batch_id=batch.batch_id,
    status=batch.status,
    quota_status=batch.quota_status,
    operation_handles=[op.handle for op in batch.operations],
    estimated_cost=batch.estimated_cost,
    remaining_after_completion=remaining,
  )


@router.get("/{batch_id}", response_model=BatchStatusResponse)
async def get_batch_status(
  batch_id: str,
  current_user: User = Depends(get_current_user),  # noqa: B008
  pipeline: VideoPipeline = Depends(get_video_pipeline),  # noqa: B008
) -> BatchStatusResponse:
  """Return a cached snapshot of the batch; never triggers vendor polling."""
  batch = await pipeline.batch_status(batch_id)
  if batch is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")
  if batch.user_id != str(current_user.id):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Batch belongs to another user")
  return BatchStatusResponse.model_validate(batch.to_payload())
