from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from scenecast.api.models import PromptSetRequest, PromptSetResponse, ScenePromptModel, SceneRequest, SubmitBatchRequest
from scenecast.core.database import get_db
from scenecast.core.security import get_current_user
from scenecast.schema.sql import User
from scenecast.services.analysis import get_analysis
from scenecast.services.prompts import SceneDraft, build_prompt_set

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=PromptSetResponse)
async def create_prompt_set(request: PromptSetRequest, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> PromptSetResponse:  # noqa: B008
  """Expand scene drafts into full prompts that reuse the caller's analyses verbatim.

  ``batchRequest`` in the response can be posted to ``/v1/batches`` unchanged.
  """
  if not request.scenes:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one scene is required")

  character = None
  if request.character_analysis_id:
    record = await get_analysis(db, current_user.id, request.character_analysis_id, kind="character")
    if record is None:
      raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Character analysis not found")
    character = record.analysis

  product = None
  if request.product_analysis_id:
    record = await get_analysis(db, current_user.id, request.product_analysis_id, kind="product")
    if record is None:
      raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product analysis not found")
    product = record.analysis

  drafts = [SceneDraft(scene=scene.scene, dialogue=scene.dialogue, title=scene.title) for scene in request.scenes]
  prompt_set = build_prompt_set(drafts, duration=request.scene_duration, language=request.spoken_language, character=character, product=product)
  logger.info("Prompt set %s built for user %s scenes=%d", prompt_set.prompt_set_id, current_user.id, len(prompt_set.prompts))

  return PromptSetResponse(
    prompt_set_id=prompt_set.prompt_set_id,
    prompts=[ScenePromptModel.model_validate(prompt, from_attributes=True) for prompt in prompt_set.prompts],
    batch_request=SubmitBatchRequest(scenes=[SceneRequest(**prompt.to_scene_request()) for prompt in prompt_set.prompts]),
    metadata=prompt_set.metadata,
  )
