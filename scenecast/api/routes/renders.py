from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from scenecast.api.deps import get_render_client
from scenecast.api.models import RenderCreateRequest, RenderEditListResponse, RenderEditModel, RenderResponse
from scenecast.core.database import get_db
from scenecast.core.security import get_current_user
from scenecast.schema.sql import RenderEdit, User
from scenecast.services.library import batch_artifact_urls
from scenecast.services.render_client import CreatomateRenderClient, build_modifications
from scenecast.services.renders import FINISHED_RENDER_STATUSES, apply_render_status, delete_render_edit, get_render_edit, list_render_edits, record_render
from scenecast.services.templates import resolve_render_template

router = APIRouter()
logger = logging.getLogger(__name__)


def _render_response(edit: RenderEdit) -> RenderResponse:
  return RenderResponse(
    render_id=edit.render_id,
    status=edit.status,
    url=edit.public_url,
    error=edit.error,
    video_count=edit.video_count,
    duration_seconds=edit.duration_seconds,
    file_size=edit.file_size,
  )


def _edit_model(edit: RenderEdit) -> RenderEditModel:
  return RenderEditModel(
    render_id=edit.render_id,
    template_id=edit.template_id,
    batch_id=edit.batch_id,
    status=edit.status,
    url=edit.public_url,
    error=edit.error,
    video_count=edit.video_count,
    modifications=dict(edit.modifications or {}),
    duration_seconds=edit.duration_seconds,
    file_size=edit.file_size,
    created_at=edit.created_at,
  )


@router.post("", response_model=RenderResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_render(
  request: RenderCreateRequest,
  current_user: User = Depends(get_current_user),  # noqa: B008
  db: AsyncSession = Depends(get_db),  # noqa: B008
  client: CreatomateRenderClient = Depends(get_render_client),  # noqa: B008
) -> RenderResponse:
  """Feed settled scene videos into a render template.

  Videos come from ``videoUrls`` or, when ``batchId`` is given, from the caller's
  settled library entries for that batch in scene order. Catalogue template ids are
  resolved to their vendor template; the render is recorded against the caller.
  """
  video_urls = list(request.video_urls)
  if request.batch_id:
    video_urls = await batch_artifact_urls(db, current_user.id, request.batch_id)
    if not video_urls:
      raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No settled videos found for batch")
  if not video_urls:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one video URL is required")

  try:
    modifications = build_modifications(video_urls, request.element_names, request.modifications)
  except ValueError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

  vendor_template_id = await resolve_render_template(db, request.template_id)
  job = await client.create_render(vendor_template_id, modifications)
  edit = await record_render(db, user_id=current_user.id, job=job, template_id=request.template_id, modifications=modifications, video_count=len(video_urls), batch_id=request.batch_id)
  logger.info("Render %s requested by user %s with %d videos", job.render_id, current_user.id, len(video_urls))
  return _render_response(edit)


@router.get("", response_model=RenderEditListResponse)
async def get_render_history(
  page: int = Query(1, ge=1),
  limit: int = Query(20, ge=1, le=100),
  current_user: User = Depends(get_current_user),  # noqa: B008
  db: AsyncSession = Depends(get_db),  # noqa: B008
) -> RenderEditListResponse:
  items, total = await list_render_edits(db, current_user.id, page=page, limit=limit)
  return RenderEditListResponse(items=[_edit_model(item) for item in items], page=page, limit=limit, total=total)


@router.get("/{render_id}", response_model=RenderResponse)
async def get_render(
  render_id: str,
  current_user: User = Depends(get_current_user),  # noqa: B008
  db: AsyncSession = Depends(get_db),  # noqa: B008
  client: CreatomateRenderClient = Depends(get_render_client),  # noqa: B008
) -> RenderResponse:
  """Current render state for the render's owner; finished renders are served from storage."""
  edit = await get_render_edit(db, render_id)
  if edit is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Render not found")
  if edit.user_id != current_user.id:
    logger.warning("User %s denied access to render %s", current_user.id, render_id)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Render belongs to another user")
  if edit.status not in FINISHED_RENDER_STATUSES:
    job = await client.get_render(render_id)
    edit = await apply_render_status(db, edit, job)
  return _render_response(edit)


@router.delete("/{render_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_render(render_id: str, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> None:  # noqa: B008
  """Remove a render from the caller's history; the vendor file is untouched."""
  if not await delete_render_edit(db, current_user.id, render_id):
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Render not found")
