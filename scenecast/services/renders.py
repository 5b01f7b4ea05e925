"""Render ownership records and the per-user edit history."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from scenecast.schema.sql import RenderEdit
from scenecast.services.render_client import RenderJob
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

FINISHED_RENDER_STATUSES = frozenset({"succeeded", "failed"})


async def record_render(
  session: AsyncSession,
  *,
  user_id: uuid.UUID,
  job: RenderJob,
  template_id: str,
  modifications: dict[str, Any],
  video_count: int,
  batch_id: str | None = None,
) -> RenderEdit:
  """Persist a new render with its owner before the caller sees the id."""
  edit = RenderEdit(
    render_id=job.render_id,
    user_id=user_id,
    template_id=template_id,
    batch_id=batch_id,
    modifications=modifications,
    video_count=video_count,
    status=job.status,
    public_url=job.url,
    error=job.error,
    duration_seconds=job.duration_seconds,
    file_size=job.file_size,
  )
  session.add(edit)
  await session.commit()
  logger.info("Render %s recorded for user %s template=%s", job.render_id, user_id, template_id)
  return edit


async def get_render_edit(session: AsyncSession, render_id: str) -> RenderEdit | None:
  return (await session.execute(select(RenderEdit).where(RenderEdit.render_id == render_id))).scalar_one_or_none()


async def apply_render_status(session: AsyncSession, edit: RenderEdit, job: RenderJob) -> RenderEdit:
  """Copy the latest vendor state onto the stored render."""
  changed = (edit.status, edit.public_url, edit.error) != (job.status, job.url, job.error)
  edit.status = job.status
  edit.public_url = job.url or edit.public_url
  edit.error = job.error
  if job.duration_seconds is not None:
    edit.duration_seconds = job.duration_seconds
  if job.file_size is not None:
    edit.file_size = job.file_size
  if changed:
    await session.commit()
    logger.info("Render %s is now %s", edit.render_id, edit.status)
  return edit


async def list_render_edits(session: AsyncSession, user_id: uuid.UUID, *, page: int = 1, limit: int = 20) -> tuple[list[RenderEdit], int]:
  """Newest renders first."""
  page = max(page, 1)
  limit = max(1, min(limit, 100))
  total = int((await session.execute(select(func.count()).select_from(RenderEdit).where(RenderEdit.user_id == user_id))).scalar_one())
  stmt = select(RenderEdit).where(RenderEdit.user_id == user_id).order_by(RenderEdit.created_at.desc()).offset((page - 1) * limit).limit(limit)
  return list((await session.execute(stmt)).scalars().all()), total


async def delete_render_edit(session: AsyncSession, user_id: uuid.UUID, render_id: str) -> bool:
  stmt = delete(RenderEdit).where(RenderEdit.user_id == user_id, RenderEdit.render_id == render_id).returning(RenderEdit.render_id)
  removed = (await session.execute(stmt)).scalar_one_or_none()
  await session.commit()
  return removed is not None
