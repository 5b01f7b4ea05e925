from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from scenecast.api.models import LibraryItem, LibraryResponse, LibraryStatsModel
from scenecast.core.database import get_db
from scenecast.core.security import get_current_user
from scenecast.schema.sql import LibraryArtifact, User
from scenecast.services import library

router = APIRouter()
logger = logging.getLogger(__name__)


def _library_item(artifact: LibraryArtifact) -> LibraryItem:
  return LibraryItem(
    artifact_id=artifact.artifact_id,
    batch_id=artifact.batch_id,
    operation_index=artifact.operation_index,
    title=artifact.title,
    url=artifact.public_url,
    size_bytes=artifact.size_bytes,
    duration_seconds=artifact.duration_seconds,
    prompt=artifact.prompt,
    dialogue=artifact.dialogue,
    aspect_ratio=artifact.aspect_ratio,
    provenance=artifact.provenance or {},
    created_at=artifact.created_at,
  )


@router.get("/library", response_model=LibraryResponse)
async def get_library(
  page: int = Query(1, ge=1),
  limit: int = Query(20, ge=1, le=100),
  sort_by: Literal["createdAt", "title", "size"] = Query("createdAt", alias="sortBy"),
  order: Literal["asc", "desc"] = Query("desc"),
  current_user: User = Depends(get_current_user),  # noqa: B008
  db: AsyncSession = Depends(get_db),  # noqa: B008
) -> LibraryResponse:
  """List the caller's settled videos with library stats."""
  result = await library.list_library(db, current_user.id, page=page, limit=limit, sort_by=sort_by, order=order)
  stats = LibraryStatsModel(total_videos=result.stats.total_videos, total_size_bytes=result.stats.total_size_bytes, batch_count=result.stats.batch_count, this_month=result.stats.this_month)
  return LibraryResponse(items=[_library_item(item) for item in result.items], batches=result.batches, stats=stats, page=result.page, limit=result.limit, total=result.total, pages=result.pages)


@router.delete("/{artifact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video(artifact_id: str, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> None:  # noqa: B008
  """Remove a video from the library. Already-deducted usage is not refunded."""
  if not await library.delete_artifact(db, current_user.id, artifact_id):
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")
