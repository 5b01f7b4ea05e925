"""Read and delete helpers for a user's video library."""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import dataclass, field
from typing import Literal

from scenecast.schema.sql import LibraryArtifact
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

LibrarySort = Literal["createdAt", "title", "size"]
SortOrder = Literal["asc", "desc"]

_SORT_COLUMNS = {
  "createdAt": LibraryArtifact.created_at,
  "title": LibraryArtifact.title,
  "size": LibraryArtifact.size_bytes,
}


@dataclass(frozen=True)
class LibraryStats:
  total_videos: int
  total_size_bytes: int
  batch_count: int
  this_month: int


@dataclass
class LibraryPage:
  items: list[LibraryArtifact]
  total: int
  page: int
  limit: int
  stats: LibraryStats
  batches: dict[str, list[str]] = field(default_factory=dict)

  @property
  def pages(self) -> int:
    return (self.total + self.limit - 1) // self.limit if self.limit else 0


def _month_start(now: datetime.datetime) -> datetime.datetime:
  return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


async def library_stats(session: AsyncSession, user_id: uuid.UUID, *, now: datetime.datetime | None = None) -> LibraryStats:
  current = now or datetime.datetime.now(datetime.UTC)
  stmt = select(
    func.count(LibraryArtifact.artifact_id),
    func.coalesce(func.sum(LibraryArtifact.size_bytes), 0),
    func.count(func.distinct(LibraryArtifact.batch_id)),
    func.count(LibraryArtifact.artifact_id).filter(LibraryArtifact.created_at >= _month_start(current)),
  ).where(LibraryArtifact.user_id == user_id)
  row = (await session.execute(stmt)).one()
  return LibraryStats(total_videos=int(row[0]), total_size_bytes=int(row[1]), batch_count=int(row[2]), this_month=int(row[3]))


async def list_library(session: AsyncSession, user_id: uuid.UUID, *, page: int = 1, limit: int = 20, sort_by: LibrarySort = "createdAt", order: SortOrder = "desc") -> LibraryPage:
  """Return one page of library artifacts with stats and per-batch grouping."""
  page = max(page, 1)
  limit = max(1, min(limit, 100))
  column = _SORT_COLUMNS.get(sort_by, LibraryArtifact.created_at)
  ordering = column.asc() if order == "asc" else column.desc()

  total = int((await session.execute(select(func.count()).select_from(LibraryArtifact).where(LibraryArtifact.user_id == user_id))).scalar_one())
  stmt = select(LibraryArtifact).where(LibraryArtifact.user_id == user_id).order_by(ordering, LibraryArtifact.artifact_id).offset((page - 1) * limit).limit(limit)
  items = list((await session.execute(stmt)).scalars().all())

  batches: dict[str, list[str]] = {}
  for item in items:
    batches.setdefault(item.batch_id, []).append(item.artifact_id)

  stats = await library_stats(session, user_id)
  return LibraryPage(items=items, total=total, page=page, limit=limit, stats=stats, batches=batches)


async def delete_artifact(session: AsyncSession, user_id: uuid.UUID, artifact_id: str) -> bool:
  """Remove one library entry. Usage counters and the settled log are untouched."""
  stmt = delete(LibraryArtifact).where(LibraryArtifact.user_id == user_id, LibraryArtifact.artifact_id == artifact_id).returning(LibraryArtifact.artifact_id)
  removed = (await session.execute(stmt)).scalar_one_or_none()
  await session.commit()
  if removed is not None:
    logger.info("Library entry deleted user=%s artifact=%s", user_id, artifact_id)
  return removed is not None


async def batch_artifact_urls(session: AsyncSession, user_id: uuid.UUID, batch_id: str) -> list[str]:
  """Durable URLs of the caller's settled artifacts for a batch, in scene order."""
  stmt = select(LibraryArtifact.public_url).where(LibraryArtifact.user_id == user_id, LibraryArtifact.batch_id == batch_id).order_by(LibraryArtifact.operation_index)
  return list((await session.execute(stmt)).scalars().all())
