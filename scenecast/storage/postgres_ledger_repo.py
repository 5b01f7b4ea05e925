"""Postgres-backed ledger repository using SQLAlchemy."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scenecast.core.database import require_session_factory
from scenecast.jobs.errors import SettlementFailedError
from scenecast.jobs.models import Artifact, UsageSnapshot
from scenecast.schema.sql import LibraryArtifact, SettledArtifact, User
from scenecast.storage.ledger_repo import LedgerRepository

logger = logging.getLogger(__name__)


def _library_row(user_id: uuid.UUID, artifact: Artifact) -> LibraryArtifact:
  return LibraryArtifact(
    artifact_id=artifact.artifact_id,
    user_id=user_id,
    batch_id=artifact.batch_id,
    operation_index=artifact.operation_index,
    title=artifact.title,
    public_url=artifact.public_url,
    object_name=artifact.object_name,
    size_bytes=artifact.size_bytes,
    duration_seconds=artifact.duration_seconds,
    prompt=artifact.prompt,
    dialogue=artifact.dialogue,
    aspect_ratio=artifact.aspect_ratio,
    provenance=dict(artifact.provenance),
  )


class PostgresLedgerRepository(LedgerRepository):
  """Persist usage increments and settled artifacts to Postgres."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or require_session_factory()

  async def load_usage(self, user_id: str) -> UsageSnapshot | None:
    async with self._session_factory() as session:
      # Always hit the database; another batch may have settled since the last read.
      stmt = select(User.id, User.subscription_tier, User.operations_used, User.period_start).where(User.id == uuid.UUID(str(user_id)))
      row = (await session.execute(stmt)).first()
      if row is None:
        return None
      return UsageSnapshot(user_id=str(row.id), tier=row.subscription_tier, operations_used=int(row.operations_used), period_start=row.period_start)

  async def commit_usage(self, user_id: str, completed_count: int, artifacts: Sequence[Artifact]) -> int:
    if completed_count <= 0:
      raise ValueError("completed_count must be positive")
    user_uuid = uuid.UUID(str(user_id))
    try:
      async with self._session_factory() as session:
        async with session.begin():
          # Settled log first; the primary key rejects an artifact settled by another process.
          session.add_all([SettledArtifact(artifact_id=artifact.artifact_id, batch_id=artifact.batch_id, user_id=user_uuid) for artifact in artifacts])
          session.add_all([_library_row(user_uuid, artifact) for artifact in artifacts])
          await session.flush()
          # Atomic increment; concurrent batches for the same user never lose updates.
          stmt = update(User).where(User.id == user_uuid).values(operations_used=User.operations_used + completed_count).returning(User.operations_used)
          new_used = (await session.execute(stmt)).scalar_one_or_none()
          if new_used is None:
            raise SettlementFailedError(f"user {user_id} not found during settlement")
    except SQLAlchemyError as exc:
      raise SettlementFailedError(f"usage commit failed for user {user_id}: {exc}") from exc

    logger.debug("Committed usage user=%s count=%d new_used=%s", user_id, completed_count, new_used)
    return int(new_used)

  async def settled_artifact_ids(self, artifact_ids: Iterable[str]) -> set[str]:
    candidates = list(artifact_ids)
    if not candidates:
      return set()
    try:
      async with self._session_factory() as session:
        stmt = select(SettledArtifact.artifact_id).where(SettledArtifact.artifact_id.in_(candidates))
        result = await session.execute(stmt)
        return set(result.scalars().all())
    except SQLAlchemyError as exc:
      raise SettlementFailedError(f"settled log read failed: {exc}") from exc
