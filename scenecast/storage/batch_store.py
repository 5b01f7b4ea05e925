"""Key-value store interface for in-flight batches."""

from __future__ import annotations

import datetime
from typing import Protocol

from scenecast.jobs.models import Batch


class BatchStore(Protocol):
  """Store contract for batch state keyed by batch id."""

  async def get(self, batch_id: str) -> Batch | None:
    """Return the live batch or ``None``."""

  async def put(self, batch: Batch) -> None:
    """Insert or replace a batch."""

  async def delete(self, batch_id: str) -> None:
    """Remove a batch if present."""

  async def list_active(self) -> list[Batch]:
    """Return batches with polling or settlement work remaining."""

  async def sweep(self, older_than: datetime.datetime) -> list[str]:
    """Remove terminal batches created before ``older_than`` and return their ids."""


class InMemoryBatchStore(BatchStore):
  """Process-local batch store."""

  def __init__(self) -> None:
    self._batches: dict[str, Batch] = {}

  async def get(self, batch_id: str) -> Batch | None:
    return self._batches.get(batch_id)

  async def put(self, batch: Batch) -> None:
    self._batches[batch.batch_id] = batch

  async def delete(self, batch_id: str) -> None:
    self._batches.pop(batch_id, None)

  async def list_active(self) -> list[Batch]:
    return [batch for batch in self._batches.values() if batch.needs_reconcile]

  async def sweep(self, older_than: datetime.datetime) -> list[str]:
    expired = [batch_id for batch_id, batch in self._batches.items() if not batch.needs_reconcile and batch.created_at < older_than]
    for batch_id in expired:
      del self._batches[batch_id]
    return expired

  def __len__(self) -> int:
    return len(self._batches)
