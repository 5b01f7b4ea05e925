"""Batch registry: live batch state for the reconciler and cached snapshots for readers."""

from __future__ import annotations

import datetime
import logging
import time
from collections.abc import Callable

from scenecast.jobs.models import Batch
from scenecast.storage.batch_store import BatchStore

logger = logging.getLogger(__name__)


class BatchRegistry:
  """Owns the batch store and the short-lived read cache."""

  def __init__(self, store: BatchStore, *, cache_seconds: float = 5.0, clock: Callable[[], float] = time.monotonic) -> None:
    self._store = store
    self._cache_seconds = cache_seconds
    self._clock = clock
    self._snapshots: dict[str, tuple[float, Batch]] = {}

  async def register(self, batch: Batch) -> None:
    await self._store.put(batch)
    self._snapshots.pop(batch.batch_id, None)
    logger.info("Registered batch %s user=%s operations=%d", batch.batch_id, batch.user_id, len(batch.operations))

  async def get_live(self, batch_id: str) -> Batch | None:
    """Return the mutable batch. Only the reconciler should call this."""
    return await self._store.get(batch_id)

  async def save(self, batch: Batch) -> None:
    await self._store.put(batch)

  async def snapshot(self, batch_id: str) -> Batch | None:
    """Return a read-only copy, possibly up to ``cache_seconds`` stale."""
    now = self._clock()
    cached = self._snapshots.get(batch_id)
    if cached is not None and cached[0] > now:
      return cached[1]

    batch = await self._store.get(batch_id)
    if batch is None:
      self._snapshots.pop(batch_id, None)
      return None
    copy = batch.snapshot()
    if self._cache_seconds > 0:
      self._snapshots[batch_id] = (now + self._cache_seconds, copy)
    return copy

  async def active(self) -> list[Batch]:
    return await self._store.list_active()

  async def sweep(self, retention_seconds: int, *, now: datetime.datetime | None = None) -> list[str]:
    """Drop finished batches older than the retention window."""
    current = now or datetime.datetime.now(datetime.UTC)
    cutoff = current - datetime.timedelta(seconds=retention_seconds)
    removed = await self._store.sweep(cutoff)
    for batch_id in removed:
      self._snapshots.pop(batch_id, None)
    # Expired cache entries for live batches are dropped lazily here as well.
    clock_now = self._clock()
    for batch_id in [key for key, (expires_at, _) in self._snapshots.items() if expires_at <= clock_now]:
      del self._snapshots[batch_id]
    if removed:
      logger.info("Swept %d batches older than %s", len(removed), cutoff.isoformat())
    return removed
