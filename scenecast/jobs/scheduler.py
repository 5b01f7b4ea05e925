"""Single cooperative scheduler that fans reconcile ticks out to every active batch."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable

from scenecast.jobs.reconciler import Reconciler
from scenecast.jobs.registry import BatchRegistry

logger = logging.getLogger(__name__)


class ReconcileScheduler:
  """Runs one tick for every active batch per interval, plus a periodic retention sweep."""

  def __init__(
    self,
    reconciler: Reconciler,
    registry: BatchRegistry,
    *,
    interval_seconds: float,
    sweep_interval_seconds: float,
    retention_seconds: int,
    clock: Callable[[], float] = time.monotonic,
  ) -> None:
    self._reconciler = reconciler
    self._registry = registry
    self._interval = interval_seconds
    self._sweep_interval = sweep_interval_seconds
    self._retention_seconds = retention_seconds
    self._clock = clock
    self._last_sweep = clock()
    self._stop = asyncio.Event()
    # Rounds never overlap: a batch is mutated by at most one tick at a time.
    self._round_lock = asyncio.Lock()
    self._task: asyncio.Task[None] | None = None

  @property
  def running(self) -> bool:
    return self._task is not None and not self._task.done()

  def start(self) -> None:
    if self.running:
      return
    self._stop.clear()
    self._task = asyncio.create_task(self._run(), name="scenecast-reconcile-scheduler")
    logger.info("Reconcile scheduler started interval=%.1fs", self._interval)

  async def stop(self, timeout: float = 10.0) -> None:
    """Stop after the current round; cancel if it does not finish in time.

    Settlement writes in flight are shielded and complete even on cancellation.
    """
    if self._task is None:
      return
    self._stop.set()
    try:
      await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
    except TimeoutError:
      logger.warning("Reconcile scheduler did not stop within %.1fs; cancelling", timeout)
      self._task.cancel()
      with contextlib.suppress(asyncio.CancelledError):
        await self._task
    self._task = None
    logger.info("Reconcile scheduler stopped")

  async def run_once(self) -> int:
    """Tick every active batch concurrently and sweep when due. Returns batches ticked.

    A call made while another round is in flight waits for it to finish, then runs
    its own round against the updated batch states.
    """
    async with self._round_lock:
      batches = await self._registry.active()
      if batches:
        await asyncio.gather(*(self._tick_safely(batch.batch_id) for batch in batches))

      now = self._clock()
      if now - self._last_sweep >= self._sweep_interval:
        self._last_sweep = now
        await self._registry.sweep(self._retention_seconds)
      return len(batches)

  async def _tick_safely(self, batch_id: str) -> None:
    try:
      await self._reconciler.tick(batch_id)
    except Exception:
      # One broken batch must not stall the others; it is retried next round.
      logger.exception("Reconcile tick crashed batch=%s", batch_id)

  async def _run(self) -> None:
    while not self._stop.is_set():
      try:
        await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
      except TimeoutError:
        pass
      else:
        break
      try:
        await self.run_once()
      except Exception:
        logger.exception("Reconcile round failed; retrying next interval")
