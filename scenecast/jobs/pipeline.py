"""Wiring for the video pipeline: admission, submission, reconciliation."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from functools import lru_cache

from scenecast.config import Settings, get_settings
from scenecast.jobs.models import AdmissionResult, Batch, GenerationRequest
from scenecast.jobs.reconciler import Reconciler, ReconcilerPolicy
from scenecast.jobs.registry import BatchRegistry
from scenecast.jobs.scheduler import ReconcileScheduler
from scenecast.jobs.settlement import Settlement
from scenecast.jobs.submitter import JobSubmitter, SubmissionPolicy
from scenecast.services.artifact_storage import ArtifactStorage, build_artifact_storage
from scenecast.services.generation_client import GenerationCollaborator, VeoVideoClient
from scenecast.services.quota_ledger import QuotaLedger
from scenecast.storage.batch_store import BatchStore, InMemoryBatchStore
from scenecast.storage.ledger_repo import LedgerRepository
from scenecast.storage.postgres_ledger_repo import PostgresLedgerRepository

logger = logging.getLogger(__name__)


@dataclass
class VideoPipeline:
  collaborator: GenerationCollaborator
  ledger: QuotaLedger
  registry: BatchRegistry
  submitter: JobSubmitter
  reconciler: Reconciler
  scheduler: ReconcileScheduler
  storage: ArtifactStorage

  async def submit_batch(self, user_id: str, requests: Sequence[GenerationRequest]) -> tuple[Batch, AdmissionResult]:
    """Admit against fresh usage, then submit. Quota is only committed by settlement."""
    admission = await self.ledger.check_admission(user_id, len(requests))
    batch = await self.submitter.submit(user_id, requests)
    return batch, admission

  async def batch_status(self, batch_id: str) -> Batch | None:
    return await self.registry.snapshot(batch_id)

  async def aclose(self) -> None:
    await self.collaborator.aclose()
    await self.storage.aclose()


def build_pipeline(
  settings: Settings,
  *,
  collaborator: GenerationCollaborator | None = None,
  storage: ArtifactStorage | None = None,
  ledger_repo: LedgerRepository | None = None,
  store: BatchStore | None = None,
) -> VideoPipeline:
  """Assemble the pipeline; collaborators default to the production implementations."""
  collaborator = collaborator or VeoVideoClient(settings)
  storage = storage or build_artifact_storage(settings)
  ledger = QuotaLedger(ledger_repo or PostgresLedgerRepository())
  registry = BatchRegistry(store or InMemoryBatchStore(), cache_seconds=settings.status_cache_seconds)
  submitter = JobSubmitter(collaborator, registry, SubmissionPolicy.from_settings(settings))
  reconciler = Reconciler(collaborator, storage, Settlement(ledger), registry, ReconcilerPolicy.from_settings(settings))
  scheduler = ReconcileScheduler(reconciler, registry, interval_seconds=settings.poll_interval_seconds, sweep_interval_seconds=settings.sweep_interval_seconds, retention_seconds=settings.batch_retention_seconds)
  return VideoPipeline(collaborator=collaborator, ledger=ledger, registry=registry, submitter=submitter, reconciler=reconciler, scheduler=scheduler, storage=storage)


@lru_cache(maxsize=1)
def get_pipeline() -> VideoPipeline:
  """Process-wide pipeline, built on first use."""
  return build_pipeline(get_settings())
