"""At-most-once settlement guard."""

from __future__ import annotations

import asyncio
import datetime

import pytest

from scenecast.jobs.models import Artifact, Batch, GenerationRequest, OperationState
from scenecast.jobs.settlement import Settlement
from scenecast.schema.tiers import SubscriptionTier
from scenecast.services.quota_ledger import QuotaLedger
from tests.fakes import USER_ID, InMemoryLedgerRepository


def _artifact(batch_id: str, index: int) -> Artifact:
  return Artifact(
    artifact_id=f"{batch_id}_scene_{index + 1}",
    batch_id=batch_id,
    operation_index=index,
    public_url=f"https://storage.test/{index}.mp4",
    object_name=f"videos/{index}.mp4",
    size_bytes=10,
    duration_seconds=8.0,
    prompt="prompt",
    dialogue=None,
    aspect_ratio="16:9",
    title=f"Scene {index + 1}",
  )


def _completed_batch(count: int = 2, batch_id: str = "veo_00000001_test") -> Batch:
  operations = [
    OperationState(index=index, handle=f"operations/{index}", request=GenerationRequest(prompt="p", duration_seconds=8), status="completed", progress=100, artifact=_artifact(batch_id, index))
    for index in range(count)
  ]
  return Batch(batch_id=batch_id, user_id=USER_ID, operations=operations, created_at=datetime.datetime(2026, 3, 1, tzinfo=datetime.UTC))


@pytest.mark.anyio
async def test_duplicates_in_one_call_are_charged_once(settlement, ledger_repo) -> None:
  batch = _completed_batch(1)
  artifact = batch.operations[0].artifact

  outcome = await settlement.settle(batch, [artifact, artifact])

  assert outcome.settled == [artifact.artifact_id]
  assert ledger_repo.used[USER_ID] == 1
  assert batch.quota_status == "deducted"


@pytest.mark.anyio
async def test_already_settled_artifacts_are_skipped_without_a_write(settlement, ledger_repo) -> None:
  batch = _completed_batch(2)
  await settlement.settle(batch, batch.unsettled_artifacts())
  artifacts = [op.artifact for op in batch.operations]

  outcome = await settlement.settle(batch, artifacts)

  assert outcome.settled == []
  assert len(ledger_repo.commit_calls) == 1
  assert ledger_repo.used[USER_ID] == 2


@pytest.mark.anyio
async def test_partial_overlap_with_durable_log_commits_only_new_artifacts(settlement, ledger_repo) -> None:
  batch = _completed_batch(2)
  first, second = (op.artifact for op in batch.operations)
  ledger_repo.settled[first.artifact_id] = batch.batch_id

  outcome = await settlement.settle(batch, [first, second])

  assert outcome.already_settled == [first.artifact_id]
  assert outcome.settled == [second.artifact_id]
  assert ledger_repo.commit_calls[-1][2] == [second.artifact_id]
  assert batch.settled_ids == {first.artifact_id, second.artifact_id}


@pytest.mark.anyio
async def test_log_read_failure_leaves_everything_unsettled(settlement, ledger_repo) -> None:
  batch = _completed_batch(1)
  ledger_repo.fail_log_reads = 1

  outcome = await settlement.settle(batch, batch.unsettled_artifacts())

  assert outcome.failed
  assert batch.settled_ids == set()
  assert batch.quota_status == "pending"
  assert ledger_repo.commit_calls == []


@pytest.mark.anyio
async def test_artifact_from_another_batch_is_rejected(settlement) -> None:
  batch = _completed_batch(1)
  with pytest.raises(ValueError):
    await settlement.settle(batch, [_artifact("veo_other", 0)])


@pytest.mark.anyio
async def test_cancellation_mid_commit_still_records_the_settlement() -> None:
  gate = asyncio.Event()
  started = asyncio.Event()

  class SlowRepository(InMemoryLedgerRepository):
    async def commit_usage(self, user_id, completed_count, artifacts):
      started.set()
      await gate.wait()
      return await super().commit_usage(user_id, completed_count, artifacts)

  repo = SlowRepository()
  repo.add_user(USER_ID, SubscriptionTier.PRO)
  batch = _completed_batch(1)
  task = asyncio.create_task(Settlement(QuotaLedger(repo)).settle(batch, batch.unsettled_artifacts()))

  await started.wait()
  task.cancel()
  await asyncio.sleep(0)
  gate.set()

  with pytest.raises(asyncio.CancelledError):
    await task
  assert repo.used[USER_ID] == 1
  assert batch.settled_ids == {batch.operations[0].artifact.artifact_id}
  assert batch.quota_status == "deducted"
