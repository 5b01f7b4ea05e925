"""Shared fixtures for the Scenecast test suite."""

from __future__ import annotations

import datetime
import os

os.environ.setdefault("SCENECAST_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("SCENECAST_TASK_SECRET", "test-task-secret")

from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from scenecast.jobs.registry import BatchRegistry  # noqa: E402
from scenecast.jobs.settlement import Settlement  # noqa: E402
from scenecast.jobs.submitter import JobSubmitter, SubmissionPolicy  # noqa: E402
from scenecast.schema.tiers import SubscriptionTier  # noqa: E402
from scenecast.services.quota_ledger import QuotaLedger  # noqa: E402
from scenecast.storage.batch_store import InMemoryBatchStore  # noqa: E402
from tests.fakes import USER_ID, FakeArtifactStorage, FakeVideoCollaborator, InMemoryLedgerRepository, ManualClock  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def ledger_repo() -> InMemoryLedgerRepository:
  repo = InMemoryLedgerRepository()
  repo.add_user(USER_ID, SubscriptionTier.PRO)
  return repo


@pytest.fixture
def ledger(ledger_repo) -> QuotaLedger:
  return QuotaLedger(ledger_repo)


@pytest.fixture
def collaborator() -> FakeVideoCollaborator:
  return FakeVideoCollaborator()


@pytest.fixture
def storage() -> FakeArtifactStorage:
  return FakeArtifactStorage()


@pytest.fixture
def clock() -> ManualClock:
  return ManualClock(datetime.datetime(2026, 3, 1, 12, 0, tzinfo=datetime.UTC))


@pytest.fixture
def registry() -> BatchRegistry:
  return BatchRegistry(InMemoryBatchStore(), cache_seconds=0)


@pytest.fixture
def settlement(ledger) -> Settlement:
  return Settlement(ledger)


@pytest.fixture
def submitter(collaborator, registry, clock) -> JobSubmitter:
  policy = SubmissionPolicy(spacing_seconds=2.0)
  return JobSubmitter(collaborator, registry, policy, sleep=AsyncMock(), clock=clock, id_factory=lambda: "veo_12345678_abcd")


@pytest.fixture
def mock_db_session():
  session = AsyncMock()
  result = MagicMock()
  result.scalar_one_or_none.return_value = None
  result.scalar_one.return_value = 0
  session.execute.return_value = result
  session.add = MagicMock()
  return session
