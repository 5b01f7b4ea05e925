"""In-memory stand-ins for the ledger repository, video vendor and artifact storage."""

from __future__ import annotations

import datetime
from collections.abc import Iterable, Sequence

from scenecast.jobs.errors import ArtifactStorageError, SettlementFailedError
from scenecast.jobs.models import Artifact, GenerationRequest, StoredArtifact, UsageSnapshot
from scenecast.schema.tiers import SubscriptionTier
from scenecast.services.generation_client import OperationResult, VideoPayload

USER_ID = "2b0c5f0e-6a43-4d1c-9a55-6d2f1b7f0c11"

PENDING = OperationResult(status="pending", progress=40)
FAILED = OperationResult(status="failed", progress=100, error="vendor error")
EXPIRED = OperationResult(status="expired", error="operation expired or not found")


def completed(uri: str = "gs://vendor-bucket/out.mp4") -> OperationResult:
  return OperationResult(status="completed", progress=100, video=VideoPayload(uri=uri))


class ManualClock:
  """Callable UTC clock advanced explicitly by tests."""

  def __init__(self, start: datetime.datetime) -> None:
    self.now = start

  def __call__(self) -> datetime.datetime:
    return self.now

  def advance(self, seconds: float) -> None:
    self.now += datetime.timedelta(seconds=seconds)


class InMemoryLedgerRepository:
  """Ledger repository that mirrors the Postgres transaction semantics."""

  def __init__(self) -> None:
    self.tiers: dict[str, SubscriptionTier] = {}
    self.used: dict[str, int] = {}
    self.settled: dict[str, str] = {}
    self.library: list[Artifact] = []
    self.commit_calls: list[tuple[str, int, list[str]]] = []
    self.fail_commits = 0
    self.fail_log_reads = 0

  def add_user(self, user_id: str, tier: SubscriptionTier, used: int = 0) -> None:
    self.tiers[user_id] = tier
    self.used[user_id] = used

  async def load_usage(self, user_id: str) -> UsageSnapshot | None:
    if user_id not in self.tiers:
      return None
    return UsageSnapshot(user_id=user_id, tier=self.tiers[user_id], operations_used=self.used[user_id])

  async def commit_usage(self, user_id: str, completed_count: int, artifacts: Sequence[Artifact]) -> int:
    self.commit_calls.append((user_id, completed_count, [artifact.artifact_id for artifact in artifacts]))
    if self.fail_commits:
      self.fail_commits -= 1
      raise SettlementFailedError("database unavailable")
    if any(artifact.artifact_id in self.settled for artifact in artifacts):
      raise SettlementFailedError("duplicate settled artifact")
    for artifact in artifacts:
      self.settled[artifact.artifact_id] = artifact.batch_id
    self.library.extend(artifacts)
    self.used[user_id] += completed_count
    return self.used[user_id]

  async def settled_artifact_ids(self, artifact_ids: Iterable[str]) -> set[str]:
    if self.fail_log_reads:
      self.fail_log_reads -= 1
      raise SettlementFailedError("database unavailable")
    return {artifact_id for artifact_id in artifact_ids if artifact_id in self.settled}


class FakeVideoCollaborator:
  """Scripted video vendor.

  ``submit_script`` entries are consumed per submit call: a string is returned as the
  handle, an exception instance is raised. Status scripts are consumed per query; the
  last entry repeats.
  """

  def __init__(self) -> None:
    self.submitted: list[GenerationRequest] = []
    self.submit_script: list[str | Exception] = []
    self.status_scripts: dict[str, list[OperationResult | Exception]] = {}
    self.queries: list[str] = []
    self.closed = False

  async def submit(self, request: GenerationRequest) -> str:
    self.submitted.append(request)
    if self.submit_script:
      step = self.submit_script.pop(0)
      if isinstance(step, Exception):
        raise step
      return step
    return f"operations/op-{len(self.submitted)}"

  def script(self, handle: str, *steps: OperationResult | Exception) -> None:
    self.status_scripts[handle] = list(steps)

  async def query_status(self, handle: str) -> OperationResult:
    self.queries.append(handle)
    steps = self.status_scripts.get(handle) or [OperationResult(status="pending")]
    step = steps.pop(0) if len(steps) > 1 else steps[0]
    if isinstance(step, Exception):
      raise step
    return step

  async def aclose(self) -> None:
    self.closed = True


class FakeArtifactStorage:
  def __init__(self) -> None:
    self.stored: dict[str, VideoPayload] = {}
    self.blobs: dict[str, bytes] = {}
    self.fail_for: set[str] = set()
    self.closed = False

  async def store_video(self, artifact_id: str, video: VideoPayload) -> StoredArtifact:
    if artifact_id in self.fail_for:
      self.fail_for.discard(artifact_id)
      raise ArtifactStorageError(f"upload failed for {artifact_id}")
    self.stored[artifact_id] = video
    object_name = f"videos/{artifact_id}_1700000000000.mp4"
    return StoredArtifact(public_url=f"https://storage.test/bucket/{object_name}", object_name=object_name, size_bytes=2048)

  async def store_bytes(self, data: bytes, object_name: str, content_type: str) -> StoredArtifact:
    self.blobs[object_name] = data
    return StoredArtifact(public_url=f"https://storage.test/bucket/{object_name}", object_name=object_name, size_bytes=len(data))

  async def ensure_bucket(self) -> None:
    return None

  async def aclose(self) -> None:
    self.closed = True
