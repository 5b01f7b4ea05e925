"""Domain models for batched video generation."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field, replace
from typing import Any, Literal

from scenecast.schema.tiers import SubscriptionTier

OperationStatus = Literal["pending", "completed", "failed", "expired"]
BatchStatus = Literal["generating", "completed", "timed_out", "failed"]
QuotaStatus = Literal["pending", "deducted", "partial_deducted", "not_deducted"]

TERMINAL_OPERATION_STATUSES: frozenset[str] = frozenset({"completed", "failed", "expired"})
TERMINAL_BATCH_STATUSES: frozenset[str] = frozenset({"completed", "timed_out", "failed"})


@dataclass(frozen=True)
class GenerationRequest:
  """One fully-materialized scene to generate."""

  prompt: str
  duration_seconds: int
  aspect_ratio: str = "16:9"
  audio: bool = True
  title: str | None = None
  dialogue: str | None = None


@dataclass(frozen=True)
class StoredArtifact:
  """Durable reference produced by artifact storage."""

  public_url: str
  object_name: str | None
  size_bytes: int


@dataclass(frozen=True)
class Artifact:
  """A completed operation output ready for settlement."""

  artifact_id: str
  batch_id: str
  operation_index: int
  public_url: str
  object_name: str | None
  size_bytes: int
  duration_seconds: float
  prompt: str
  dialogue: str | None
  aspect_ratio: str
  title: str
  provenance: dict[str, Any] = field(default_factory=dict)

  def to_payload(self) -> dict[str, Any]:
    return {
      "artifactId": self.artifact_id,
      "batchId": self.batch_id,
      "operationIndex": self.operation_index,
      "title": self.title,
      "url": self.public_url,
      "sizeBytes": self.size_bytes,
      "durationSeconds": self.duration_seconds,
      "aspectRatio": self.aspect_ratio,
      "provenance": dict(self.provenance),
    }


@dataclass
class OperationState:
  """Tracking state for one collaborator operation inside a batch."""

  index: int
  handle: str | None
  request: GenerationRequest
  status: OperationStatus = "pending"
  progress: int = 0
  error: str | None = None
  artifact: Artifact | None = None

  def to_payload(self) -> dict[str, Any]:
    return {
      "index": self.index,
      "operationHandle": self.handle,
      "status": self.status,
      "progress": self.progress,
      "error": self.error,
      "artifact": self.artifact.to_payload() if self.artifact else None,
    }


@dataclass
class Batch:
  """Aggregated state for one submitted batch.

  Mutated only by the reconciler tick for this batch. Readers receive snapshots.
  """

  batch_id: str
  user_id: str
  operations: list[OperationState]
  created_at: datetime.datetime
  status: BatchStatus = "generating"
  quota_status: QuotaStatus = "pending"
  settled_ids: set[str] = field(default_factory=set)
  ticks: int = 0
  # Consecutive failed settlement writes, and rounds left to wait before the next retry.
  settlement_failures: int = 0
  settlement_backoff: int = 0
  last_polled_at: datetime.datetime | None = None
  completed_at: datetime.datetime | None = None
  estimated_cost: float = 0.0
  model: str | None = None

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_BATCH_STATUSES

  @property
  def needs_reconcile(self) -> bool:
    """True while polling or settlement work remains for this batch."""
    if not self.is_terminal:
      return True
    return bool(self.unsettled_artifacts())

  @property
  def pending_operations(self) -> list[OperationState]:
    return [op for op in self.operations if op.status == "pending"]

  def unsettled_artifacts(self) -> list[Artifact]:
    """Completed artifacts not yet recorded as settled, in operation order."""
    return [op.artifact for op in self.operations if op.status == "completed" and op.artifact is not None and op.artifact.artifact_id not in self.settled_ids]

  def resolve_quota_status(self) -> QuotaStatus:
    """Quota status implied by the settled set and the aggregate status."""
    if self.unsettled_artifacts():
      return "pending"
    if self.settled_ids:
      return "partial_deducted" if self.status == "timed_out" else "deducted"
    return "not_deducted" if self.is_terminal else "pending"

  def settled_artifacts(self) -> list[Artifact]:
    return [op.artifact for op in self.operations if op.artifact is not None and op.artifact.artifact_id in self.settled_ids]

  def snapshot(self) -> Batch:
    """Return a copy safe to hand to readers."""
    return replace(self, operations=[replace(op) for op in self.operations], settled_ids=set(self.settled_ids))

  def counts(self) -> dict[str, int]:
    totals = {"total": len(self.operations), "pending": 0, "completed": 0, "failed": 0, "expired": 0}
    for op in self.operations:
      totals[op.status] += 1
    totals["settled"] = len(self.settled_ids)
    return totals

  def to_payload(self) -> dict[str, Any]:
    return {
      "batchId": self.batch_id,
      "status": self.status,
      "quotaStatus": self.quota_status,
      "counts": self.counts(),
      "operations": [op.to_payload() for op in self.operations],
      "artifacts": [artifact.to_payload() for artifact in self.settled_artifacts()],
      "estimatedCost": round(self.estimated_cost, 2),
      "createdAt": self.created_at.isoformat(),
      "lastPolledAt": self.last_polled_at.isoformat() if self.last_polled_at else None,
      "completedAt": self.completed_at.isoformat() if self.completed_at else None,
    }


@dataclass(frozen=True)
class AdmissionResult:
  allowed: bool
  remaining: int
  allowance: int
  used: int


@dataclass(frozen=True)
class UsageSnapshot:
  """Durable usage state for one user, read fresh for admission."""

  user_id: str
  tier: SubscriptionTier
  operations_used: int
  period_start: datetime.datetime | None = None

  @property
  def allowance(self) -> int:
    return self.tier.allowance

  @property
  def remaining(self) -> int:
    return max(self.allowance - self.operations_used, 0)
