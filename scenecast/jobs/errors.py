"""Error taxonomy for the generation pipeline.

Admission and submission errors are raised synchronously to HTTP callers.
Everything after a batch is registered is recorded on the batch instead of raised.
"""

from __future__ import annotations


class PipelineError(Exception):
  """Base class for pipeline failures surfaced to callers."""

  status_code = 500

  def detail(self) -> dict[str, object]:
    return {"error": type(self).__name__.removesuffix("Error"), "message": str(self)}


class SubscriptionRequiredError(PipelineError):
  """Admission denied because the tier grants no allowance."""

  status_code = 402

  def __init__(self, message: str = "An active subscription is required to generate videos.") -> None:
    super().__init__(message)


class QuotaExceededError(PipelineError):
  """Admission denied because fewer operations remain than were requested."""

  status_code = 429

  def __init__(self, *, remaining: int, requested: int, allowance: int, used: int) -> None:
    self.remaining = remaining
    self.requested = requested
    self.allowance = allowance
    self.used = used
    super().__init__(f"Requested {requested} operations but only {remaining} remain this period.")

  def detail(self) -> dict[str, object]:
    payload = super().detail()
    payload.update({"remaining": self.remaining, "requested": self.requested, "allowance": self.allowance, "used": self.used})
    return payload


class GenerationFailedError(PipelineError):
  """Submission to the generation collaborator failed outright; no quota was consumed."""

  status_code = 500

  def detail(self) -> dict[str, object]:
    payload = super().detail()
    payload["quotaDeducted"] = False
    return payload


class InsufficientCreditsError(PipelineError):
  """Image generation requested without an available credit."""

  status_code = 402

  def __init__(self, available: int = 0) -> None:
    self.available = available
    super().__init__("No credits available. Purchase a credit package to continue.")

  def detail(self) -> dict[str, object]:
    payload = super().detail()
    payload["creditsAvailable"] = self.available
    return payload


class GenerationRejectedError(Exception):
  """Collaborator refused the whole submit call (auth, billing, validation)."""


class MalformedOperationError(Exception):
  """Collaborator accepted the call but returned no usable operation handle."""


class OperationFailedError(Exception):
  """Collaborator reports that one operation failed."""


class OperationExpiredError(Exception):
  """Collaborator no longer knows the operation handle."""


class PollingTransientError(Exception):
  """A single status query failed; the operation stays pending."""


class SettlementFailedError(Exception):
  """Durable write of usage and library records failed; retried next tick."""


class ArtifactStorageError(Exception):
  """Storing a completed artifact durably failed; the operation stays pending."""


class CollaboratorUnavailableError(Exception):
  """A synchronous vendor call (image or render) failed."""
