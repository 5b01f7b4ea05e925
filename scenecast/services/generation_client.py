"""Video generation collaborator backed by Veo on Vertex AI (google-genai SDK)."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Literal, Protocol

import httpx
from google.auth.exceptions import GoogleAuthError
from pydantic.warnings import ArbitraryTypeWarning
from scenecast.config import Settings
from scenecast.jobs.errors import GenerationRejectedError, MalformedOperationError, PollingTransientError
from scenecast.jobs.models import GenerationRequest

with warnings.catch_warnings():
  warnings.filterwarnings("ignore", message=r"<built-in function any> is not a Python type.*", category=ArbitraryTypeWarning)
  from google import genai
  from google.genai import errors as genai_errors
  from google.genai import types

logger = logging.getLogger(__name__)

ResultStatus = Literal["pending", "completed", "failed", "expired"]


@dataclass(frozen=True)
class VideoPayload:
  """Video returned by a completed operation: inline bytes or a storage/http URI."""

  uri: str | None = None
  content: bytes | None = None
  mime_type: str = "video/mp4"


@dataclass(frozen=True)
class OperationResult:
  status: ResultStatus
  progress: int = 0
  error: str | None = None
  video: VideoPayload | None = None


class GenerationCollaborator(Protocol):
  """Contract the pipeline expects from the video vendor."""

  async def submit(self, request: GenerationRequest) -> str:
    """Start one generation and return its operation handle."""

  async def query_status(self, handle: str) -> OperationResult:
    """Classify the current state of an operation.

    Raises PollingTransientError on blips. Terminal failures may be returned as a
    status or raised as OperationFailedError / OperationExpiredError.
    """

  async def aclose(self) -> None:
    """Release network resources."""


def _progress(metadata: dict[str, Any] | None) -> int:
  raw = (metadata or {}).get("progressPercent", 0)
  try:
    return max(0, min(100, int(float(raw))))
  except (TypeError, ValueError):
    return 0


def _first_video(response: Any) -> VideoPayload | None:
  for generated in getattr(response, "generated_videos", None) or []:
    video = generated.video
    if video is None:
      continue
    mime_type = video.mime_type or "video/mp4"
    if video.video_bytes:
      return VideoPayload(content=video.video_bytes, mime_type=mime_type)
    if video.uri and video.uri.startswith(("gs://", "http://", "https://")):
      return VideoPayload(uri=video.uri, mime_type=mime_type)
  return None


def classify_operation(operation: Any) -> OperationResult:
  """Map a Veo operation onto an operation result."""
  if not operation.done:
    return OperationResult(status="pending", progress=_progress(operation.metadata))

  if operation.error:
    error = operation.error
    message = error.get("message") if isinstance(error, dict) else str(error)
    return OperationResult(status="failed", progress=100, error=message or "generation failed")

  # SDK releases expose the payload as ``response`` or ``result``.
  response = getattr(operation, "response", None) or getattr(operation, "result", None)
  video = _first_video(response)
  if video is None:
    # Content filters return done without media; nothing further will arrive.
    filtered = getattr(response, "rai_media_filtered_reasons", None)
    reason = f"filtered: {filtered}" if filtered else "completed operation carried no video"
    return OperationResult(status="failed", progress=100, error=reason)
  return OperationResult(status="completed", progress=100, video=video)


class VeoVideoClient(GenerationCollaborator):
  """Submit and poll Veo long-running operations."""

  def __init__(self, settings: Settings, *, client: genai.Client | None = None) -> None:
    if client is None:
      if not settings.gcp_project_id:
        raise RuntimeError("GCP_PROJECT_ID must be set for video generation.")
      http_options = types.HttpOptions(timeout=int(settings.http_timeout_seconds * 1000))
      client = genai.Client(vertexai=True, project=settings.gcp_project_id, location=settings.gcp_location, http_options=http_options)
    self._client = client
    self._model = settings.video_model

  async def submit(self, request: GenerationRequest) -> str:
    config = types.GenerateVideosConfig(
      number_of_videos=1,
      duration_seconds=request.duration_seconds,
      aspect_ratio=request.aspect_ratio,
      generate_audio=request.audio,
      person_generation="allow_all",
    )
    try:
      operation = await self._client.aio.models.generate_videos(model=self._model, prompt=request.prompt, config=config)
    except genai_errors.APIError as exc:
      logger.error("Video submit rejected code=%s message=%s", exc.code, exc.message)
      raise GenerationRejectedError(f"video vendor returned HTTP {exc.code}") from exc
    except httpx.HTTPError as exc:
      logger.error("Video submit transport failure: %s", exc)
      raise GenerationRejectedError(f"video vendor unreachable: {exc}") from exc
    except GoogleAuthError as exc:
      logger.error("Video submit could not obtain credentials: %s", exc)
      raise GenerationRejectedError("video vendor credentials unavailable") from exc

    handle = getattr(operation, "name", None)
    if not isinstance(handle, str) or not handle.strip():
      raise MalformedOperationError("submit response carried no operation name")
    return handle

  async def query_status(self, handle: str) -> OperationResult:
    try:
      operation = await self._client.aio.operations.get(types.GenerateVideosOperation(name=handle))
    except genai_errors.ClientError as exc:
      if exc.code == 404:
        return OperationResult(status="expired", error="operation expired or not found")
      raise PollingTransientError(f"status query returned HTTP {exc.code}") from exc
    except genai_errors.APIError as exc:
      raise PollingTransientError(f"status query returned HTTP {exc.code}") from exc
    except httpx.HTTPError as exc:
      raise PollingTransientError(f"status query transport failure: {exc}") from exc
    except GoogleAuthError as exc:
      raise PollingTransientError(f"status query credentials unavailable: {exc}") from exc
    return classify_operation(operation)

  async def aclose(self) -> None:
    await self._client.aio.aclose()
