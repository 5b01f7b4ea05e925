"""Image generation collaborator using the openai SDK."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Literal, Protocol

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI, OpenAIError
from scenecast.config import Settings
from scenecast.jobs.errors import CollaboratorUnavailableError

logger = logging.getLogger(__name__)

ImageQuality = Literal["low", "medium", "high", "auto"]


def openai_unavailable(api: str, operation: str, exc: OpenAIError) -> CollaboratorUnavailableError:
  """Map an openai SDK error to the collaborator outage the routes turn into 502."""
  if isinstance(exc, APIStatusError):
    logger.error("%s %s returned %s: %s", api, operation, exc.status_code, exc.message)
    return CollaboratorUnavailableError(f"{api} API returned HTTP {exc.status_code}")
  if isinstance(exc, APIConnectionError):
    logger.error("%s %s request failed: %s", api, operation, exc)
    return CollaboratorUnavailableError(f"{api} API unreachable: {exc}")
  logger.error("%s %s failed: %s", api, operation, exc)
  return CollaboratorUnavailableError(f"{api} API error: {type(exc).__name__}")


@dataclass(frozen=True)
class GeneratedImagePayload:
  data: bytes
  mime_type: str = "image/png"
  revised_prompt: str | None = None


class ImageCollaborator(Protocol):
  async def generate(self, prompt: str, *, size: str, quality: ImageQuality) -> GeneratedImagePayload:
    """Text-to-image generation."""

  async def edit(self, prompt: str, images: list[bytes], *, size: str, quality: ImageQuality) -> GeneratedImagePayload:
    """Compose or edit from one or more source images."""


class OpenAIImageClient(ImageCollaborator):
  """Calls the Images API for generations and edits; downloads caller-supplied sources."""

  def __init__(self, settings: Settings, *, client: AsyncOpenAI | None = None, http_client: httpx.AsyncClient | None = None) -> None:
    if not settings.image_api_key:
      raise RuntimeError("SCENECAST_IMAGE_API_KEY must be set for image generation.")
    self._model = settings.image_model
    timeout = max(settings.http_timeout_seconds, 120.0)
    self._client = client or AsyncOpenAI(api_key=settings.image_api_key, base_url=settings.image_base_url, timeout=timeout, max_retries=1)
    self._http = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds, follow_redirects=True)

  async def generate(self, prompt: str, *, size: str, quality: ImageQuality) -> GeneratedImagePayload:
    try:
      response = await self._client.images.generate(model=self._model, prompt=prompt, size=size, quality=quality, n=1)
    except OpenAIError as exc:
      raise openai_unavailable("image", "generate", exc) from exc
    return await self._decode(response)

  async def edit(self, prompt: str, images: list[bytes], *, size: str, quality: ImageQuality) -> GeneratedImagePayload:
    if not images:
      raise ValueError("edit requires at least one source image")
    files = [(f"image{index}.png", data, "image/png") for index, data in enumerate(images)]
    try:
      response = await self._client.images.edit(model=self._model, image=files, prompt=prompt, size=size, quality=quality, n=1)
    except OpenAIError as exc:
      raise openai_unavailable("image", "edit", exc) from exc
    return await self._decode(response)

  async def fetch_source(self, url: str) -> bytes:
    """Download a caller-provided source image."""
    try:
      response = await self._http.get(url)
      response.raise_for_status()
    except httpx.HTTPError as exc:
      raise CollaboratorUnavailableError(f"could not fetch source image: {exc}") from exc
    return response.content

  async def _decode(self, response: Any) -> GeneratedImagePayload:
    entries = response.data or []
    if not entries:
      raise CollaboratorUnavailableError("image API response carried no data")
    first = entries[0]
    if first.b64_json:
      try:
        return GeneratedImagePayload(data=base64.b64decode(first.b64_json), revised_prompt=first.revised_prompt)
      except (binascii.Error, ValueError) as exc:
        raise CollaboratorUnavailableError("image API returned invalid base64") from exc
    if first.url:
      return GeneratedImagePayload(data=await self.fetch_source(first.url), revised_prompt=first.revised_prompt)
    raise CollaboratorUnavailableError("image API response carried neither b64_json nor url")

  async def aclose(self) -> None:
    await self._client.close()
    await self._http.aclose()
