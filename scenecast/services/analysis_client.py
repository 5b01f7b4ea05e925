"""Vision collaborator that describes a reference photo as JSON."""

from __future__ import annotations

import base64
import logging
from typing import Protocol

from openai import AsyncOpenAI, OpenAIError
from scenecast.config import Settings
from scenecast.jobs.errors import CollaboratorUnavailableError
from scenecast.services.image_client import openai_unavailable

logger = logging.getLogger(__name__)

# Replies shorter than this are refusals or errors, not analyses.
_MIN_REPLY_CHARS = 100


class VisionAnalyzer(Protocol):
  async def describe(self, prompt: str, image: bytes, mime_type: str) -> str:
    """Return the model's raw reply to ``prompt`` about ``image``."""


class OpenAIVisionClient(VisionAnalyzer):
  def __init__(self, settings: Settings, *, client: AsyncOpenAI | None = None) -> None:
    if not settings.image_api_key:
      raise RuntimeError("SCENECAST_IMAGE_API_KEY must be set for photo analysis.")
    self._model = settings.analysis_model
    timeout = max(settings.http_timeout_seconds, 60.0)
    self._client = client or AsyncOpenAI(api_key=settings.image_api_key, base_url=settings.image_base_url, timeout=timeout, max_retries=1)

  async def describe(self, prompt: str, image: bytes, mime_type: str) -> str:
    data_uri = f"data:{mime_type};base64,{base64.b64encode(image).decode()}"
    messages = [{"role": "user", "content": [{"type": "text", "text": prompt}, {"type": "image_url", "image_url": {"url": data_uri}}]}]
    try:
      response = await self._client.chat.completions.create(model=self._model, messages=messages, max_tokens=4000, temperature=0.2)
    except OpenAIError as exc:
      raise openai_unavailable("analysis", "describe", exc) from exc

    content = response.choices[0].message.content if response.choices else None
    if not content or len(content) < _MIN_REPLY_CHARS:
      logger.warning("Analysis reply too short (%d chars)", len(content or ""))
      raise CollaboratorUnavailableError("analysis API returned no usable description")
    logger.info("Analysis reply received model=%s chars=%d", self._model, len(content))
    return content

  async def aclose(self) -> None:
    await self._client.close()
