"""Shared FastAPI dependencies for the pipeline and vendor clients."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from functools import lru_cache

from fastapi import Depends, HTTPException, status

from scenecast.config import Settings, get_settings
from scenecast.jobs.pipeline import VideoPipeline, get_pipeline
from scenecast.services.analysis_client import OpenAIVisionClient, VisionAnalyzer
from scenecast.services.artifact_storage import ArtifactStorage
from scenecast.services.image_client import OpenAIImageClient
from scenecast.services.render_client import CreatomateRenderClient

logger = logging.getLogger(__name__)


async def get_video_pipeline() -> VideoPipeline:
  """Process-wide pipeline; overridden in tests."""
  return get_pipeline()


async def get_artifact_storage(pipeline: VideoPipeline = Depends(get_video_pipeline)) -> ArtifactStorage:  # noqa: B008
  return pipeline.storage


@lru_cache(maxsize=1)
def _image_client() -> OpenAIImageClient:
  return OpenAIImageClient(get_settings())


async def get_image_client(settings: Settings = Depends(get_settings)) -> OpenAIImageClient:  # noqa: B008
  """Image vendor client; 503 when no key is configured."""
  if not settings.image_api_key:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Image generation is not configured")
  return _image_client()


@lru_cache(maxsize=1)
def _vision_client() -> OpenAIVisionClient:
  return OpenAIVisionClient(get_settings())


async def get_vision_client(settings: Settings = Depends(get_settings)) -> VisionAnalyzer | None:  # noqa: B008
  """Photo analysis model, or None so analyses use the built-in descriptions."""
  if not settings.image_api_key:
    return None
  return _vision_client()


async def get_render_client(settings: Settings = Depends(get_settings)) -> AsyncIterator[CreatomateRenderClient]:  # noqa: B008
  """Per-request render client, closed after the response."""
  if not settings.render_api_key:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Rendering is not configured")
  client = CreatomateRenderClient(settings)
  try:
    yield client
  finally:
    await client.aclose()


async def close_shared_clients() -> None:
  """Close cached vendor clients at shutdown."""
  if _image_client.cache_info().currsize:
    await _image_client().aclose()
    _image_client.cache_clear()
  if _vision_client.cache_info().currsize:
    await _vision_client().aclose()
    _vision_client.cache_clear()
