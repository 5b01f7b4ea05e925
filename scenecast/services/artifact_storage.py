"""Durable object storage for generated videos and images."""

from __future__ import annotations

import logging
import os
import time
from typing import Protocol
from urllib.parse import urlparse, urlunparse

import httpx
from google.api_core import exceptions as gcs_exceptions
from google.auth.credentials import AnonymousCredentials
from google.cloud import storage
from scenecast.config import Settings
from scenecast.jobs.errors import ArtifactStorageError
from scenecast.jobs.models import StoredArtifact
from scenecast.services.generation_client import VideoPayload
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


class ArtifactStorage(Protocol):
  """Turns vendor output into a durable, publicly fetchable reference."""

  async def store_video(self, artifact_id: str, video: VideoPayload) -> StoredArtifact:
    """Persist a completed video and return its durable reference."""

  async def store_bytes(self, data: bytes, object_name: str, content_type: str) -> StoredArtifact:
    """Upload raw bytes under ``object_name``."""

  async def ensure_bucket(self) -> None:
    """Create the destination bucket when missing."""

  async def aclose(self) -> None:
    """Release network resources."""


def video_object_name(prefix: str, artifact_id: str, now_ms: int | None = None) -> str:
  stamp = now_ms if now_ms is not None else int(time.time() * 1000)
  return f"{prefix}/{artifact_id}_{stamp}.mp4" if prefix else f"{artifact_id}_{stamp}.mp4"


def _split_gs_uri(uri: str) -> tuple[str, str]:
  parsed = urlparse(uri)
  return parsed.netloc, parsed.path.lstrip("/")


class GcsArtifactStorage(ArtifactStorage):
  """Thin wrapper over GCS and emulator access for artifact upload."""

  def __init__(self, settings: Settings, *, http_client: httpx.AsyncClient | None = None) -> None:
    self._bucket_name = settings.artifact_bucket
    self._prefix = settings.artifact_prefix
    self._storage_host = settings.gcs_storage_host
    self._http = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds, follow_redirects=True)
    # Ensure emulator endpoint is visible to the SDK in local development.
    if self._storage_host:
      emulator_endpoint = _normalize_emulator_endpoint(self._storage_host)
      os.environ["STORAGE_EMULATOR_HOST"] = emulator_endpoint
      self._public_base = emulator_endpoint
      self._client = storage.Client(project=settings.gcp_project_id or "local-dev", credentials=AnonymousCredentials(), client_options={"api_endpoint": emulator_endpoint})
    else:
      self._public_base = "https://storage.googleapis.com"
      self._client = storage.Client(project=settings.gcp_project_id)

  def public_url(self, object_name: str) -> str:
    return f"{self._public_base}/{self._bucket_name}/{object_name}"

  async def ensure_bucket(self) -> None:
    """Create the bucket when missing in emulator flows."""
    if not self._storage_host:
      return
    bucket = self._client.bucket(self._bucket_name)

    def _create_if_missing() -> None:
      if not bucket.exists(client=self._client):
        self._client.create_bucket(bucket)

    await run_in_threadpool(_create_if_missing)

  async def store_bytes(self, data: bytes, object_name: str, content_type: str) -> StoredArtifact:
    bucket = self._client.bucket(self._bucket_name)
    blob = bucket.blob(object_name)
    blob.cache_control = "public, max-age=31536000"
    try:
      await run_in_threadpool(blob.upload_from_string, data, content_type)
    except gcs_exceptions.GoogleAPICallError as exc:
      raise ArtifactStorageError(f"upload of {object_name} failed: {exc}") from exc
    return StoredArtifact(public_url=self.public_url(object_name), object_name=object_name, size_bytes=len(data))

  async def store_video(self, artifact_id: str, video: VideoPayload) -> StoredArtifact:
    object_name = video_object_name(self._prefix, artifact_id)
    if video.content is not None:
      return await self.store_bytes(video.content, object_name, video.mime_type)
    if not video.uri:
      raise ArtifactStorageError(f"video for {artifact_id} carried neither bytes nor a URI")

    if video.uri.startswith("gs://"):
      logger.info("Copying vendor object %s into %s", video.uri, object_name)
      return await self._copy_from_gcs(video.uri, object_name)

    # Vendor-hosted URL; pull it into our bucket so the reference outlives the vendor link.
    try:
      response = await self._http.get(video.uri)
      response.raise_for_status()
    except httpx.HTTPError as exc:
      raise ArtifactStorageError(f"download of vendor video for {artifact_id} failed: {exc}") from exc
    return await self.store_bytes(response.content, object_name, video.mime_type)

  async def _copy_from_gcs(self, source_uri: str, object_name: str) -> StoredArtifact:
    source_bucket_name, source_name = _split_gs_uri(source_uri)
    source_bucket = self._client.bucket(source_bucket_name)
    source_blob = source_bucket.blob(source_name)
    destination = self._client.bucket(self._bucket_name)

    def _copy() -> int:
      copied = source_bucket.copy_blob(source_blob, destination, object_name)
      return int(copied.size or 0)

    try:
      size = await run_in_threadpool(_copy)
    except gcs_exceptions.GoogleAPICallError as exc:
      raise ArtifactStorageError(f"copy of {source_uri} failed: {exc}") from exc
    return StoredArtifact(public_url=self.public_url(object_name), object_name=object_name, size_bytes=size)

  async def aclose(self) -> None:
    await self._http.aclose()


def build_artifact_storage(settings: Settings) -> GcsArtifactStorage:
  """Create a storage client instance with environment-aware credentials."""
  return GcsArtifactStorage(settings)


def _normalize_emulator_endpoint(raw_endpoint: str) -> str:
  """Normalize emulator endpoint so the SDK receives scheme+host+port only."""
  parsed = urlparse(raw_endpoint)
  if not parsed.scheme or not parsed.netloc:
    return raw_endpoint.rstrip("/")
  return urlunparse((parsed.scheme, parsed.netloc, "", "", "", "")).rstrip("/")
