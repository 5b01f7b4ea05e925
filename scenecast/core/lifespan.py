import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI
from google.api_core import exceptions as gcs_exceptions
from google.auth.exceptions import GoogleAuthError
from scenecast.api.deps import close_shared_clients
from scenecast.config import get_settings
from scenecast.core.database import dispose_engine
from scenecast.core.firebase import initialize_firebase
from scenecast.core.logging import _initialize_logging
from scenecast.jobs.errors import ArtifactStorageError
from scenecast.jobs.pipeline import VideoPipeline, get_pipeline


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Start logging, auth and the reconcile scheduler; drain them on shutdown."""
  settings = get_settings()
  logger = logging.getLogger("scenecast.core.lifespan")

  _initialize_logging(settings)
  logger.info("Startup: environment=%s database=%s", settings.environment, _redact_dsn(settings.pg_dsn))
  initialize_firebase()

  pipeline: VideoPipeline | None = None
  try:
    pipeline = get_pipeline()
  except (RuntimeError, ValueError, GoogleAuthError):
    # Batch routes fail per request until the video service is configured.
    logger.error("Video pipeline unavailable; batch generation is disabled.", exc_info=True)

  if pipeline is not None:
    try:
      await pipeline.storage.ensure_bucket()
    except (ArtifactStorageError, gcs_exceptions.GoogleAPIError) as exc:
      logger.warning("Failed to ensure artifact bucket at startup: %s", exc)
    pipeline.scheduler.start()

  yield

  if pipeline is not None:
    # Lets in-flight settlement writes land before the process exits.
    await pipeline.scheduler.stop()
    await pipeline.aclose()
  await close_shared_clients()
  await dispose_engine()
  logger.info("Shutdown complete.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"
  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"
  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
