"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from scenecast.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Scenecast service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  poll_interval_seconds: float
  max_poll_ticks: int
  settlement_grace_ticks: int
  batch_retention_seconds: int
  sweep_interval_seconds: int
  status_cache_seconds: float
  min_duration_seconds: int
  max_duration_seconds: int
  default_duration_seconds: int
  submit_spacing_seconds: float
  cost_per_operation: float
  video_model: str
  gcp_project_id: str | None
  gcp_location: str
  artifact_bucket: str
  artifact_prefix: str
  gcs_storage_host: str | None
  image_api_key: str | None
  image_model: str
  image_base_url: str
  analysis_model: str
  analysis_max_image_bytes: int
  render_api_key: str | None
  render_base_url: str
  http_timeout_seconds: float
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  task_secret: str | None
  free_signup_credits: int


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("SCENECAST_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("SCENECAST_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("SCENECAST_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _non_negative_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value < 0:
    raise ValueError(f"{name} must be zero or positive.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("SCENECAST_ENV", "development").lower()
  debug = _parse_bool(os.getenv("SCENECAST_DEBUG"))

  log_max_bytes = _positive_int("SCENECAST_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("SCENECAST_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("SCENECAST_LOG_BACKUP_COUNT must be zero or a positive integer.")

  poll_interval_seconds = float(os.getenv("SCENECAST_POLL_INTERVAL_SECONDS", "30"))
  if poll_interval_seconds <= 0:
    raise ValueError("SCENECAST_POLL_INTERVAL_SECONDS must be positive.")

  max_poll_ticks = _positive_int("SCENECAST_MAX_POLL_TICKS", "60")
  settlement_grace_ticks = int(os.getenv("SCENECAST_SETTLEMENT_GRACE_TICKS", "5"))
  if settlement_grace_ticks < 0:
    raise ValueError("SCENECAST_SETTLEMENT_GRACE_TICKS must be zero or a positive integer.")

  # Durations are clamped into this window before submission.
  min_duration_seconds = _positive_int("SCENECAST_MIN_DURATION_SECONDS", "1")
  max_duration_seconds = _positive_int("SCENECAST_MAX_DURATION_SECONDS", "60")
  default_duration_seconds = _positive_int("SCENECAST_DEFAULT_DURATION_SECONDS", "8")
  if min_duration_seconds > max_duration_seconds:
    raise ValueError("SCENECAST_MIN_DURATION_SECONDS must not exceed SCENECAST_MAX_DURATION_SECONDS.")

  free_signup_credits = int(os.getenv("SCENECAST_FREE_SIGNUP_CREDITS", "3"))
  if free_signup_credits < 0:
    raise ValueError("SCENECAST_FREE_SIGNUP_CREDITS must be zero or a positive integer.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("SCENECAST_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("SCENECAST_LOG_HTTP_4XX")),
    pg_dsn=os.getenv("SCENECAST_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=int(os.getenv("SCENECAST_PG_CONNECT_TIMEOUT", "5")),
    poll_interval_seconds=poll_interval_seconds,
    max_poll_ticks=max_poll_ticks,
    settlement_grace_ticks=settlement_grace_ticks,
    batch_retention_seconds=_positive_int("SCENECAST_BATCH_RETENTION_SECONDS", "86400"),
    sweep_interval_seconds=_positive_int("SCENECAST_SWEEP_INTERVAL_SECONDS", "3600"),
    status_cache_seconds=_non_negative_float("SCENECAST_STATUS_CACHE_SECONDS", "5"),
    min_duration_seconds=min_duration_seconds,
    max_duration_seconds=max_duration_seconds,
    default_duration_seconds=default_duration_seconds,
    submit_spacing_seconds=_non_negative_float("SCENECAST_SUBMIT_SPACING_SECONDS", "2"),
    cost_per_operation=_non_negative_float("SCENECAST_COST_PER_OPERATION", "1.20"),
    video_model=os.getenv("SCENECAST_VIDEO_MODEL", "veo-3.0-fast-generate-preview"),
    gcp_project_id=_optional_str(os.getenv("GCP_PROJECT_ID")),
    gcp_location=os.getenv("GCP_LOCATION", "us-central1"),
    artifact_bucket=os.getenv("SCENECAST_ARTIFACT_BUCKET", "scenecast-artifacts"),
    artifact_prefix=(os.getenv("SCENECAST_ARTIFACT_PREFIX") or "videos").strip().strip("/"),
    gcs_storage_host=_optional_str(os.getenv("GCS_STORAGE_HOST")),
    image_api_key=_optional_str(os.getenv("SCENECAST_IMAGE_API_KEY")),
    image_model=os.getenv("SCENECAST_IMAGE_MODEL", "gpt-image-1"),
    image_base_url=(os.getenv("SCENECAST_IMAGE_BASE_URL") or "https://api.openai.com/v1").strip(),
    analysis_model=os.getenv("SCENECAST_ANALYSIS_MODEL", "gpt-4-turbo"),
    analysis_max_image_bytes=_positive_int("SCENECAST_ANALYSIS_MAX_IMAGE_BYTES", "10485760"),  # 10MB default
    render_api_key=_optional_str(os.getenv("SCENECAST_RENDER_API_KEY")),
    render_base_url=(os.getenv("SCENECAST_RENDER_BASE_URL") or "https://api.creatomate.com/v1").strip(),
    http_timeout_seconds=float(os.getenv("SCENECAST_HTTP_TIMEOUT_SECONDS", "30")),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    task_secret=_optional_str(os.getenv("SCENECAST_TASK_SECRET")),
    free_signup_credits=free_signup_credits,
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  debug = _parse_bool(os.getenv("SCENECAST_DEBUG"))
  pg_connect_timeout = int(os.getenv("SCENECAST_PG_CONNECT_TIMEOUT", "5"))
  if pg_connect_timeout <= 0:
    raise ValueError("SCENECAST_PG_CONNECT_TIMEOUT must be a positive integer.")

  pg_dsn = os.getenv("SCENECAST_PG_DSN") or os.getenv("DATABASE_URL")

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
