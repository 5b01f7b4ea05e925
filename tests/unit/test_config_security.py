"""Settings validation and internal-endpoint guard."""

from __future__ import annotations

import dataclasses
import os

import pytest
from fastapi import HTTPException

from scenecast.config import get_settings
from scenecast.core.security import verify_task_secret
from scenecast.utils.env import load_env_file, parse_env_line


@pytest.fixture
def fresh_settings():
  get_settings.cache_clear()
  yield get_settings
  get_settings.cache_clear()


def test_settings_defaults(fresh_settings) -> None:
  settings = fresh_settings()
  assert settings.allowed_origins == ("http://localhost:3000",)
  assert settings.poll_interval_seconds == 30
  assert settings.max_poll_ticks == 60
  assert (settings.min_duration_seconds, settings.max_duration_seconds) == (1, 60)
  assert settings.artifact_prefix == "videos"


def test_settings_require_origins(fresh_settings, monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.delenv("SCENECAST_ALLOWED_ORIGINS", raising=False)
  with pytest.raises(ValueError, match="ALLOWED_ORIGINS"):
    fresh_settings()


def test_settings_reject_wildcard_origin(fresh_settings, monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("SCENECAST_ALLOWED_ORIGINS", "http://localhost:3000,*")
  with pytest.raises(ValueError, match="wildcard"):
    fresh_settings()


def test_settings_reject_inverted_duration_window(fresh_settings, monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("SCENECAST_MIN_DURATION_SECONDS", "30")
  monkeypatch.setenv("SCENECAST_MAX_DURATION_SECONDS", "10")
  with pytest.raises(ValueError, match="MIN_DURATION"):
    fresh_settings()


def test_settings_reject_non_positive_poll_interval(fresh_settings, monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("SCENECAST_POLL_INTERVAL_SECONDS", "0")
  with pytest.raises(ValueError, match="POLL_INTERVAL"):
    fresh_settings()


@pytest.mark.anyio
async def test_task_secret_denies_when_unset() -> None:
  settings = dataclasses.replace(get_settings(), task_secret=None)
  with pytest.raises(HTTPException) as excinfo:
    await verify_task_secret(authorization="Bearer anything", settings=settings)
  assert excinfo.value.status_code == 403


@pytest.mark.anyio
async def test_task_secret_checks_bearer_value() -> None:
  settings = dataclasses.replace(get_settings(), task_secret="s3cret")
  with pytest.raises(HTTPException) as excinfo:
    await verify_task_secret(authorization="Bearer wrong", settings=settings)
  assert excinfo.value.status_code == 401
  assert await verify_task_secret(authorization="Bearer s3cret", settings=settings) is None


def test_env_file_lines_parse_like_shell_assignments(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
  assert parse_env_line("export SCENECAST_DEBUG='true'") == ("SCENECAST_DEBUG", "true")
  assert parse_env_line("# comment") is None
  assert parse_env_line("=orphan") is None

  env_file = tmp_path / ".env"
  env_file.write_text('SCENECAST_ARTIFACT_BUCKET="from-file"\nSCENECAST_VIDEO_MODEL=from-file\n', encoding="utf-8")
  monkeypatch.setenv("SCENECAST_VIDEO_MODEL", "from-env")
  monkeypatch.delenv("SCENECAST_ARTIFACT_BUCKET", raising=False)

  load_env_file(env_file)

  assert os.environ["SCENECAST_ARTIFACT_BUCKET"] == "from-file"
  assert os.environ["SCENECAST_VIDEO_MODEL"] == "from-env"
  monkeypatch.delenv("SCENECAST_ARTIFACT_BUCKET")
