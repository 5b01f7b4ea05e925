"""Template render collaborator (Creatomate REST API)."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx
from scenecast.config import Settings
from scenecast.jobs.errors import CollaboratorUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderJob:
  render_id: str
  status: str
  url: str | None = None
  error: str | None = None
  duration_seconds: float | None = None
  file_size: int | None = None
  raw: dict[str, Any] = field(default_factory=dict)


def build_modifications(video_urls: Sequence[str], element_names: Sequence[str] | None = None, extra: dict[str, Any] | None = None) -> dict[str, Any]:
  """Map scene URLs onto template video elements, in order."""
  names = list(element_names) if element_names else [f"Video-{index + 1}" for index in range(len(video_urls))]
  if len(names) < len(video_urls):
    raise ValueError(f"template exposes {len(names)} video elements but {len(video_urls)} videos were supplied")
  modifications: dict[str, Any] = {f"{name}.source": url for name, url in zip(names, video_urls, strict=False)}
  if extra:
    modifications.update(extra)
  return modifications


def _render_job(body: Any) -> RenderJob:
  # The API returns a list when several outputs are requested; the first is ours.
  if isinstance(body, list):
    body = body[0] if body else {}
  if not isinstance(body, dict) or not body.get("id"):
    raise CollaboratorUnavailableError("render API response carried no render id")
  duration = body.get("duration")
  file_size = body.get("file_size")
  return RenderJob(
    render_id=str(body["id"]),
    status=str(body.get("status", "planned")),
    url=body.get("url"),
    error=body.get("error_message") or body.get("error"),
    duration_seconds=float(duration) if isinstance(duration, int | float) else None,
    file_size=int(file_size) if isinstance(file_size, int) else None,
    raw=body,
  )


class CreatomateRenderClient:
  def __init__(self, settings: Settings, *, http_client: httpx.AsyncClient | None = None) -> None:
    if not settings.render_api_key:
      raise RuntimeError("SCENECAST_RENDER_API_KEY must be set for template renders.")
    self._base_url = settings.render_base_url.rstrip("/")
    self._client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    self._headers = {"Authorization": f"Bearer {settings.render_api_key}", "Content-Type": "application/json"}

  async def create_render(self, template_id: str, modifications: dict[str, Any]) -> RenderJob:
    payload = {"template_id": template_id, "modifications": modifications}
    try:
      response = await self._client.post(f"{self._base_url}/renders", json=payload, headers=self._headers)
      response.raise_for_status()
    except httpx.HTTPStatusError as exc:
      logger.error("Render API returned %s: %s", exc.response.status_code, exc.response.text[:500])
      raise CollaboratorUnavailableError(f"render API returned HTTP {exc.response.status_code}") from exc
    except httpx.RequestError as exc:
      raise CollaboratorUnavailableError(f"render API unreachable: {exc}") from exc
    job = _render_job(response.json())
    logger.info("Render job created id=%s status=%s", job.render_id, job.status)
    return job

  async def get_render(self, render_id: str) -> RenderJob:
    try:
      response = await self._client.get(f"{self._base_url}/renders/{render_id}", headers=self._headers)
      response.raise_for_status()
    except httpx.HTTPStatusError as exc:
      raise CollaboratorUnavailableError(f"render API returned HTTP {exc.response.status_code}") from exc
    except httpx.RequestError as exc:
      raise CollaboratorUnavailableError(f"render API unreachable: {exc}") from exc
    return _render_job(response.json())

  async def aclose(self) -> None:
    await self._client.aclose()
