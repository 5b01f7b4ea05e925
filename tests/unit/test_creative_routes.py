"""Analysis, prompt and template routes."""

from __future__ import annotations

import dataclasses
import datetime
import uuid
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from scenecast.api.deps import get_vision_client
from scenecast.api.routes import analysis as analysis_route
from scenecast.api.routes import prompts as prompts_route
from scenecast.api.routes import templates as templates_route
from scenecast.config import get_settings
from scenecast.core.database import get_db
from scenecast.core.security import get_current_user
from scenecast.main import app
from scenecast.schema.sql import MediaAnalysis, RenderTemplate, User
from scenecast.schema.tiers import BillingStatus, SubscriptionTier
from scenecast.services import analysis
from scenecast.services.templates import DuplicateTemplateError
from tests.fakes import USER_ID

NOW = datetime.datetime(2026, 3, 14, 9, 30, tzinfo=datetime.UTC)


def _user() -> User:
  return User(id=uuid.UUID(USER_ID), firebase_uid="uid-director", email="director@example.com", subscription_tier=SubscriptionTier.PRO, billing_status=BillingStatus.ACTIVE)


def _analysis(kind: str, data: dict) -> MediaAnalysis:
  name = data[kind]["name"]
  return MediaAnalysis(analysis_id=f"{kind}_1", user_id=uuid.UUID(USER_ID), kind=kind, name=name, category=None, method="fallback", analysis=data, created_at=NOW)


def _template(**overrides) -> RenderTemplate:
  values = {
    "template_id": "promo_9x16",
    "name": "Promo",
    "template_type": "creatomate",
    "preview_video_url": "https://cdn.test/promo.mp4",
    "scenes": 3,
    "duration": 30,
    "aspect_ratio": "9:16",
    "fields": [{"name": "headline", "type": "text"}],
    "media_slots": [],
    "category": "marketing",
    "tags": ["promo"],
    "is_active": True,
    "usage_count": 4,
    "created_at": NOW,
  }
  values.update(overrides)
  return RenderTemplate(**values)


@pytest.fixture
def session():
  return AsyncMock()


@pytest.fixture
def client(session):
  async def _get_db():
    yield session

  app.dependency_overrides[get_db] = _get_db
  app.dependency_overrides[get_current_user] = _user
  app.dependency_overrides[get_vision_client] = lambda: None
  try:
    yield TestClient(app)
  finally:
    app.dependency_overrides.clear()


def test_character_upload_is_analyzed(client, monkeypatch) -> None:
  record = _analysis("character", analysis.fallback_character("doctor.jpg"))
  analyze_character = AsyncMock(return_value=record)
  monkeypatch.setattr(analysis_route, "analyze_character", analyze_character)

  response = client.post("/v1/analysis/character", files={"image": ("doctor.jpg", b"jpeg-bytes", "image/jpeg")})

  assert response.status_code == 201
  body = response.json()
  assert (body["analysisId"], body["kind"], body["name"], body["method"]) == ("character_1", "character", "Dr. Maya Wellness", "fallback")
  kwargs = analyze_character.await_args.kwargs
  assert (kwargs["image"], kwargs["mime_type"], kwargs["filename"], kwargs["analyzer"]) == (b"jpeg-bytes", "image/jpeg", "doctor.jpg", None)


def test_product_upload_passes_description(client, monkeypatch) -> None:
  analyze_product = AsyncMock(return_value=_analysis("product", analysis.fallback_product("Steel bottle")))
  monkeypatch.setattr(analysis_route, "analyze_product", analyze_product)

  response = client.post("/v1/analysis/product", files={"image": ("bottle.png", b"png-bytes", "image/png")}, data={"description": "Steel bottle"})

  assert response.status_code == 201
  assert analyze_product.await_args.kwargs["description"] == "Steel bottle"


def test_non_image_upload_is_rejected(client, monkeypatch) -> None:
  analyze_character = AsyncMock()
  monkeypatch.setattr(analysis_route, "analyze_character", analyze_character)

  response = client.post("/v1/analysis/character", files={"image": ("notes.txt", b"hello", "text/plain")})

  assert response.status_code == 400
  analyze_character.assert_not_awaited()


def test_oversized_upload_is_413(client, monkeypatch) -> None:
  app.dependency_overrides[get_settings] = lambda: dataclasses.replace(get_settings(), analysis_max_image_bytes=8)
  analyze_character = AsyncMock()
  monkeypatch.setattr(analysis_route, "analyze_character", analyze_character)

  response = client.post("/v1/analysis/character", files={"image": ("big.jpg", b"0123456789", "image/jpeg")})

  assert response.status_code == 413
  analyze_character.assert_not_awaited()


def test_unknown_analysis_is_404(client, monkeypatch) -> None:
  monkeypatch.setattr(analysis_route, "get_analysis", AsyncMock(return_value=None))
  assert client.get("/v1/analysis/character_missing").status_code == 404


def test_prompt_set_uses_callers_analyses(client, monkeypatch) -> None:
  character = _analysis("character", analysis.fallback_character("doctor.jpg"))
  get_analysis = AsyncMock(return_value=character)
  monkeypatch.setattr(prompts_route, "get_analysis", get_analysis)

  response = client.post(
    "/v1/prompts",
    json={"characterAnalysisId": "character_1", "spokenLanguage": "de", "sceneDuration": 6, "scenes": [{"scene": "Clinic lobby.", "dialogue": "Willkommen!"}]},
  )

  assert response.status_code == 200
  body = response.json()
  assert body["promptSetId"].startswith("enhanced_prompts_")
  (prompt,) = body["prompts"]
  assert (prompt["sceneNumber"], prompt["title"], prompt["hasCharacter"], prompt["hasProduct"]) == (1, "Scene 1", True, False)
  assert "- Name: Dr. Maya Wellness" in prompt["prompt"]
  assert 'DIALOGUE (Deutsche Aussprache, natürliche deutsche Stimme):\n"Willkommen!"' in prompt["prompt"]
  (scene,) = body["batchRequest"]["scenes"]
  assert (scene["prompt"], scene["durationSeconds"], scene["title"]) == (prompt["prompt"], 6, "Scene 1")
  assert get_analysis.await_args.args[1:] == (uuid.UUID(USER_ID), "character_1")
  assert get_analysis.await_args.kwargs == {"kind": "character"}


def test_prompt_set_with_foreign_analysis_is_404(client, monkeypatch) -> None:
  monkeypatch.setattr(prompts_route, "get_analysis", AsyncMock(return_value=None))
  response = client.post("/v1/prompts", json={"productAnalysisId": "product_9", "scenes": [{"scene": "Desk."}]})
  assert response.status_code == 404


def test_prompt_set_without_scenes_is_400(client) -> None:
  assert client.post("/v1/prompts", json={"scenes": []}).status_code == 400


def test_template_list(client, monkeypatch) -> None:
  list_templates = AsyncMock(return_value=[_template(), _template(template_id="intro_16x9", aspect_ratio="16:9")])
  monkeypatch.setattr(templates_route, "list_templates", list_templates)

  response = client.get("/v1/templates", params={"category": "marketing"})

  assert response.status_code == 200
  body = response.json()
  assert [item["templateId"] for item in body["items"]] == ["promo_9x16", "intro_16x9"]
  assert body["items"][0]["fields"] == [{"name": "headline", "type": "text"}]
  assert list_templates.await_args.kwargs == {"category": "marketing"}


def test_create_duplicate_template_is_400(client, monkeypatch) -> None:
  monkeypatch.setattr(templates_route, "create_template", AsyncMock(side_effect=DuplicateTemplateError("promo_9x16")))

  response = client.post("/v1/templates", json={"templateId": "promo_9x16", "name": "Promo", "previewVideoUrl": "https://cdn.test/promo.mp4", "scenes": 3})

  assert response.status_code == 400
  assert response.json()["detail"] == "Template ID already exists"


def test_create_template_records_creator(client, monkeypatch) -> None:
  create_template = AsyncMock(return_value=_template())
  monkeypatch.setattr(templates_route, "create_template", create_template)

  response = client.post(
    "/v1/templates",
    json={"templateId": "promo_9x16", "name": "Promo", "previewVideoUrl": "https://cdn.test/promo.mp4", "scenes": 3, "fields": [{"name": "headline", "type": "text", "maxLength": 40}]},
  )

  assert response.status_code == 201
  kwargs = create_template.await_args.kwargs
  assert kwargs["created_by"] == uuid.UUID(USER_ID)
  assert kwargs["values"]["template_id"] == "promo_9x16"
  assert kwargs["values"]["fields"] == [{"name": "headline", "label": None, "type": "text", "default": None, "required": False, "maxLength": 40}]


def test_update_template_sends_only_given_fields(client, monkeypatch) -> None:
  update_template = AsyncMock(return_value=_template(name="Promo v2"))
  monkeypatch.setattr(templates_route, "update_template", update_template)

  response = client.put("/v1/templates/promo_9x16", json={"name": "Promo v2", "thumbnailUrl": None, "scenes": None})

  assert response.status_code == 200
  assert response.json()["name"] == "Promo v2"
  assert update_template.await_args.args[1:] == ("promo_9x16", {"name": "Promo v2", "thumbnail_url": None})


def test_update_missing_template_is_404(client, monkeypatch) -> None:
  monkeypatch.setattr(templates_route, "update_template", AsyncMock(return_value=None))
  assert client.put("/v1/templates/missing", json={"name": "x"}).status_code == 404


def test_delete_missing_template_is_404(client, monkeypatch) -> None:
  monkeypatch.setattr(templates_route, "deactivate_template", AsyncMock(return_value=False))
  assert client.delete("/v1/templates/missing").status_code == 404
