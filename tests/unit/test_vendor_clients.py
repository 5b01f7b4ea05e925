"""Vendor clients exercised against stubbed SDK clients and httpx.MockTransport."""

from __future__ import annotations

import base64
import dataclasses
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from google.genai import errors as genai_errors
from google.genai import types
from openai import AsyncOpenAI

from scenecast.config import get_settings
from scenecast.jobs.errors import CollaboratorUnavailableError, GenerationRejectedError, MalformedOperationError, PollingTransientError
from scenecast.jobs.models import GenerationRequest
from scenecast.services.analysis_client import OpenAIVisionClient
from scenecast.services.artifact_storage import video_object_name
from scenecast.services.generation_client import VeoVideoClient, classify_operation
from scenecast.services.image_client import OpenAIImageClient
from scenecast.services.render_client import CreatomateRenderClient, build_modifications


def _settings(**overrides):
  values = {"gcp_project_id": "demo-project", "gcp_location": "us-central1", "image_api_key": "sk-test", "render_api_key": "rk-test"}
  values.update(overrides)
  return dataclasses.replace(get_settings(), **values)


def _done(response=None, error=None) -> SimpleNamespace:
  return SimpleNamespace(name="projects/demo-project/operations/abc", done=True, error=error, metadata=None, response=response)


def _videos(*videos: types.Video) -> types.GenerateVideosResponse:
  return types.GenerateVideosResponse(generated_videos=[types.GeneratedVideo(video=video) for video in videos])


def _veo_client() -> tuple[VeoVideoClient, MagicMock]:
  sdk = MagicMock()
  sdk.aio.models.generate_videos = AsyncMock(return_value=types.GenerateVideosOperation(name="projects/demo-project/operations/abc"))
  sdk.aio.operations.get = AsyncMock(return_value=_done(_videos(types.Video(uri="gs://vendor/out.mp4", mime_type="video/mp4"))))
  sdk.aio.aclose = AsyncMock()
  return VeoVideoClient(_settings(), client=sdk), sdk


def _not_found() -> genai_errors.ClientError:
  return genai_errors.ClientError(404, {"error": {"code": 404, "message": "Operation not found", "status": "NOT_FOUND"}})


def test_classify_pending_reports_progress() -> None:
  result = classify_operation(types.GenerateVideosOperation(name="op", done=False, metadata={"progressPercent": 35}))
  assert (result.status, result.progress) == ("pending", 35)


def test_classify_done_with_error_is_failed() -> None:
  result = classify_operation(_done(error={"code": 3, "message": "prompt rejected"}))
  assert (result.status, result.error) == ("failed", "prompt rejected")


def test_classify_done_with_gcs_uri_is_completed() -> None:
  result = classify_operation(_done(_videos(types.Video(uri="gs://vendor/out.mp4", mime_type="video/mp4"))))
  assert result.status == "completed"
  assert result.video.uri == "gs://vendor/out.mp4"
  assert result.video.content is None


def test_classify_done_with_inline_bytes_is_completed() -> None:
  result = classify_operation(_done(_videos(types.Video(video_bytes=b"\x00\x00\x00\x18ftypmp42"))))
  assert result.video.content == b"\x00\x00\x00\x18ftypmp42"
  assert result.video.mime_type == "video/mp4"


def test_classify_filtered_output_is_failed() -> None:
  response = types.GenerateVideosResponse(rai_media_filtered_count=1, rai_media_filtered_reasons=["celebrity"])
  result = classify_operation(_done(response))
  assert result.status == "failed"
  assert "celebrity" in result.error


def test_classify_done_without_payload_is_failed() -> None:
  result = classify_operation(_done())
  assert (result.status, result.error) == ("failed", "completed operation carried no video")


def test_video_object_name_layout() -> None:
  assert video_object_name("videos", "veo_1_scene_2", now_ms=1700000000000) == "videos/veo_1_scene_2_1700000000000.mp4"
  assert video_object_name("", "veo_1_scene_2", now_ms=5) == "veo_1_scene_2_5.mp4"


def test_video_client_requires_project() -> None:
  with pytest.raises(RuntimeError):
    VeoVideoClient(_settings(gcp_project_id=None))


@pytest.mark.anyio
async def test_submit_passes_clamped_request_to_veo() -> None:
  client, sdk = _veo_client()

  handle = await client.submit(GenerationRequest(prompt="a lighthouse", duration_seconds=8, aspect_ratio="9:16", audio=False))

  assert handle == "projects/demo-project/operations/abc"
  kwargs = sdk.aio.models.generate_videos.await_args.kwargs
  assert kwargs["model"] == "veo-3.0-fast-generate-preview"
  assert kwargs["prompt"] == "a lighthouse"
  config = kwargs["config"]
  assert (config.duration_seconds, config.aspect_ratio, config.generate_audio, config.number_of_videos) == (8, "9:16", False, 1)


@pytest.mark.anyio
async def test_submit_api_error_is_rejection() -> None:
  client, sdk = _veo_client()
  sdk.aio.models.generate_videos.side_effect = genai_errors.ClientError(403, {"error": {"code": 403, "message": "billing disabled", "status": "PERMISSION_DENIED"}})
  with pytest.raises(GenerationRejectedError):
    await client.submit(GenerationRequest(prompt="x", duration_seconds=8))


@pytest.mark.anyio
async def test_submit_without_operation_name_is_malformed() -> None:
  client, sdk = _veo_client()
  sdk.aio.models.generate_videos.return_value = types.GenerateVideosOperation()
  with pytest.raises(MalformedOperationError):
    await client.submit(GenerationRequest(prompt="x", duration_seconds=8))


@pytest.mark.anyio
async def test_query_status_looks_up_operation_by_name() -> None:
  client, sdk = _veo_client()

  result = await client.query_status("projects/demo-project/operations/abc")

  assert sdk.aio.operations.get.await_args.args[0].name == "projects/demo-project/operations/abc"
  assert result.status == "completed"
  assert result.video.uri == "gs://vendor/out.mp4"


@pytest.mark.anyio
async def test_query_status_not_found_is_expired() -> None:
  client, sdk = _veo_client()
  sdk.aio.operations.get.side_effect = _not_found()
  result = await client.query_status("op")
  assert result.status == "expired"


@pytest.mark.anyio
async def test_query_status_server_error_is_transient() -> None:
  client, sdk = _veo_client()
  sdk.aio.operations.get.side_effect = genai_errors.ServerError(503, {"error": {"code": 503, "message": "unavailable", "status": "UNAVAILABLE"}})
  with pytest.raises(PollingTransientError):
    await client.query_status("op")


@pytest.mark.anyio
async def test_query_status_transport_error_is_transient() -> None:
  client, sdk = _veo_client()
  sdk.aio.operations.get.side_effect = httpx.ConnectError("connection refused")
  with pytest.raises(PollingTransientError):
    await client.query_status("op")


@pytest.mark.anyio
async def test_video_client_close_releases_sdk_client() -> None:
  client, sdk = _veo_client()
  await client.aclose()
  sdk.aio.aclose.assert_awaited_once()


def _image_client(handler) -> OpenAIImageClient:
  sdk = AsyncOpenAI(api_key="sk-test", base_url="https://images.test/v1", max_retries=0, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
  return OpenAIImageClient(_settings(), client=sdk, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.anyio
async def test_image_generate_decodes_b64_payload() -> None:
  def handler(request: httpx.Request) -> httpx.Response:
    assert request.url.path == "/v1/images/generations"
    body = json.loads(request.content)
    assert (body["model"], body["prompt"], body["n"]) == ("gpt-image-1", "fox", 1)
    return httpx.Response(200, json={"created": 1700000000, "data": [{"b64_json": base64.b64encode(b"png-bytes").decode(), "revised_prompt": "a fox"}]})

  payload = await _image_client(handler).generate("fox", size="1024x1024", quality="medium")

  assert payload.data == b"png-bytes"
  assert payload.revised_prompt == "a fox"


@pytest.mark.anyio
async def test_image_vendor_error_is_unavailable() -> None:
  client = _image_client(lambda request: httpx.Response(500, json={"error": {"message": "boom", "type": "server_error"}}))
  with pytest.raises(CollaboratorUnavailableError, match="HTTP 500"):
    await client.generate("fox", size="1024x1024", quality="medium")


@pytest.mark.anyio
async def test_image_edit_uploads_every_source() -> None:
  seen: list[httpx.Request] = []

  def handler(request: httpx.Request) -> httpx.Response:
    seen.append(request)
    return httpx.Response(200, json={"created": 1700000000, "data": [{"b64_json": base64.b64encode(b"edited").decode()}]})

  payload = await _image_client(handler).edit("night", [b"first-image", b"second-image"], size="auto", quality="high")

  assert payload.data == b"edited"
  assert seen[0].url.path == "/v1/images/edits"
  assert b"first-image" in seen[0].content
  assert b"second-image" in seen[0].content


@pytest.mark.anyio
async def test_fetch_source_failure_is_unavailable() -> None:
  client = _image_client(lambda request: httpx.Response(404))
  with pytest.raises(CollaboratorUnavailableError):
    await client.fetch_source("https://cdn.test/missing.png")


def test_build_modifications_defaults_and_overrides() -> None:
  assert build_modifications(["u1", "u2"]) == {"Video-1.source": "u1", "Video-2.source": "u2"}
  assert build_modifications(["u1"], ["Hero"], {"Title.text": "Launch"}) == {"Hero.source": "u1", "Title.text": "Launch"}
  with pytest.raises(ValueError):
    build_modifications(["u1", "u2"], ["Hero"])


@pytest.mark.anyio
async def test_render_client_reads_first_render_from_list_response() -> None:
  seen: list[dict] = []

  def handler(request: httpx.Request) -> httpx.Response:
    seen.append(json.loads(request.content))
    return httpx.Response(202, json=[{"id": "rnd_9", "status": "planned"}])

  client = CreatomateRenderClient(_settings(), http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
  job = await client.create_render("tpl_1", {"Video-1.source": "u1"})

  assert (job.render_id, job.status) == ("rnd_9", "planned")
  assert seen == [{"template_id": "tpl_1", "modifications": {"Video-1.source": "u1"}}]


@pytest.mark.anyio
async def test_render_client_without_id_is_unavailable() -> None:
  client = CreatomateRenderClient(_settings(), http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={}))))
  with pytest.raises(CollaboratorUnavailableError):
    await client.get_render("rnd_9")


def _chat_reply(content: str) -> dict:
  return {
    "id": "chatcmpl-1",
    "object": "chat.completion",
    "created": 1700000000,
    "model": "gpt-4-turbo",
    "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
  }


def _vision_client(handler) -> OpenAIVisionClient:
  sdk = AsyncOpenAI(api_key="sk-test", base_url="https://images.test/v1", max_retries=0, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
  return OpenAIVisionClient(_settings(), client=sdk)


@pytest.mark.anyio
async def test_vision_client_sends_photo_as_data_uri() -> None:
  seen: list[dict] = []
  reply = json.dumps({"character": {"name": "Dana"}, "notes": "x" * 120})

  def handler(request: httpx.Request) -> httpx.Response:
    assert request.url.path == "/v1/chat/completions"
    seen.append(json.loads(request.content))
    return httpx.Response(200, json=_chat_reply(reply))

  content = await _vision_client(handler).describe("Describe this person", b"jpeg-bytes", "image/jpeg")

  assert content == reply
  body = seen[0]
  assert (body["model"], body["max_tokens"], body["temperature"]) == ("gpt-4-turbo", 4000, 0.2)
  text_part, image_part = body["messages"][0]["content"]
  assert text_part == {"type": "text", "text": "Describe this person"}
  assert image_part["image_url"]["url"] == "data:image/jpeg;base64," + base64.b64encode(b"jpeg-bytes").decode()


@pytest.mark.anyio
async def test_vision_client_short_reply_is_unavailable() -> None:
  client = _vision_client(lambda request: httpx.Response(200, json=_chat_reply("I can't help with that.")))
  with pytest.raises(CollaboratorUnavailableError, match="no usable description"):
    await client.describe("Describe this person", b"jpeg-bytes", "image/jpeg")


@pytest.mark.anyio
async def test_vision_client_vendor_error_is_unavailable() -> None:
  client = _vision_client(lambda request: httpx.Response(500, json={"error": {"message": "boom", "type": "server_error"}}))
  with pytest.raises(CollaboratorUnavailableError, match="analysis API returned HTTP 500"):
    await client.describe("Describe this product", b"png-bytes", "image/png")


def test_vision_client_requires_key() -> None:
  with pytest.raises(RuntimeError):
    OpenAIVisionClient(_settings(image_api_key=None))
