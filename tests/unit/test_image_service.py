"""Credit-gated image generation: one credit per image, refunded on failure."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from scenecast.jobs.errors import CollaboratorUnavailableError, InsufficientCreditsError
from scenecast.services import credits, images
from scenecast.services.credits import CreditBalance, find_package
from scenecast.services.image_client import GeneratedImagePayload
from scenecast.services.images import ImageRequest
from scenecast.services.library import LibraryPage, LibraryStats
from tests.fakes import USER_ID, FakeArtifactStorage

USER = uuid.UUID(USER_ID)


@pytest.fixture
def credit_calls(monkeypatch: pytest.MonkeyPatch):
  consume = AsyncMock(return_value=4)
  refund = AsyncMock(return_value=5)
  monkeypatch.setattr(credits, "consume_credit", consume)
  monkeypatch.setattr(credits, "refund_credit", refund)
  monkeypatch.setattr(credits, "get_balance", AsyncMock(return_value=CreditBalance(available=4, used=1, purchased=0)))
  return consume, refund


@pytest.mark.anyio
async def test_generate_stores_image_and_takes_one_credit(credit_calls, mock_db_session) -> None:
  consume, refund = credit_calls
  collaborator = MagicMock()
  collaborator.generate = AsyncMock(return_value=GeneratedImagePayload(data=b"png", revised_prompt="a red fox"))
  storage = FakeArtifactStorage()

  result = await images.create_image(mock_db_session, user_id=USER, request=ImageRequest(prompt="fox"), collaborator=collaborator, storage=storage)

  assert result.credits_remaining == 4
  assert result.image.prompt == "fox"
  assert result.image.public_url.startswith("https://storage.test/")
  assert result.image.provenance["revisedPrompt"] == "a red fox"
  consume.assert_awaited_once()
  refund.assert_not_awaited()
  mock_db_session.add.assert_called_once()
  mock_db_session.commit.assert_awaited()


@pytest.mark.anyio
async def test_vendor_failure_refunds_credit(credit_calls, mock_db_session) -> None:
  consume, refund = credit_calls
  collaborator = MagicMock()
  collaborator.generate = AsyncMock(side_effect=CollaboratorUnavailableError("image API returned HTTP 500"))

  with pytest.raises(CollaboratorUnavailableError):
    await images.create_image(mock_db_session, user_id=USER, request=ImageRequest(prompt="fox"), collaborator=collaborator, storage=FakeArtifactStorage())

  reference = consume.await_args.kwargs["reference"]
  refund.assert_awaited_once_with(mock_db_session, USER, reference=reference)
  mock_db_session.add.assert_not_called()


@pytest.mark.anyio
async def test_empty_balance_never_calls_vendor(credit_calls, mock_db_session) -> None:
  consume, refund = credit_calls
  consume.side_effect = InsufficientCreditsError(available=0)
  collaborator = MagicMock()
  collaborator.generate = AsyncMock()

  with pytest.raises(InsufficientCreditsError):
    await images.create_image(mock_db_session, user_id=USER, request=ImageRequest(prompt="fox"), collaborator=collaborator, storage=FakeArtifactStorage())

  collaborator.generate.assert_not_awaited()
  refund.assert_not_awaited()


@pytest.mark.anyio
@pytest.mark.parametrize(
  "request_",
  [ImageRequest(prompt="fox", mode="edit"), ImageRequest(prompt="fox", mode="generate", source_images=(b"img",))],
)
async def test_mode_and_sources_must_agree(credit_calls, mock_db_session, request_) -> None:
  consume, _ = credit_calls
  with pytest.raises(ValueError):
    await images.create_image(mock_db_session, user_id=USER, request=request_, collaborator=MagicMock(), storage=FakeArtifactStorage())
  consume.assert_not_awaited()


def test_library_page_count() -> None:
  stats = LibraryStats(total_videos=0, total_size_bytes=0, batch_count=0, this_month=0)
  assert LibraryPage(items=[], total=41, page=1, limit=20, stats=stats).pages == 3
  assert LibraryPage(items=[], total=0, page=1, limit=20, stats=stats).pages == 0


def test_credit_packages() -> None:
  medium = find_package("medium")
  assert medium is not None and medium.popular
  assert medium.price_in_cents == 5000
  assert find_package("huge") is None
