"""Render template catalogue service."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from scenecast.schema.sql import RenderTemplate
from scenecast.services import templates
from tests.fakes import USER_ID


def _template(**overrides) -> RenderTemplate:
  values = {"template_id": "promo_9x16", "name": "Promo", "preview_video_url": "https://cdn.test/promo.mp4", "scenes": 3, "creatomate_template_id": "creatomate-abc", "is_active": True}
  values.update(overrides)
  return RenderTemplate(**values)


def _returning(session, value) -> None:
  result = MagicMock()
  result.scalar_one_or_none.return_value = value
  session.execute = AsyncMock(return_value=result)


@pytest.mark.anyio
async def test_create_rejects_existing_id(mock_db_session) -> None:
  _returning(mock_db_session, _template())

  with pytest.raises(templates.DuplicateTemplateError) as excinfo:
    await templates.create_template(mock_db_session, created_by=uuid.UUID(USER_ID), values={"template_id": "promo_9x16", "name": "Again"})

  assert excinfo.value.template_id == "promo_9x16"
  mock_db_session.add.assert_not_called()
  mock_db_session.commit.assert_not_awaited()


@pytest.mark.anyio
async def test_create_stores_template_with_creator(mock_db_session) -> None:
  template = await templates.create_template(mock_db_session, created_by=uuid.UUID(USER_ID), values={"template_id": "new", "name": "New", "preview_video_url": "https://cdn.test/new.mp4", "scenes": 2})

  assert (template.template_id, template.created_by) == ("new", uuid.UUID(USER_ID))
  mock_db_session.add.assert_called_once_with(template)
  mock_db_session.commit.assert_awaited_once()


@pytest.mark.anyio
async def test_update_missing_template_returns_none(mock_db_session) -> None:
  assert await templates.update_template(mock_db_session, "missing", {"name": "x"}) is None
  mock_db_session.commit.assert_not_awaited()


@pytest.mark.anyio
async def test_update_applies_changes(mock_db_session) -> None:
  stored = _template()
  _returning(mock_db_session, stored)

  updated = await templates.update_template(mock_db_session, "promo_9x16", {"name": "Promo v2", "duration": 45})

  assert updated is stored
  assert (stored.name, stored.duration) == ("Promo v2", 45)
  mock_db_session.commit.assert_awaited_once()


@pytest.mark.anyio
async def test_delete_is_soft(mock_db_session) -> None:
  stored = _template()
  _returning(mock_db_session, stored)

  assert await templates.deactivate_template(mock_db_session, "promo_9x16") is True
  assert stored.is_active is False
  mock_db_session.delete.assert_not_called()


@pytest.mark.anyio
async def test_delete_missing_template(mock_db_session) -> None:
  assert await templates.deactivate_template(mock_db_session, "missing") is False


@pytest.mark.anyio
async def test_resolve_catalogue_template_counts_use(mock_db_session) -> None:
  _returning(mock_db_session, _template())

  assert await templates.resolve_render_template(mock_db_session, "promo_9x16") == "creatomate-abc"
  # Lookup plus the usage counter update.
  assert mock_db_session.execute.await_count == 2


@pytest.mark.anyio
@pytest.mark.parametrize("stored", [None, _template(is_active=False)], ids=["unknown", "inactive"])
async def test_resolve_passes_other_ids_through(mock_db_session, stored) -> None:
  _returning(mock_db_session, stored)

  assert await templates.resolve_render_template(mock_db_session, "vendor-tpl-1") == "vendor-tpl-1"
  assert mock_db_session.execute.await_count == 1


@pytest.mark.anyio
async def test_resolve_falls_back_to_base_template(mock_db_session) -> None:
  _returning(mock_db_session, _template(creatomate_template_id=None, base_template_id="base-1"))
  assert await templates.resolve_render_template(mock_db_session, "promo_9x16") == "base-1"
