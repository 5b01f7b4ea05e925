"""Render template catalogue."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from scenecast.schema.sql import RenderTemplate
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class DuplicateTemplateError(ValueError):
  def __init__(self, template_id: str) -> None:
    super().__init__(f"template {template_id} already exists")
    self.template_id = template_id


async def list_templates(session: AsyncSession, *, category: str | None = None) -> list[RenderTemplate]:
  """Active templates, newest first."""
  stmt = select(RenderTemplate).where(RenderTemplate.is_active.is_(True))
  if category:
    stmt = stmt.where(RenderTemplate.category == category)
  stmt = stmt.order_by(RenderTemplate.created_at.desc())
  return list((await session.execute(stmt)).scalars().all())


async def get_template(session: AsyncSession, template_id: str) -> RenderTemplate | None:
  return (await session.execute(select(RenderTemplate).where(RenderTemplate.template_id == template_id))).scalar_one_or_none()


async def create_template(session: AsyncSession, *, created_by: uuid.UUID, values: dict[str, Any]) -> RenderTemplate:
  template_id = values["template_id"]
  if await get_template(session, template_id) is not None:
    raise DuplicateTemplateError(template_id)
  template = RenderTemplate(**values, created_by=created_by)
  session.add(template)
  await session.commit()
  await session.refresh(template)
  logger.info("Template %s created by %s", template_id, created_by)
  return template


async def update_template(session: AsyncSession, template_id: str, changes: dict[str, Any]) -> RenderTemplate | None:
  template = await get_template(session, template_id)
  if template is None:
    return None
  for key, value in changes.items():
    setattr(template, key, value)
  await session.commit()
  await session.refresh(template)
  return template


async def deactivate_template(session: AsyncSession, template_id: str) -> bool:
  """Soft delete: the row stays for renders that already reference it."""
  template = await get_template(session, template_id)
  if template is None:
    return False
  template.is_active = False
  await session.commit()
  logger.info("Template %s deactivated", template_id)
  return True


async def resolve_render_template(session: AsyncSession, template_id: str) -> str:
  """Return the vendor template id to render, counting a use of catalogue templates.

  Ids that are not in the active catalogue are passed through to the vendor as-is.
  """
  template = await get_template(session, template_id)
  if template is None or not template.is_active:
    return template_id
  await session.execute(update(RenderTemplate).where(RenderTemplate.template_id == template_id).values(usage_count=RenderTemplate.usage_count + 1))
  return template.creatomate_template_id or template.base_template_id or template.template_id
