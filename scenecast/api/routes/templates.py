from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from scenecast.api.models import TemplateCreateRequest, TemplateListResponse, TemplateModel, TemplateUpdateRequest
from scenecast.core.database import get_db
from scenecast.core.security import get_current_user
from scenecast.schema.sql import RenderTemplate, User
from scenecast.services.templates import DuplicateTemplateError, create_template, deactivate_template, get_template, list_templates, update_template

router = APIRouter()
logger = logging.getLogger(__name__)

NULLABLE_TEMPLATE_FIELDS = frozenset({"description", "creatomate_template_id", "base_template_id", "thumbnail_url", "creatomate_config"})


def template_model(template: RenderTemplate) -> TemplateModel:
  return TemplateModel(
    template_id=template.template_id,
    name=template.name,
    description=template.description,
    template_type=template.template_type,
    creatomate_template_id=template.creatomate_template_id,
    base_template_id=template.base_template_id,
    preview_video_url=template.preview_video_url,
    thumbnail_url=template.thumbnail_url,
    scenes=template.scenes,
    duration=template.duration,
    aspect_ratio=template.aspect_ratio,
    fields=list(template.fields or []),
    media_slots=list(template.media_slots or []),
    category=template.category,
    tags=list(template.tags or []),
    is_active=template.is_active,
    usage_count=template.usage_count,
    created_at=template.created_at,
  )


@router.get("", response_model=TemplateListResponse)
async def get_templates(category: str | None = Query(None), current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TemplateListResponse:  # noqa: B008
  templates = await list_templates(db, category=category)
  return TemplateListResponse(items=[template_model(template) for template in templates], total=len(templates))


@router.get("/{template_id}", response_model=TemplateModel)
async def get_template_by_id(template_id: str, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TemplateModel:  # noqa: B008
  template = await get_template(db, template_id)
  if template is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
  return template_model(template)


@router.post("", response_model=TemplateModel, status_code=status.HTTP_201_CREATED)
async def add_template(request: TemplateCreateRequest, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TemplateModel:  # noqa: B008
  values = request.model_dump()
  values["fields"] = [field.model_dump(by_alias=True) for field in request.fields]
  try:
    template = await create_template(db, created_by=current_user.id, values=values)
  except DuplicateTemplateError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Template ID already exists") from exc
  return template_model(template)


@router.put("/{template_id}", response_model=TemplateModel)
async def edit_template(template_id: str, request: TemplateUpdateRequest, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TemplateModel:  # noqa: B008
  changes = {key: value for key, value in request.model_dump(exclude_unset=True).items() if value is not None or key in NULLABLE_TEMPLATE_FIELDS}
  if request.fields is not None:
    changes["fields"] = [field.model_dump(by_alias=True) for field in request.fields]
  template = await update_template(db, template_id, changes)
  if template is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
  logger.info("Template %s updated by %s fields=%s", template_id, current_user.id, sorted(changes))
  return template_model(template)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_template(template_id: str, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> None:  # noqa: B008
  if not await deactivate_template(db, template_id):
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
