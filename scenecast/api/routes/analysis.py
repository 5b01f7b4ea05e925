"""Router for character and product photo analysis."""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from scenecast.api.deps import get_vision_client
from scenecast.api.models import AnalysisListResponse, AnalysisModel
from scenecast.config import Settings, get_settings
from scenecast.core.database import get_db
from scenecast.core.security import get_current_user
from scenecast.schema.sql import MediaAnalysis, User
from scenecast.services.analysis import analyze_character, analyze_product, get_analysis, list_analyses
from scenecast.services.analysis_client import VisionAnalyzer

router = APIRouter()
logger = logging.getLogger(__name__)

# Define file and form defaults once to avoid inline function calls.
IMAGE_FIELD = File(...)
DESCRIPTION_FIELD = Form(None)


def analysis_model(record: MediaAnalysis) -> AnalysisModel:
  return AnalysisModel(
    analysis_id=record.analysis_id,
    kind=record.kind,
    name=record.name,
    category=record.category,
    method=record.method,
    description=record.description,
    source_filename=record.source_filename,
    analysis=record.analysis,
    created_at=record.created_at,
  )


async def read_image(upload: UploadFile, max_bytes: int) -> tuple[bytes, str]:
  """Read an uploaded photo, rejecting non-images and oversized files."""
  mime_type = (upload.content_type or "").lower()
  if not mime_type.startswith("image/"):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only image files are allowed")
  # One extra byte tells an exact-limit file from an oversized one.
  content = await upload.read(max_bytes + 1)
  if len(content) > max_bytes:
    raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=f"Image exceeds {max_bytes} byte limit")
  if not content:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image file is empty")
  return content, mime_type


@router.post("/character", response_model=AnalysisModel, status_code=status.HTTP_201_CREATED)
async def create_character_analysis(
  image: UploadFile = IMAGE_FIELD,
  current_user: User = Depends(get_current_user),  # noqa: B008
  db: AsyncSession = Depends(get_db),  # noqa: B008
  analyzer: VisionAnalyzer | None = Depends(get_vision_client),  # noqa: B008
  settings: Settings = Depends(get_settings),  # noqa: B008
) -> AnalysisModel:
  """Describe the person in a reference photo so scenes can reproduce them exactly."""
  content, mime_type = await read_image(image, settings.analysis_max_image_bytes)
  record = await analyze_character(db, user_id=current_user.id, image=content, mime_type=mime_type, filename=image.filename, analyzer=analyzer)
  return analysis_model(record)


@router.post("/product", response_model=AnalysisModel, status_code=status.HTTP_201_CREATED)
async def create_product_analysis(
  image: UploadFile = IMAGE_FIELD,
  description: str | None = DESCRIPTION_FIELD,
  current_user: User = Depends(get_current_user),  # noqa: B008
  db: AsyncSession = Depends(get_db),  # noqa: B008
  analyzer: VisionAnalyzer | None = Depends(get_vision_client),  # noqa: B008
  settings: Settings = Depends(get_settings),  # noqa: B008
) -> AnalysisModel:
  content, mime_type = await read_image(image, settings.analysis_max_image_bytes)
  record = await analyze_product(db, user_id=current_user.id, image=content, mime_type=mime_type, filename=image.filename, description=description, analyzer=analyzer)
  return analysis_model(record)


@router.get("", response_model=AnalysisListResponse)
async def get_analyses(
  kind: Literal["character", "product"] | None = Query(None),
  limit: int = Query(50, ge=1, le=100),
  current_user: User = Depends(get_current_user),  # noqa: B008
  db: AsyncSession = Depends(get_db),  # noqa: B008
) -> AnalysisListResponse:
  records = await list_analyses(db, current_user.id, kind=kind, limit=limit)
  return AnalysisListResponse(items=[analysis_model(record) for record in records])


@router.get("/{analysis_id}", response_model=AnalysisModel)
async def get_analysis_by_id(analysis_id: str, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> AnalysisModel:  # noqa: B008
  record = await get_analysis(db, current_user.id, analysis_id)
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Analysis not found")
  return analysis_model(record)
