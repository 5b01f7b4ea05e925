from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from scenecast.api.deps import get_artifact_storage, get_image_client
from scenecast.api.models import ImageCreateRequest, ImageCreateResponse, ImageListResponse, ImageModel
from scenecast.core.database import get_db
from scenecast.core.security import get_current_user
from scenecast.schema.sql import GeneratedImage, User
from scenecast.services.artifact_storage import ArtifactStorage
from scenecast.services.image_client import OpenAIImageClient
from scenecast.services.images import ImageRequest, create_image, delete_image, list_images

router = APIRouter()
logger = logging.getLogger(__name__)


def _image_model(image: GeneratedImage) -> ImageModel:
  return ImageModel(
    image_id=image.image_id,
    prompt=image.prompt,
    url=image.public_url,
    size_bytes=image.size_bytes,
    credits_used=image.credits_used,
    source_image_urls=list(image.source_image_urls or []),
    created_at=image.created_at,
  )


@router.post("", response_model=ImageCreateResponse, status_code=status.HTTP_201_CREATED)
async def generate_image(
  request: ImageCreateRequest,
  current_user: User = Depends(get_current_user),  # noqa: B008
  db: AsyncSession = Depends(get_db),  # noqa: B008
  client: OpenAIImageClient = Depends(get_image_client),  # noqa: B008
  storage: ArtifactStorage = Depends(get_artifact_storage),  # noqa: B008
) -> ImageCreateResponse:
  """Generate or edit one image for one credit; the credit is refunded if the vendor fails."""
  if request.mode == "edit" and not request.source_image_urls:
    raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Edit mode requires at least one source image URL")
  if request.mode == "generate" and request.source_image_urls:
    raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Generate mode does not accept source images")

  # Sources are fetched before any credit is taken.
  sources = tuple([await client.fetch_source(url) for url in request.source_image_urls])
  image_request = ImageRequest(prompt=request.prompt, mode=request.mode, quality=request.quality, size=request.size, source_images=sources, source_image_urls=tuple(request.source_image_urls))
  result = await create_image(db, user_id=current_user.id, request=image_request, collaborator=client, storage=storage)
  return ImageCreateResponse(image=_image_model(result.image), credits_remaining=result.credits_remaining)


@router.get("", response_model=ImageListResponse)
async def get_images(
  page: int = Query(1, ge=1),
  limit: int = Query(20, ge=1, le=100),
  current_user: User = Depends(get_current_user),  # noqa: B008
  db: AsyncSession = Depends(get_db),  # noqa: B008
) -> ImageListResponse:
  items, total = await list_images(db, current_user.id, page=page, limit=limit)
  return ImageListResponse(items=[_image_model(item) for item in items], page=page, limit=limit, total=total)


@router.delete("/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_image(image_id: str, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> None:  # noqa: B008
  if not await delete_image(db, current_user.id, image_id):
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
