"""Credit-gated image generation and the generated-image gallery."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Literal

from scenecast.jobs.errors import ArtifactStorageError, CollaboratorUnavailableError
from scenecast.schema.sql import GeneratedImage
from scenecast.services import credits
from scenecast.services.artifact_storage import ArtifactStorage
from scenecast.services.image_client import ImageCollaborator, ImageQuality
from scenecast.utils.ids import generate_image_id
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}


@dataclass(frozen=True)
class ImageRequest:
  prompt: str
  mode: Literal["generate", "edit"] = "generate"
  quality: ImageQuality = "medium"
  size: str = "1024x1024"
  source_images: tuple[bytes, ...] = ()
  source_image_urls: tuple[str, ...] = ()


@dataclass(frozen=True)
class ImageResult:
  image: GeneratedImage
  credits_remaining: int


async def create_image(session: AsyncSession, *, user_id: uuid.UUID, request: ImageRequest, collaborator: ImageCollaborator, storage: ArtifactStorage, image_prefix: str = "images") -> ImageResult:
  """Take one credit, call the vendor, store the output, refund on any failure after the take."""
  if request.mode == "edit" and not request.source_images:
    raise ValueError("edit mode requires at least one source image")
  if request.mode == "generate" and request.source_images:
    raise ValueError("generate mode does not accept source images")

  image_id = generate_image_id()
  # Conditional decrement; raises InsufficientCreditsError when the balance is empty.
  await credits.consume_credit(session, user_id, reference=image_id)

  try:
    if request.mode == "edit":
      payload = await collaborator.edit(request.prompt, list(request.source_images), size=request.size, quality=request.quality)
    else:
      payload = await collaborator.generate(request.prompt, size=request.size, quality=request.quality)
    extension = _EXTENSIONS.get(payload.mime_type, "png")
    object_name = f"{image_prefix}/{image_id}_{int(time.time() * 1000)}.{extension}"
    stored = await storage.store_bytes(payload.data, object_name, payload.mime_type)
  except (CollaboratorUnavailableError, ArtifactStorageError):
    remaining = await credits.refund_credit(session, user_id, reference=image_id)
    logger.warning("Image %s failed for user %s; credit refunded (balance %d)", image_id, user_id, remaining)
    raise

  image = GeneratedImage(
    image_id=image_id,
    user_id=user_id,
    prompt=request.prompt,
    edit_prompt=request.prompt if request.mode == "edit" else None,
    source_image_urls=list(request.source_image_urls),
    public_url=stored.public_url,
    size_bytes=stored.size_bytes,
    credits_used=1,
    provenance={"mode": request.mode, "quality": request.quality, "size": request.size, "objectName": stored.object_name, "revisedPrompt": payload.revised_prompt},
  )
  session.add(image)
  await session.commit()
  await session.refresh(image)
  balance = await credits.get_balance(session, user_id)
  logger.info("Image %s stored for user %s (%d bytes)", image_id, user_id, stored.size_bytes)
  return ImageResult(image=image, credits_remaining=balance.available)


async def list_images(session: AsyncSession, user_id: uuid.UUID, *, page: int = 1, limit: int = 20) -> tuple[list[GeneratedImage], int]:
  page = max(page, 1)
  limit = max(1, min(limit, 100))
  total = int((await session.execute(select(func.count()).select_from(GeneratedImage).where(GeneratedImage.user_id == user_id))).scalar_one())
  stmt = select(GeneratedImage).where(GeneratedImage.user_id == user_id).order_by(GeneratedImage.created_at.desc()).offset((page - 1) * limit).limit(limit)
  return list((await session.execute(stmt)).scalars().all()), total


async def delete_image(session: AsyncSession, user_id: uuid.UUID, image_id: str) -> bool:
  stmt = delete(GeneratedImage).where(GeneratedImage.user_id == user_id, GeneratedImage.image_id == image_id).returning(GeneratedImage.image_id)
  removed = (await session.execute(stmt)).scalar_one_or_none()
  await session.commit()
  return removed is not None
