from __future__ import annotations

import datetime
import uuid
from typing import Any

from sqlalchemy import BigInteger, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from scenecast.core.database import Base
from scenecast.schema.tiers import BillingStatus, SubscriptionTier


def _enum_values(enum_cls: type) -> list[str]:
  return [member.value for member in enum_cls]


class User(Base):
  __tablename__ = "users"

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  firebase_uid: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
  email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
  full_name: Mapped[str | None] = mapped_column(String, nullable=True)
  subscription_tier: Mapped[SubscriptionTier] = mapped_column(SAEnum(SubscriptionTier, name="subscription_tier", values_callable=_enum_values), default=SubscriptionTier.NONE, server_default=SubscriptionTier.NONE.value, nullable=False)
  billing_status: Mapped[BillingStatus] = mapped_column(SAEnum(BillingStatus, name="billing_status", values_callable=_enum_values), default=BillingStatus.INACTIVE, server_default=BillingStatus.INACTIVE.value, nullable=False)
  # Raw plan string last received from the payment side.
  plan_source: Mapped[str | None] = mapped_column(String, nullable=True)

  operations_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  period_start: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

  credits_available: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  credits_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  credits_purchased: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class LibraryArtifact(Base):
  __tablename__ = "library_artifacts"
  __table_args__ = (Index("ix_library_artifacts_user_created", "user_id", "created_at"),)

  artifact_id: Mapped[str] = mapped_column(String, primary_key=True)
  user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
  batch_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  operation_index: Mapped[int] = mapped_column(Integer, nullable=False)
  title: Mapped[str] = mapped_column(String, nullable=False)
  public_url: Mapped[str] = mapped_column(Text, nullable=False)
  object_name: Mapped[str | None] = mapped_column(Text, nullable=True)
  size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
  duration_seconds: Mapped[float] = mapped_column(Float, nullable=False)
  prompt: Mapped[str] = mapped_column(Text, nullable=False)
  dialogue: Mapped[str | None] = mapped_column(Text, nullable=True)
  aspect_ratio: Mapped[str] = mapped_column(String, nullable=False)
  provenance: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class SettledArtifact(Base):
  """Append-only log of artifacts whose usage has been committed."""

  __tablename__ = "settled_artifacts"

  artifact_id: Mapped[str] = mapped_column(String, primary_key=True)
  batch_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
  settled_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class GeneratedImage(Base):
  __tablename__ = "generated_images"

  image_id: Mapped[str] = mapped_column(String, primary_key=True)
  user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
  prompt: Mapped[str] = mapped_column(Text, nullable=False)
  edit_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
  source_image_urls: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
  public_url: Mapped[str] = mapped_column(Text, nullable=False)
  size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
  credits_used: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
  provenance: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class CreditLedgerEntry(Base):
  __tablename__ = "credit_ledger"

  id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
  user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
  delta: Mapped[int] = mapped_column(Integer, nullable=False)
  reason: Mapped[str] = mapped_column(String, nullable=False)
  reference: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class MediaAnalysis(Base):
  """Character or product description extracted from a reference photo."""

  __tablename__ = "media_analyses"
  __table_args__ = (Index("ix_media_analyses_user_kind", "user_id", "kind"),)

  analysis_id: Mapped[str] = mapped_column(String, primary_key=True)
  user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
  kind: Mapped[str] = mapped_column(String, nullable=False)
  name: Mapped[str] = mapped_column(String, nullable=False)
  category: Mapped[str | None] = mapped_column(String, nullable=True)
  # "openai" when the vision model answered, "fallback" for the built-in description.
  method: Mapped[str] = mapped_column(String, nullable=False)
  analysis: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
  source_filename: Mapped[str | None] = mapped_column(String, nullable=True)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class RenderTemplate(Base):
  __tablename__ = "render_templates"

  template_id: Mapped[str] = mapped_column(String, primary_key=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  template_type: Mapped[str] = mapped_column(String, nullable=False, default="creatomate", server_default="creatomate")
  creatomate_template_id: Mapped[str | None] = mapped_column(String, nullable=True)
  base_template_id: Mapped[str | None] = mapped_column(String, nullable=True)
  preview_video_url: Mapped[str] = mapped_column(Text, nullable=False)
  thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  scenes: Mapped[int] = mapped_column(Integer, nullable=False)
  duration: Mapped[int] = mapped_column(Integer, nullable=False, default=30, server_default="30")
  aspect_ratio: Mapped[str] = mapped_column(String, nullable=False, default="9:16", server_default="9:16")
  fields: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)
  media_slots: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)
  creatomate_config: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
  category: Mapped[str] = mapped_column(String, nullable=False, default="other", server_default="other")
  tags: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true", index=True)
  usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  created_by: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class RenderEdit(Base):
  """One render requested by a user; the owner row for status reads and edit history."""

  __tablename__ = "render_edits"
  __table_args__ = (Index("ix_render_edits_user_created", "user_id", "created_at"),)

  render_id: Mapped[str] = mapped_column(String, primary_key=True)
  user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
  template_id: Mapped[str] = mapped_column(String, nullable=False)
  batch_id: Mapped[str | None] = mapped_column(String, nullable=True)
  modifications: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
  video_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  status: Mapped[str] = mapped_column(String, nullable=False)
  public_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  error: Mapped[str | None] = mapped_column(Text, nullable=True)
  duration_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)
  file_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
