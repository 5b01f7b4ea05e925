"""Media analyses, render template catalogue and render edit history.

Revision ID: 8a4f2c6e1d37
Revises: 5c1e0a7d9b42
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "8a4f2c6e1d37"
down_revision = "5c1e0a7d9b42"
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "media_analyses",
    sa.Column("analysis_id", sa.String(), nullable=False),
    sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("kind", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("category", sa.String(), nullable=True),
    sa.Column("method", sa.String(), nullable=False),
    sa.Column("analysis", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("source_filename", sa.String(), nullable=True),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("analysis_id"),
  )
  op.create_index("ix_media_analyses_user_kind", "media_analyses", ["user_id", "kind"], unique=False)

  op.create_table(
    "render_templates",
    sa.Column("template_id", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("template_type", sa.String(), server_default="creatomate", nullable=False),
    sa.Column("creatomate_template_id", sa.String(), nullable=True),
    sa.Column("base_template_id", sa.String(), nullable=True),
    sa.Column("preview_video_url", sa.Text(), nullable=False),
    sa.Column("thumbnail_url", sa.Text(), nullable=True),
    sa.Column("scenes", sa.Integer(), nullable=False),
    sa.Column("duration", sa.Integer(), server_default="30", nullable=False),
    sa.Column("aspect_ratio", sa.String(), server_default="9:16", nullable=False),
    sa.Column("fields", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("media_slots", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("creatomate_config", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("category", sa.String(), server_default="other", nullable=False),
    sa.Column("tags", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
    sa.Column("usage_count", sa.Integer(), server_default="0", nullable=False),
    sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
    sa.PrimaryKeyConstraint("template_id"),
  )
  op.create_index(op.f("ix_render_templates_is_active"), "render_templates", ["is_active"], unique=False)

  op.create_table(
    "render_edits",
    sa.Column("render_id", sa.String(), nullable=False),
    sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("template_id", sa.String(), nullable=False),
    sa.Column("batch_id", sa.String(), nullable=True),
    sa.Column("modifications", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("video_count", sa.Integer(), server_default="0", nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("public_url", sa.Text(), nullable=True),
    sa.Column("error", sa.Text(), nullable=True),
    sa.Column("duration_seconds", sa.Float(), nullable=True),
    sa.Column("file_size", sa.BigInteger(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("render_id"),
  )
  op.create_index("ix_render_edits_user_created", "render_edits", ["user_id", "created_at"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("ix_render_edits_user_created", table_name="render_edits")
  op.drop_table("render_edits")
  op.drop_index(op.f("ix_render_templates_is_active"), table_name="render_templates")
  op.drop_table("render_templates")
  op.drop_index("ix_media_analyses_user_kind", table_name="media_analyses")
  op.drop_table("media_analyses")
