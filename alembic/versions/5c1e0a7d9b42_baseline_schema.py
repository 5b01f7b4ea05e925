"""Baseline schema: users, library, settled log, images, credit ledger.

Revision ID: 5c1e0a7d9b42
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "5c1e0a7d9b42"
down_revision = None
branch_labels = None
depends_on = None

subscription_tier = postgresql.ENUM("none", "basic", "pro", "business", "enterprise", name="subscription_tier", create_type=False)
billing_status = postgresql.ENUM("active", "inactive", "cancelled", name="billing_status", create_type=False)


def upgrade() -> None:
  """Upgrade schema."""
  bind = op.get_bind()
  subscription_tier.create(bind, checkfirst=True)
  billing_status.create(bind, checkfirst=True)

  op.create_table(
    "users",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("firebase_uid", sa.String(), nullable=False),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("full_name", sa.String(), nullable=True),
    sa.Column("subscription_tier", subscription_tier, server_default="none", nullable=False),
    sa.Column("billing_status", billing_status, server_default="inactive", nullable=False),
    sa.Column("plan_source", sa.String(), nullable=True),
    sa.Column("operations_used", sa.Integer(), server_default="0", nullable=False),
    sa.Column("period_start", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("credits_available", sa.Integer(), server_default="0", nullable=False),
    sa.Column("credits_used", sa.Integer(), server_default="0", nullable=False),
    sa.Column("credits_purchased", sa.Integer(), server_default="0", nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_users_firebase_uid"), "users", ["firebase_uid"], unique=True)
  op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

  op.create_table(
    "library_artifacts",
    sa.Column("artifact_id", sa.String(), nullable=False),
    sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("batch_id", sa.String(), nullable=False),
    sa.Column("operation_index", sa.Integer(), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("public_url", sa.Text(), nullable=False),
    sa.Column("object_name", sa.Text(), nullable=True),
    sa.Column("size_bytes", sa.BigInteger(), server_default="0", nullable=False),
    sa.Column("duration_seconds", sa.Float(), nullable=False),
    sa.Column("prompt", sa.Text(), nullable=False),
    sa.Column("dialogue", sa.Text(), nullable=True),
    sa.Column("aspect_ratio", sa.String(), nullable=False),
    sa.Column("provenance", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("artifact_id"),
  )
  op.create_index(op.f("ix_library_artifacts_user_id"), "library_artifacts", ["user_id"], unique=False)
  op.create_index(op.f("ix_library_artifacts_batch_id"), "library_artifacts", ["batch_id"], unique=False)
  op.create_index("ix_library_artifacts_user_created", "library_artifacts", ["user_id", "created_at"], unique=False)

  op.create_table(
    "settled_artifacts",
    sa.Column("artifact_id", sa.String(), nullable=False),
    sa.Column("batch_id", sa.String(), nullable=False),
    sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("settled_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("artifact_id"),
  )
  op.create_index(op.f("ix_settled_artifacts_batch_id"), "settled_artifacts", ["batch_id"], unique=False)

  op.create_table(
    "generated_images",
    sa.Column("image_id", sa.String(), nullable=False),
    sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("prompt", sa.Text(), nullable=False),
    sa.Column("edit_prompt", sa.Text(), nullable=True),
    sa.Column("source_image_urls", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("public_url", sa.Text(), nullable=False),
    sa.Column("size_bytes", sa.BigInteger(), server_default="0", nullable=False),
    sa.Column("credits_used", sa.Integer(), server_default="1", nullable=False),
    sa.Column("provenance", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("image_id"),
  )
  op.create_index(op.f("ix_generated_images_user_id"), "generated_images", ["user_id"], unique=False)

  op.create_table(
    "credit_ledger",
    sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
    sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("delta", sa.Integer(), nullable=False),
    sa.Column("reason", sa.String(), nullable=False),
    sa.Column("reference", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_credit_ledger_user_id"), "credit_ledger", ["user_id"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index(op.f("ix_credit_ledger_user_id"), table_name="credit_ledger")
  op.drop_table("credit_ledger")
  op.drop_index(op.f("ix_generated_images_user_id"), table_name="generated_images")
  op.drop_table("generated_images")
  op.drop_index(op.f("ix_settled_artifacts_batch_id"), table_name="settled_artifacts")
  op.drop_table("settled_artifacts")
  op.drop_index("ix_library_artifacts_user_created", table_name="library_artifacts")
  op.drop_index(op.f("ix_library_artifacts_batch_id"), table_name="library_artifacts")
  op.drop_index(op.f("ix_library_artifacts_user_id"), table_name="library_artifacts")
  op.drop_table("library_artifacts")
  op.drop_index(op.f("ix_users_email"), table_name="users")
  op.drop_index(op.f("ix_users_firebase_uid"), table_name="users")
  op.drop_table("users")
  billing_status.drop(op.get_bind(), checkfirst=True)
  subscription_tier.drop(op.get_bind(), checkfirst=True)
