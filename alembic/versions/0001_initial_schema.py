"""initial schema: stores, audits, images

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "stores",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("store_code", sa.String(50), nullable=False),
        sa.Column("store_name", sa.String(200), nullable=False),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="not_audited"),
        sa.Column("failed_reason", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_stores_store_code", "stores", ["store_code"], unique=True)
    op.create_index("ix_stores_status", "stores", ["status"])

    op.create_table(
        "audits",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("store_id", sa.String(36), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("result", sa.String(20), nullable=True),
        sa.Column("failed_reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("audit_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_image_count", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_audits_user_id", "audits", ["user_id"])
    op.create_index("ix_audits_store_id", "audits", ["store_id"])
    op.create_index("ix_audits_result", "audits", ["result"])
    op.create_index("ix_audits_audit_date", "audits", ["audit_date"])

    op.create_table(
        "images",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("audit_id", sa.String(36), sa.ForeignKey("audits.id", ondelete="CASCADE"), nullable=False),
        sa.Column("image_url", sa.String(500), nullable=False),
        sa.Column("reference_image_url", sa.String(500), nullable=True),
        sa.Column("storage_id", sa.String(255), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("slot_index", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("audit_id", "slot_index", name="uq_images_audit_slot"),
    )
    op.create_index("ix_images_audit_id", "images", ["audit_id"])


def downgrade() -> None:
    op.drop_index("ix_images_audit_id", table_name="images")
    op.drop_table("images")
    for name in ("ix_audits_audit_date", "ix_audits_result", "ix_audits_store_id", "ix_audits_user_id"):
        op.drop_index(name, table_name="audits")
    op.drop_table("audits")
    op.drop_index("ix_stores_status", table_name="stores")
    op.drop_index("ix_stores_store_code", table_name="stores")
    op.drop_table("stores")
