"""create scraped_records table

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "scraped_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source", sa.String(length=64), nullable=False),
        sa.Column("natural_key", sa.String(length=512), nullable=False),
        sa.Column("target_key", sa.String(length=255), nullable=False),
        sa.Column("row_type", sa.String(length=32), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("provenance", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_scraped_records"),
        sa.UniqueConstraint(
            "source",
            "natural_key",
            name="uq_scraped_records_source_natural_key",
        ),
    )
    op.create_index(
        "ix_scraped_records_source_target",
        "scraped_records",
        ["source", "target_key"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_scraped_records_source_target", table_name="scraped_records")
    op.drop_table("scraped_records")
