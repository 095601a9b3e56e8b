"""
db/models/scraped_record.py

One normalized regulatory row, keyed by source and natural key.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class ScrapedRecord(TimestampMixin, Base):
    __tablename__ = "scraped_records"
    __table_args__ = (
        UniqueConstraint("source", "natural_key", name="uq_scraped_records_source_natural_key"),
        Index("ix_scraped_records_source_target", "source", "target_key"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    source: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="ccass, hksfc, sfc-statistics, hkex-disclosure",
    )
    natural_key: Mapped[str] = mapped_column(String(512), nullable=False)
    target_key: Mapped[str] = mapped_column(String(255), nullable=False)
    row_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="filing, holding, statistic, disclosure",
    )
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    provenance: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)

    def __repr__(self) -> str:
        return f"<ScrapedRecord source={self.source!r} natural_key={self.natural_key!r}>"
