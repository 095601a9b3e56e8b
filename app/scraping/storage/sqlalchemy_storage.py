"""
SQLAlchemy-backed storage implementation for normalized records.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy import func, literal_column
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.scraping.errors import StorageError
from app.scraping.storage.base import RecordStorage, UpsertResult, natural_key_string, row_content_hash
from app.scraping.types import NormalizedRecord
from db.models.scraped_record import ScrapedRecord


class SQLAlchemyRecordStorage(RecordStorage):
    """
    Upsert rows with PostgreSQL `ON CONFLICT`, one transaction per record.

    Rows whose content hash is unchanged are left untouched.
    """

    def __init__(self, *, session_factory: Callable[[], Session], batch_size: int = 500) -> None:
        self._session_factory = session_factory
        self._batch_size = max(1, batch_size)

    def upsert(self, record: NormalizedRecord) -> UpsertResult:
        if not record.rows:
            return UpsertResult()

        values = [
            {
                "source": record.source,
                "natural_key": natural_key_string(row),
                "target_key": record.target_key,
                "row_type": row.row_type,
                "payload": row.as_payload(),
                "content_hash": row_content_hash(row),
                "provenance": record.provenance.as_dict(),
            }
            for row in record.rows
        ]

        inserted = updated = 0
        session = self._session_factory()
        try:
            for start in range(0, len(values), self._batch_size):
                chunk = values[start : start + self._batch_size]
                stmt = pg_insert(ScrapedRecord).values(chunk)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[ScrapedRecord.source, ScrapedRecord.natural_key],
                    set_={
                        "payload": stmt.excluded.payload,
                        "content_hash": stmt.excluded.content_hash,
                        "provenance": stmt.excluded.provenance,
                        "target_key": stmt.excluded.target_key,
                        "updated_at": func.now(),
                    },
                    where=ScrapedRecord.content_hash != stmt.excluded.content_hash,
                ).returning(literal_column("(xmax = 0)").label("inserted"))
                for (was_inserted,) in session.execute(stmt):
                    if was_inserted:
                        inserted += 1
                    else:
                        updated += 1
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(f"{record.source}/{record.target_key}: upsert failed: {exc}") from exc
        finally:
            session.close()

        return UpsertResult(
            inserted=inserted,
            updated=updated,
            unchanged=len(values) - inserted - updated,
        )
