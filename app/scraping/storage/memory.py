"""
In-memory storage used in test mode and tests.
"""

from __future__ import annotations

import threading
from typing import Any

from app.scraping.storage.base import RecordStorage, UpsertResult, natural_key_string, row_content_hash
from app.scraping.types import NormalizedRecord


class InMemoryRecordStorage(RecordStorage):
    """
    Dict-backed upsert keyed by `(source, natural key)`.
    """

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], tuple[str, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def upsert(self, record: NormalizedRecord) -> UpsertResult:
        inserted = updated = unchanged = 0
        with self._lock:
            for row in record.rows:
                key = (record.source, natural_key_string(row))
                content_hash = row_content_hash(row)
                existing = self._rows.get(key)
                if existing is None:
                    inserted += 1
                elif existing[0] != content_hash:
                    updated += 1
                else:
                    unchanged += 1
                    continue
                self._rows[key] = (content_hash, row.as_payload())
        return UpsertResult(inserted=inserted, updated=updated, unchanged=unchanged)

    def rows(self, source: str | None = None) -> list[dict[str, Any]]:
        with self._lock:
            return [
                payload
                for (row_source, _), (_, payload) in sorted(self._rows.items())
                if source is None or row_source == source
            ]

    def __len__(self) -> int:
        return len(self._rows)
