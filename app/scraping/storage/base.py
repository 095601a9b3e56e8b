"""
Storage layer interfaces for normalized regulatory records.
"""

from __future__ import annotations

import hashlib
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass

from app.domain.regulatory_records import RegulatoryRow
from app.scraping.types import NormalizedRecord


@dataclass(frozen=True)
class UpsertResult:
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0


def natural_key_string(row: RegulatoryRow) -> str:
    return "|".join(row.natural_key())


def row_content_hash(row: RegulatoryRow) -> str:
    """
    Stable hash of a row's payload, used to skip no-op updates.
    """

    encoded = json.dumps(row.as_payload(), sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class RecordStorage(ABC):
    """
    Storage abstraction for normalized record upserts.
    """

    @abstractmethod
    def upsert(self, record: NormalizedRecord) -> UpsertResult:
        """
        Insert or update every row of `record` by natural key.

        Implementations raise `StorageError` when the record cannot be persisted.
        """
