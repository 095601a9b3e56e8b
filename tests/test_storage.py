"""
tests/test_storage.py

Pytest tests for record storage: in-memory upsert counts, content hashing,
and the SQLAlchemy adapter's transaction handling against a fake session.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from app.domain.regulatory_records import FilingRow, HoldingRow
from app.scraping.errors import StorageError
from app.scraping.storage import InMemoryRecordStorage, SQLAlchemyRecordStorage, UpsertResult, row_content_hash
from app.scraping.types import NormalizedRecord, Provenance, StrategyKind


def _holding(participant_id: str, shareholding: int) -> HoldingRow:
    return HoldingRow(
        stock_code="00700",
        participant_id=participant_id,
        participant_name=f"Participant {participant_id}",
        shareholding=shareholding,
        data_date=date(2025, 1, 15),
    )


def _record(*rows, source: str = "ccass", target_key: str = "00700") -> NormalizedRecord:
    return NormalizedRecord(
        source=source,
        target_key=target_key,
        rows=tuple(rows),
        provenance=Provenance(
            source=source,
            target_key=target_key,
            attempt_count=1,
            strategy_used=StrategyKind.MOCK,
        ),
    )


# ---------------------------------------------------------------------------
# In-memory storage
# ---------------------------------------------------------------------------


class TestInMemoryRecordStorage:
    def test_insert_update_and_unchanged_counts(self) -> None:
        storage = InMemoryRecordStorage()

        first = storage.upsert(_record(_holding("C00019", 100), _holding("C00010", 200)))
        second = storage.upsert(_record(_holding("C00019", 100), _holding("C00010", 250), _holding("C00039", 5)))

        assert first == UpsertResult(inserted=2)
        assert second == UpsertResult(inserted=1, updated=1, unchanged=1)
        assert len(storage) == 3

    def test_rerun_with_identical_rows_changes_nothing(self) -> None:
        storage = InMemoryRecordStorage()
        record = _record(_holding("C00019", 100))

        storage.upsert(record)
        before = storage.rows()
        result = storage.upsert(record)

        assert result == UpsertResult(unchanged=1)
        assert storage.rows() == before

    def test_rows_filter_by_source(self) -> None:
        storage = InMemoryRecordStorage()
        storage.upsert(_record(_holding("C00019", 100)))
        storage.upsert(
            _record(
                FilingRow(
                    reference="hksfc-25PR08",
                    title="SFC reprimands broker",
                    filing_type="enforcement",
                    filing_date=date(2025, 1, 15),
                    tags=("securities",),
                ),
                source="hksfc",
                target_key="news",
            )
        )

        filings = storage.rows("hksfc")

        assert len(filings) == 1
        assert filings[0]["filing_date"] == "2025-01-15"
        assert filings[0]["tags"] == ["securities"]
        assert len(storage.rows()) == 2


class TestContentHash:
    def test_hash_is_stable_and_sensitive_to_payload(self) -> None:
        row = _holding("C00019", 100)

        assert row_content_hash(row) == row_content_hash(_holding("C00019", 100))
        assert row_content_hash(row) != row_content_hash(replace(row, shareholding=101))
        assert len(row_content_hash(row)) == 64


# ---------------------------------------------------------------------------
# SQLAlchemy storage
# ---------------------------------------------------------------------------


class FakeSession:
    def __init__(self, results: list[list[tuple[bool]]] | Exception) -> None:
        self._results = results
        self.statements: list[object] = []
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def execute(self, statement):
        self.statements.append(statement)
        if isinstance(self._results, Exception):
            raise self._results
        return iter(self._results.pop(0))

    def commit(self) -> None:
        self.committed = True

    def rollback(self) -> None:
        self.rolled_back = True

    def close(self) -> None:
        self.closed = True


class TestSQLAlchemyRecordStorage:
    def test_returned_flags_split_inserts_and_updates(self) -> None:
        session = FakeSession([[(True,), (False,)]])
        storage = SQLAlchemyRecordStorage(session_factory=lambda: session)

        result = storage.upsert(_record(_holding("C00019", 1), _holding("C00010", 2), _holding("C00039", 3)))

        assert result == UpsertResult(inserted=1, updated=1, unchanged=1)
        assert session.committed is True
        assert session.closed is True

    def test_rows_are_chunked_by_batch_size(self) -> None:
        session = FakeSession([[(True,), (True,)], [(True,)]])
        storage = SQLAlchemyRecordStorage(session_factory=lambda: session, batch_size=2)

        result = storage.upsert(_record(_holding("C00019", 1), _holding("C00010", 2), _holding("C00039", 3)))

        assert result.inserted == 3
        assert len(session.statements) == 2

    def test_empty_record_skips_the_database(self) -> None:
        def factory():
            raise AssertionError("session must not be opened")

        assert SQLAlchemyRecordStorage(session_factory=factory).upsert(_record()) == UpsertResult()

    def test_database_error_rolls_back_and_raises_storage_error(self) -> None:
        session = FakeSession(OperationalError("INSERT", {}, Exception("connection reset")))
        storage = SQLAlchemyRecordStorage(session_factory=lambda: session)

        with pytest.raises(StorageError, match="ccass/00700"):
            storage.upsert(_record(_holding("C00019", 1)))

        assert session.rolled_back is True
        assert session.committed is False
        assert session.closed is True
