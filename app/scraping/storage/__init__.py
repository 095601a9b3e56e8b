"""
Storage layer exports.
"""

from app.scraping.storage.base import RecordStorage, UpsertResult, row_content_hash
from app.scraping.storage.memory import InMemoryRecordStorage
from app.scraping.storage.sqlalchemy_storage import SQLAlchemyRecordStorage

__all__ = [
    "InMemoryRecordStorage",
    "RecordStorage",
    "SQLAlchemyRecordStorage",
    "UpsertResult",
    "row_content_hash",
]
