"""
Concrete PagedReader and BulkWriter implementations.

- In-memory tables for tests and embedded use.
- SQLAlchemy async reader/writer for any SQLAlchemy-supported database,
  with primary-key upserts on PostgreSQL and SQLite.
"""

from datamigration.tables.in_memory import (
    InMemoryBulkWriter,
    InMemoryPagedReader,
    InMemoryTable,
)
from datamigration.tables.sql import SQLAlchemyBulkWriter, SQLAlchemyPagedReader

__all__ = [
    "InMemoryTable",
    "InMemoryPagedReader",
    "InMemoryBulkWriter",
    "SQLAlchemyPagedReader",
    "SQLAlchemyBulkWriter",
]
