"""
Status stores for migration runs.

A status store persists one ``MigrationRun`` document per run.

Implementations:
    - InMemoryStatusStore: process-local, for tests
    - PostgreSQLStatusStore: SQLAlchemy async with a JSONB document column
    - SQLiteStatusStore: aiosqlite (requires the ``sqlite`` extra)
"""

from datamigration.stores.in_memory import InMemoryStatusStore
from datamigration.stores.interface import StatusStore
from datamigration.stores.postgresql import PostgreSQLStatusStore
from datamigration.stores.schema import STATUS_TABLE, get_schema
from datamigration.stores.sqlite import (
    SQLITE_AVAILABLE,
    SQLiteNotAvailableError,
    SQLiteStatusStore,
)

__all__ = [
    "StatusStore",
    "InMemoryStatusStore",
    "PostgreSQLStatusStore",
    "SQLiteStatusStore",
    "SQLITE_AVAILABLE",
    "SQLiteNotAvailableError",
    "STATUS_TABLE",
    "get_schema",
]
