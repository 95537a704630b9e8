"""
SQL schema for the run status table.

Usage:
    >>> from datamigration.stores.schema import get_schema
    >>> async with engine.begin() as conn:
    ...     await conn.execute(text(get_schema("postgresql")))
"""

from typing import Literal

BackendName = Literal["postgresql", "sqlite"]

STATUS_TABLE = "data_migration_runs"

_POSTGRESQL_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {STATUS_TABLE} (
    run_id              TEXT PRIMARY KEY,
    last_executed_step  TEXT,
    details             JSONB NOT NULL,
    created_at          TIMESTAMPTZ NOT NULL,
    updated_at          TIMESTAMPTZ NOT NULL
)
"""

_SQLITE_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {STATUS_TABLE} (
    run_id              TEXT PRIMARY KEY,
    last_executed_step  TEXT,
    details             TEXT NOT NULL,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL
)
"""


def get_schema(backend: BackendName = "postgresql") -> str:
    """
    DDL creating the status table for a backend.

    Args:
        backend: "postgresql" (default) or "sqlite".

    Raises:
        ValueError: If the backend is not supported.
    """
    if backend == "postgresql":
        return _POSTGRESQL_SCHEMA
    if backend == "sqlite":
        return _SQLITE_SCHEMA
    raise ValueError(f"Unsupported backend {backend!r}; expected 'postgresql' or 'sqlite'")


__all__ = ["BackendName", "STATUS_TABLE", "get_schema"]
