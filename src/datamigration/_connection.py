"""
Connection handling helper for SQLAlchemy-backed components.

Status stores, table readers and table writers accept either an
``AsyncEngine`` or an ``AsyncConnection``. ``execute_with_connection``
turns both into a connection: an engine gets a fresh connection (inside a
transaction when ``transactional`` is set), a connection is used as-is and
its owner stays responsible for committing.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine


@asynccontextmanager
async def execute_with_connection(
    conn: AsyncConnection | AsyncEngine,
    transactional: bool = True,
) -> AsyncIterator[AsyncConnection]:
    """
    Context manager yielding a connection ready for ``execute()``.

    Args:
        conn: Database connection or engine
        transactional: If True, an engine connection is opened with
            ``begin()`` and committed when the block exits cleanly.
            Has no effect for an existing AsyncConnection.

    Yields:
        AsyncConnection
    """
    if isinstance(conn, AsyncEngine):
        if transactional:
            async with conn.begin() as connection:
                yield connection
        else:
            async with conn.connect() as connection:
                yield connection
    else:
        yield conn


def dialect_name(conn: AsyncConnection | AsyncEngine) -> str:
    """Name of the SQLAlchemy dialect behind ``conn`` (e.g. "postgresql")."""
    return conn.dialect.name
