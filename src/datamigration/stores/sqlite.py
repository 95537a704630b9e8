"""
SQLite status store implementation.

Lightweight, embedded status storage using SQLite with the async aiosqlite
driver. Suitable for development, tests and single-instance deployments.
The table must exist before use; ``initialize()`` creates it.
"""

from __future__ import annotations

import logging

from datamigration.exceptions import (
    DataAccessError,
    RunAlreadyExistsError,
    RunNotFoundError,
)
from datamigration.models import MigrationRun
from datamigration.observability import (
    ATTR_DB_SYSTEM,
    ATTR_RUN_ID,
    Tracer,
    create_tracer,
)
from datamigration.stores.schema import STATUS_TABLE, get_schema

# Optional dependency handling
try:
    import aiosqlite

    SQLITE_AVAILABLE = True
except ImportError:
    SQLITE_AVAILABLE = False
    aiosqlite = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)


class SQLiteNotAvailableError(ImportError):
    """Raised when aiosqlite is not installed."""

    def __init__(self) -> None:
        super().__init__(
            "aiosqlite is required for SQLiteStatusStore. "
            "Install it with: pip install datamigration-py[sqlite]"
        )


class SQLiteStatusStore:
    """
    SQLite implementation of StatusStore.

    Opens one aiosqlite connection per operation and commits before
    returning, so every ``put`` is durable once awaited.

    Example:
        >>> store = SQLiteStatusStore("migration.db")
        >>> await store.initialize()
        >>> await store.create(MigrationRun.create("run-1", ["CODIFICHE"]))
    """

    def __init__(
        self,
        database_path: str,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the SQLite status store.

        Args:
            database_path: Path to the SQLite database file.
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing (default True).
                          Ignored if tracer is explicitly provided.

        Raises:
            SQLiteNotAvailableError: If aiosqlite is not installed.
        """
        if not SQLITE_AVAILABLE:
            raise SQLiteNotAvailableError()

        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._database_path = database_path
        logger.debug("SQLiteStatusStore initialized with %s", database_path)

    async def initialize(self) -> None:
        """Create the status table if it does not exist."""
        try:
            async with aiosqlite.connect(self._database_path) as conn:
                await conn.execute(get_schema("sqlite"))
                await conn.commit()
        except aiosqlite.Error as e:
            raise DataAccessError("initialize", e, table=STATUS_TABLE) from e

    async def create(self, run: MigrationRun) -> None:
        with self._tracer.span(
            "datamigration.status_store.create",
            {ATTR_RUN_ID: run.run_id, ATTR_DB_SYSTEM: "sqlite"},
        ):
            try:
                async with aiosqlite.connect(self._database_path) as conn:
                    await conn.execute(
                        f"""
                        INSERT INTO {STATUS_TABLE} (
                            run_id, last_executed_step, details, created_at, updated_at
                        ) VALUES (?, ?, ?, ?, ?)
                        """,
                        (
                            run.run_id,
                            run.last_executed_step,
                            run.to_json(),
                            run.created_at.isoformat(),
                            run.updated_at.isoformat(),
                        ),
                    )
                    await conn.commit()
            except aiosqlite.IntegrityError as e:
                raise RunAlreadyExistsError(run.run_id) from e
            except aiosqlite.Error as e:
                raise DataAccessError("create_run", e, table=STATUS_TABLE) from e

    async def get(self, run_id: str) -> MigrationRun | None:
        with self._tracer.span(
            "datamigration.status_store.get",
            {ATTR_RUN_ID: run_id, ATTR_DB_SYSTEM: "sqlite"},
        ):
            try:
                async with aiosqlite.connect(self._database_path) as conn:
                    cursor = await conn.execute(
                        f"SELECT details FROM {STATUS_TABLE} WHERE run_id = ?",
                        (run_id,),
                    )
                    row = await cursor.fetchone()
            except aiosqlite.Error as e:
                raise DataAccessError("get_run", e, table=STATUS_TABLE) from e

            if row is None:
                return None
            return MigrationRun.from_json(row[0])

    async def put(self, run: MigrationRun) -> None:
        with self._tracer.span(
            "datamigration.status_store.put",
            {ATTR_RUN_ID: run.run_id, ATTR_DB_SYSTEM: "sqlite"},
        ):
            try:
                async with aiosqlite.connect(self._database_path) as conn:
                    cursor = await conn.execute(
                        f"""
                        UPDATE {STATUS_TABLE}
                        SET last_executed_step = ?, details = ?, updated_at = ?
                        WHERE run_id = ?
                        """,
                        (
                            run.last_executed_step,
                            run.to_json(),
                            run.updated_at.isoformat(),
                            run.run_id,
                        ),
                    )
                    updated = cursor.rowcount
                    await conn.commit()
            except aiosqlite.Error as e:
                raise DataAccessError("put_run", e, table=STATUS_TABLE) from e

            if updated == 0:
                raise RunNotFoundError(run.run_id)

    async def list_runs(self) -> list[MigrationRun]:
        with self._tracer.span(
            "datamigration.status_store.list_runs",
            {ATTR_DB_SYSTEM: "sqlite"},
        ):
            try:
                async with aiosqlite.connect(self._database_path) as conn:
                    cursor = await conn.execute(
                        f"SELECT details FROM {STATUS_TABLE} ORDER BY created_at ASC"
                    )
                    rows = await cursor.fetchall()
            except aiosqlite.Error as e:
                raise DataAccessError("list_runs", e, table=STATUS_TABLE) from e

            return [MigrationRun.from_json(row[0]) for row in rows]


__all__ = [
    "SQLITE_AVAILABLE",
    "SQLiteNotAvailableError",
    "SQLiteStatusStore",
]
