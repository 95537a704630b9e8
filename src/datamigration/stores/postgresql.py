"""
PostgreSQL status store.

Each run is one row of ``data_migration_runs``; the full ``MigrationRun``
document lives in the ``details`` JSONB column, with ``run_id`` and
``last_executed_step`` duplicated into plain columns for querying.

Usage:
    >>> from sqlalchemy.ext.asyncio import create_async_engine
    >>> engine = create_async_engine("postgresql+asyncpg://...")
    >>> store = PostgreSQLStatusStore(engine)
    >>> await store.create(MigrationRun.create("run-1", ["CODIFICHE"]))
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from datamigration._connection import execute_with_connection
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
from datamigration.stores.schema import STATUS_TABLE

logger = logging.getLogger(__name__)


class PostgreSQLStatusStore:
    """
    PostgreSQL implementation of StatusStore.

    Example:
        >>> async with engine.begin() as conn:
        ...     store = PostgreSQLStatusStore(conn)
        ...     run = await store.get("run-1")
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the store.

        Args:
            conn: Database connection or engine
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._conn = conn

    async def create(self, run: MigrationRun) -> None:
        with self._tracer.span(
            "datamigration.status_store.create",
            {ATTR_RUN_ID: run.run_id, ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text(f"""
                INSERT INTO {STATUS_TABLE} (
                    run_id, last_executed_step, details, created_at, updated_at
                ) VALUES (
                    :run_id, :last_executed_step, CAST(:details AS JSONB),
                    :created_at, :updated_at
                )
            """)
            try:
                async with execute_with_connection(self._conn, transactional=True) as conn:
                    await conn.execute(query, self._params(run))
            except IntegrityError as e:
                raise RunAlreadyExistsError(run.run_id) from e
            except SQLAlchemyError as e:
                raise DataAccessError("create_run", e, table=STATUS_TABLE) from e

            logger.debug("Created status document for run %s", run.run_id)

    async def get(self, run_id: str) -> MigrationRun | None:
        with self._tracer.span(
            "datamigration.status_store.get",
            {ATTR_RUN_ID: run_id, ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text(f"""
                SELECT details
                FROM {STATUS_TABLE}
                WHERE run_id = :run_id
            """)
            try:
                async with execute_with_connection(self._conn, transactional=False) as conn:
                    result = await conn.execute(query, {"run_id": run_id})
                    row = result.fetchone()
            except SQLAlchemyError as e:
                raise DataAccessError("get_run", e, table=STATUS_TABLE) from e

            if row is None:
                return None
            return self._row_to_run(row)

    async def put(self, run: MigrationRun) -> None:
        with self._tracer.span(
            "datamigration.status_store.put",
            {ATTR_RUN_ID: run.run_id, ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text(f"""
                UPDATE {STATUS_TABLE}
                SET last_executed_step = :last_executed_step,
                    details = CAST(:details AS JSONB),
                    updated_at = :updated_at
                WHERE run_id = :run_id
            """)
            try:
                async with execute_with_connection(self._conn, transactional=True) as conn:
                    result = await conn.execute(query, self._params(run))
            except SQLAlchemyError as e:
                raise DataAccessError("put_run", e, table=STATUS_TABLE) from e

            if result.rowcount == 0:
                raise RunNotFoundError(run.run_id)

    async def list_runs(self) -> list[MigrationRun]:
        with self._tracer.span(
            "datamigration.status_store.list_runs",
            {ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text(f"""
                SELECT details
                FROM {STATUS_TABLE}
                ORDER BY created_at ASC
            """)
            try:
                async with execute_with_connection(self._conn, transactional=False) as conn:
                    result = await conn.execute(query)
                    rows = result.fetchall()
            except SQLAlchemyError as e:
                raise DataAccessError("list_runs", e, table=STATUS_TABLE) from e

            return [self._row_to_run(row) for row in rows]

    @staticmethod
    def _params(run: MigrationRun) -> dict[str, Any]:
        return {
            "run_id": run.run_id,
            "last_executed_step": run.last_executed_step,
            "details": run.to_json(),
            "created_at": run.created_at,
            "updated_at": run.updated_at,
        }

    @staticmethod
    def _row_to_run(row: Any) -> MigrationRun:
        # Drivers with a JSONB codec return dicts; asyncpg returns the raw text.
        details = row[0]
        if isinstance(details, dict):
            return MigrationRun.model_validate(details)
        return MigrationRun.from_json(details)


__all__ = ["PostgreSQLStatusStore"]
