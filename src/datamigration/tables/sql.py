"""
SQLAlchemy-backed table reader and writer.

Both accept an ``AsyncEngine`` or an ``AsyncConnection`` plus a SQLAlchemy
``Table``. With an engine every page write runs in its own transaction and
is committed before ``write_all`` returns; with a connection the caller owns
the transaction.

Usage:
    >>> from sqlalchemy import MetaData, Table
    >>> metadata = MetaData()
    >>> async with source.connect() as conn:
    ...     codifiche = await conn.run_sync(
    ...         lambda sync_conn: Table("CODIFICHE", metadata, autoload_with=sync_conn)
    ...     )
    >>> reader = SQLAlchemyPagedReader(source, codifiche)
    >>> writer = SQLAlchemyBulkWriter(destination, codifiche)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy import Table, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.sql.dml import Insert

from datamigration._connection import dialect_name, execute_with_connection
from datamigration.exceptions import DataAccessError
from datamigration.observability import (
    ATTR_DB_SYSTEM,
    ATTR_DB_TABLE,
    ATTR_PAGE_NUMBER,
    ATTR_PAGE_SIZE,
    ATTR_RECORD_COUNT,
    Tracer,
    create_tracer,
)
from datamigration.paging import Page, PageRequest, Record

logger = logging.getLogger(__name__)


def _primary_key_columns(table: Table) -> list[Any]:
    columns = list(table.primary_key.columns)
    if not columns:
        raise ValueError(f"Table {table.name!r} has no primary key")
    return columns


class SQLAlchemyPagedReader:
    """
    Reads a table in primary-key order with LIMIT/OFFSET.

    One extra row is requested per page to learn whether another page
    exists without a separate count query.
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        table: Table,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._conn = conn
        self._table = table
        self._order_by = _primary_key_columns(table)

    async def read(self, request: PageRequest) -> Page:
        with self._tracer.span(
            "datamigration.table.read",
            {
                ATTR_DB_SYSTEM: dialect_name(self._conn),
                ATTR_DB_TABLE: self._table.name,
                ATTR_PAGE_NUMBER: request.page_number,
                ATTR_PAGE_SIZE: request.page_size,
            },
        ):
            query = (
                select(self._table)
                .order_by(*self._order_by)
                .limit(request.page_size + 1)
                .offset(request.offset)
            )
            try:
                async with execute_with_connection(self._conn, transactional=False) as conn:
                    result = await conn.execute(query)
                    rows = [dict(row._mapping) for row in result.fetchall()]
            except SQLAlchemyError as e:
                raise DataAccessError("read_page", e, table=self._table.name) from e

            has_more = len(rows) > request.page_size
            return Page(
                records=rows[: request.page_size],
                request=request,
                next_request=request.next() if has_more else None,
            )


class SQLAlchemyBulkWriter:
    """
    Writes one page of records per call, upserting by primary key.

    PostgreSQL and SQLite get ``INSERT ... ON CONFLICT DO UPDATE``; other
    dialects get a plain INSERT, so re-copying a page there fails on the
    primary key instead of overwriting.
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        table: Table,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._conn = conn
        self._table = table
        self._key_names = [column.name for column in _primary_key_columns(table)]

    def _statement(self) -> Insert:
        dialect = dialect_name(self._conn)
        if dialect == "postgresql":
            stmt = postgresql.insert(self._table)
        elif dialect == "sqlite":
            stmt = sqlite.insert(self._table)
        else:
            return insert(self._table)

        updates = {
            column.name: stmt.excluded[column.name]
            for column in self._table.columns
            if column.name not in self._key_names
        }
        if not updates:
            return stmt.on_conflict_do_nothing(index_elements=self._key_names)
        return stmt.on_conflict_do_update(index_elements=self._key_names, set_=updates)

    async def write_all(self, records: Sequence[Record]) -> None:
        if not records:
            return

        with self._tracer.span(
            "datamigration.table.write_all",
            {
                ATTR_DB_SYSTEM: dialect_name(self._conn),
                ATTR_DB_TABLE: self._table.name,
                ATTR_RECORD_COUNT: len(records),
            },
        ):
            try:
                async with execute_with_connection(self._conn, transactional=True) as conn:
                    await conn.execute(self._statement(), [dict(r) for r in records])
            except SQLAlchemyError as e:
                raise DataAccessError("write_page", e, table=self._table.name) from e

            logger.debug("Wrote %d records to %s", len(records), self._table.name)


__all__ = [
    "SQLAlchemyPagedReader",
    "SQLAlchemyBulkWriter",
]
