"""
In-memory tables, readers and writers.

``InMemoryTable`` keeps rows keyed by primary key in insertion order. The
reader pages over that order; the writer upserts by primary key, so writing
a page twice leaves the table unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from datamigration.paging import Page, PageRequest, Record


class InMemoryTable:
    """
    A table held in a dictionary.

    Example:
        >>> table = InMemoryTable("CODIFICHE", primary_key="id")
        >>> table.insert([{"id": 1, "value": "a"}])
        >>> len(table)
        1
    """

    def __init__(
        self,
        name: str,
        primary_key: str | Sequence[str] = "id",
        rows: Iterable[Record] = (),
    ) -> None:
        self.name = name
        self._key_columns = (primary_key,) if isinstance(primary_key, str) else tuple(primary_key)
        if not self._key_columns:
            raise ValueError("primary_key must name at least one column")
        self._rows: dict[tuple[Any, ...], dict[str, Any]] = {}
        self.insert(rows)

    @property
    def key_columns(self) -> tuple[str, ...]:
        return self._key_columns

    def key_of(self, record: Record) -> tuple[Any, ...]:
        """
        Raises:
            KeyError: If the record lacks a primary key column.
        """
        return tuple(record[column] for column in self._key_columns)

    def insert(self, records: Iterable[Record]) -> None:
        """Upsert records by primary key."""
        for record in records:
            self._rows[self.key_of(record)] = dict(record)

    def rows(self) -> list[dict[str, Any]]:
        return [dict(row) for row in self._rows.values()]

    def get(self, *key: Any) -> dict[str, Any] | None:
        row = self._rows.get(tuple(key))
        return dict(row) if row is not None else None

    def clear(self) -> None:
        self._rows.clear()

    def __len__(self) -> int:
        return len(self._rows)

    def __repr__(self) -> str:
        return f"InMemoryTable(name={self.name!r}, rows={len(self._rows)})"


class InMemoryPagedReader:
    """PagedReader over an InMemoryTable."""

    def __init__(self, table: InMemoryTable) -> None:
        self._table = table
        self.requests: list[PageRequest] = []

    async def read(self, request: PageRequest) -> Page:
        self.requests.append(request)
        rows = self._table.rows()
        records = rows[request.offset : request.offset + request.page_size]
        has_more = request.offset + request.page_size < len(rows)
        return Page(
            records=records,
            request=request,
            next_request=request.next() if has_more else None,
        )


class InMemoryBulkWriter:
    """BulkWriter upserting into an InMemoryTable."""

    def __init__(self, table: InMemoryTable) -> None:
        self._table = table
        self.batches: list[int] = []

    async def write_all(self, records: Sequence[Record]) -> None:
        self._table.insert(records)
        self.batches.append(len(records))


__all__ = [
    "InMemoryTable",
    "InMemoryPagedReader",
    "InMemoryBulkWriter",
]
