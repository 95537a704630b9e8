"""
Page-level contracts between the copier and the storage backends.

A ``PagedReader`` returns one ``Page`` per call; the page tells the caller
which ``PageRequest`` comes next, or that the source is exhausted
(``next_request is None``). A ``BulkWriter`` commits one page of records
durably before returning.

Backends must wrap their native failures in
:class:`~datamigration.exceptions.DataAccessError`; that is the only
exception type the copier classifies as a hard step failure.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

Record = Mapping[str, Any]
"""One row, keyed by column name."""


@dataclass(frozen=True)
class PageRequest:
    """
    Cursor identifying one page of a source table.

    Attributes:
        page_number: Zero-based page index.
        page_size: Maximum number of records in the page.
    """

    page_number: int
    page_size: int

    def __post_init__(self) -> None:
        if self.page_number < 0:
            raise ValueError(f"page_number must be >= 0, got {self.page_number}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")

    @classmethod
    def first(cls, page_size: int) -> PageRequest:
        return cls(page_number=0, page_size=page_size)

    @property
    def offset(self) -> int:
        """Number of records preceding this page."""
        return self.page_number * self.page_size

    def next(self) -> PageRequest:
        return PageRequest(page_number=self.page_number + 1, page_size=self.page_size)


@dataclass(frozen=True)
class Page:
    """
    One page of records read from a source table.

    Attributes:
        records: Records in source order.
        request: The request that produced this page.
        next_request: Cursor for the following page, None when exhausted.
    """

    records: Sequence[Record]
    request: PageRequest
    next_request: PageRequest | None = field(default=None)

    @property
    def has_more(self) -> bool:
        return self.next_request is not None

    def __len__(self) -> int:
        return len(self.records)


@runtime_checkable
class PagedReader(Protocol):
    """Reads a source table one page at a time."""

    async def read(self, request: PageRequest) -> Page:
        """
        Read the page identified by ``request``.

        Raises:
            DataAccessError: If the source cannot be read.
        """
        ...


@runtime_checkable
class BulkWriter(Protocol):
    """Writes records to a destination table."""

    async def write_all(self, records: Sequence[Record]) -> None:
        """
        Write ``records`` and commit before returning.

        Implementations write by primary key so that writing the same
        record twice leaves a single row.

        Raises:
            DataAccessError: If the destination rejects the write.
        """
        ...


__all__ = [
    "Record",
    "PageRequest",
    "Page",
    "PagedReader",
    "BulkWriter",
]
