"""
PagedTableCopier - Copies one table from a paged reader to a bulk writer.

The copier reads a page, writes it (the writer commits before returning),
counts the records and advances the cursor. Between pages it asks the
caller-supplied continuation predicate whether to keep going; the predicate
is never consulted mid-page, so a page already in flight always completes.

The result is a tagged outcome rather than an exception:

    - Completed: the source reported no further pages.
    - Interrupted: the predicate stopped the loop with pages remaining.
    - Failed(cause): a DataAccessError aborted the loop. Pages after the
      failing one are never read or written.

Usage:
    >>> copier = PagedTableCopier(reader, writer, page_size=50)
    >>> result = await copier.copy(lambda cursor: cursor is not None)
    >>> if isinstance(result.outcome, Completed):
    ...     print(f"Copied {result.records_copied} records")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from datamigration.exceptions import DataAccessError
from datamigration.models import DEFAULT_PAGE_SIZE
from datamigration.observability import (
    ATTR_PAGE_NUMBER,
    ATTR_PAGE_SIZE,
    Tracer,
    create_tracer,
)
from datamigration.paging import BulkWriter, PagedReader, PageRequest

logger = logging.getLogger(__name__)

ContinuePredicate = Callable[[PageRequest | None], bool]
"""Decides, between pages, whether the loop may read the given next cursor."""


@dataclass(frozen=True)
class Completed:
    """Every page of the source was copied."""


@dataclass(frozen=True)
class Interrupted:
    """
    The copy stopped with pages remaining.

    ``next_request`` is the first page not copied, or None when the step was
    stopped before reading anything.
    """

    next_request: PageRequest | None = None


@dataclass(frozen=True)
class Failed:
    """A data-access failure aborted the copy."""

    cause: DataAccessError


CopyOutcome = Completed | Interrupted | Failed


@dataclass(frozen=True)
class CopyProgress:
    """
    Progress information emitted after each committed page.

    Attributes:
        pages_read: Pages read and written so far.
        records_copied: Records written so far.
        last_page_size: Records in the page just written.
        records_per_second: Throughput since the copy started.
    """

    pages_read: int
    records_copied: int
    last_page_size: int
    records_per_second: float


@dataclass(frozen=True)
class CopyResult:
    """
    Result of one copy invocation.

    Attributes:
        records_copied: Records durably written by this invocation.
        pages_read: Pages read (a failing page counts when its read succeeded).
        duration_seconds: Wall-clock duration.
        outcome: Completed, Interrupted or Failed.
    """

    records_copied: int
    pages_read: int
    duration_seconds: float
    outcome: CopyOutcome

    @property
    def is_complete(self) -> bool:
        return isinstance(self.outcome, Completed)


class PagedTableCopier:
    """
    Copies a source table to a destination table page by page.

    Example:
        >>> copier = PagedTableCopier(reader, writer, page_size=50)
        >>> result = await copier.copy(should_continue)
        >>> result.records_copied
        125

    Attributes:
        _reader: Source of pages.
        _writer: Destination of records.
        _page_size: Records requested per page.
    """

    def __init__(
        self,
        reader: PagedReader,
        writer: BulkWriter,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the copier.

        Args:
            reader: PagedReader over the source table.
            writer: BulkWriter over the destination table.
            page_size: Records per page (default 50).
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing.
                Ignored if tracer is explicitly provided.

        Raises:
            ValueError: If page_size is smaller than 1.
        """
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._reader = reader
        self._writer = writer
        self._page_size = page_size

    @property
    def page_size(self) -> int:
        return self._page_size

    async def copy(
        self,
        should_continue: ContinuePredicate,
        progress_callback: Callable[[CopyProgress], None] | None = None,
    ) -> CopyResult:
        """
        Run the copy loop.

        The first page is always read. After each committed page,
        ``should_continue(next_cursor)`` is evaluated exactly once and the
        loop exits as soon as it is false.

        Args:
            should_continue: Continuation predicate evaluated between pages.
                It receives the next cursor, or None when the source is
                exhausted.
            progress_callback: Optional callback invoked after every page.

        Returns:
            CopyResult with the record counter and the tagged outcome.
        """
        start_time = time.monotonic()
        cursor: PageRequest | None = PageRequest.first(self._page_size)
        records_copied = 0
        pages_read = 0

        with self._tracer.span(
            "datamigration.copier.copy",
            {ATTR_PAGE_SIZE: self._page_size},
        ):
            try:
                while cursor is not None:
                    request = cursor
                    with self._tracer.span(
                        "datamigration.copier.copy_page",
                        {ATTR_PAGE_NUMBER: request.page_number},
                    ):
                        page = await self._reader.read(request)
                        pages_read += 1
                        if page.records:
                            await self._writer.write_all(page.records)
                        records_copied += len(page.records)

                    logger.debug(
                        "Copied page %d (%d records, %d total)",
                        request.page_number,
                        len(page.records),
                        records_copied,
                    )

                    if progress_callback is not None:
                        elapsed = time.monotonic() - start_time
                        progress_callback(
                            CopyProgress(
                                pages_read=pages_read,
                                records_copied=records_copied,
                                last_page_size=len(page.records),
                                records_per_second=(
                                    records_copied / elapsed if elapsed > 0 else 0.0
                                ),
                            )
                        )

                    cursor = page.next_request
                    if not should_continue(cursor):
                        break

            except DataAccessError as e:
                logger.error(
                    "Copy aborted after %d records on page %d: %s",
                    records_copied,
                    pages_read,
                    e,
                )
                return CopyResult(
                    records_copied=records_copied,
                    pages_read=pages_read,
                    duration_seconds=time.monotonic() - start_time,
                    outcome=Failed(cause=e),
                )

            outcome: CopyOutcome = Completed() if cursor is None else Interrupted(cursor)
            duration = time.monotonic() - start_time
            logger.debug(
                "Copy finished: %d records in %d pages (%.3fs, %s)",
                records_copied,
                pages_read,
                duration,
                type(outcome).__name__,
            )
            return CopyResult(
                records_copied=records_copied,
                pages_read=pages_read,
                duration_seconds=duration,
                outcome=outcome,
            )


__all__ = [
    "ContinuePredicate",
    "Completed",
    "Interrupted",
    "Failed",
    "CopyOutcome",
    "CopyProgress",
    "CopyResult",
    "PagedTableCopier",
]
