"""Table helpers used across the test suite."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from datamigration.exceptions import DataAccessError
from datamigration.paging import Page, PageRequest, Record
from datamigration.state import SharedRunState
from datamigration.tables import InMemoryBulkWriter, InMemoryPagedReader, InMemoryTable


def make_rows(count: int, start: int = 1) -> list[dict[str, Any]]:
    """Rows with ids ``start`` .. ``start + count - 1``."""
    return [{"id": i, "code": f"C{i:04d}", "value": i * 10} for i in range(start, start + count)]


def make_table(name: str, count: int = 0) -> InMemoryTable:
    return InMemoryTable(name, primary_key="id", rows=make_rows(count))


class FailingWriter(InMemoryBulkWriter):
    """Writer that raises DataAccessError on the given 1-based call."""

    def __init__(self, table: InMemoryTable, fail_on_call: int) -> None:
        super().__init__(table)
        self.fail_on_call = fail_on_call
        self.calls = 0

    async def write_all(self, records: Sequence[Record]) -> None:
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise DataAccessError("write_page", "constraint violated", table=self._table.name)
        await super().write_all(records)


class FailingReader(InMemoryPagedReader):
    """Reader that raises DataAccessError for the given page number."""

    def __init__(self, table: InMemoryTable, fail_on_page: int) -> None:
        super().__init__(table)
        self.fail_on_page = fail_on_page

    async def read(self, request: PageRequest) -> Page:
        if request.page_number == self.fail_on_page:
            self.requests.append(request)
            raise DataAccessError("read_page", "connection reset", table=self._table.name)
        return await super().read(request)


class BlockingWriter(InMemoryBulkWriter):
    """Writer that requests a block on the run once N pages are written."""

    def __init__(self, table: InMemoryTable, state: SharedRunState, block_after: int) -> None:
        super().__init__(table)
        self.state = state
        self.block_after = block_after

    async def write_all(self, records: Sequence[Record]) -> None:
        await super().write_all(records)
        if len(self.batches) == self.block_after:
            self.state.request_block()
