"""Tests for the in-memory table, reader and writer."""

import pytest

from datamigration.paging import PageRequest
from datamigration.tables import InMemoryBulkWriter, InMemoryPagedReader, InMemoryTable
from tests.fixtures import make_rows, make_table


class TestInMemoryTable:
    def test_upsert_by_primary_key(self) -> None:
        table = InMemoryTable("T", rows=[{"id": 1, "value": "a"}])

        table.insert([{"id": 1, "value": "b"}, {"id": 2, "value": "c"}])

        assert len(table) == 2
        assert table.get(1) == {"id": 1, "value": "b"}

    def test_composite_key(self) -> None:
        table = InMemoryTable("T", primary_key=("year", "code"))
        table.insert([{"year": 2024, "code": "A", "n": 1}, {"year": 2025, "code": "A", "n": 2}])

        assert table.key_columns == ("year", "code")
        assert table.get(2025, "A")["n"] == 2

    def test_requires_key_column(self) -> None:
        with pytest.raises(ValueError):
            InMemoryTable("T", primary_key=())

    def test_record_without_key(self) -> None:
        with pytest.raises(KeyError):
            InMemoryTable("T").insert([{"value": 1}])

    def test_rows_are_copies(self) -> None:
        table = make_table("T", 1)
        table.rows()[0]["value"] = -1

        assert table.get(1)["value"] == 10

    def test_clear(self) -> None:
        table = make_table("T", 3)
        table.clear()
        assert len(table) == 0


class TestInMemoryPagedReader:
    @pytest.mark.asyncio
    async def test_pages_in_insertion_order(self) -> None:
        reader = InMemoryPagedReader(make_table("T", 5))

        first = await reader.read(PageRequest.first(2))
        last = await reader.read(PageRequest(page_number=2, page_size=2))

        assert [r["id"] for r in first.records] == [1, 2]
        assert first.next_request == PageRequest(page_number=1, page_size=2)
        assert [r["id"] for r in last.records] == [5]
        assert last.next_request is None
        assert reader.requests == [PageRequest.first(2), PageRequest(page_number=2, page_size=2)]

    @pytest.mark.asyncio
    async def test_full_last_page_has_no_successor(self) -> None:
        page = await InMemoryPagedReader(make_table("T", 4)).read(
            PageRequest(page_number=1, page_size=2)
        )

        assert len(page) == 2
        assert not page.has_more


class TestInMemoryBulkWriter:
    @pytest.mark.asyncio
    async def test_rewrite_is_idempotent(self) -> None:
        table = make_table("T")
        writer = InMemoryBulkWriter(table)

        await writer.write_all(make_rows(3))
        await writer.write_all(make_rows(3))

        assert len(table) == 3
        assert writer.batches == [3, 3]
