"""Tests for the process-local run lock manager."""

from __future__ import annotations

import asyncio

import pytest

from datamigration.locks import (
    InMemoryLockManager,
    InMemoryLockTable,
    LockAcquisitionError,
    LockInfo,
    LockNotHeldError,
    RunLockManager,
)

KEY = "datamigration:run"


class TestInMemoryLockManager:
    """Tests for InMemoryLockManager."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryLockManager(), RunLockManager)

    @pytest.mark.asyncio
    async def test_try_acquire_and_release(self) -> None:
        manager = InMemoryLockManager(holder_id="worker-1")

        info = await manager.try_acquire(KEY)

        assert isinstance(info, LockInfo)
        assert info.key == KEY
        assert info.holder_id == "worker-1"
        assert await manager.is_held(KEY)

        await manager.release(KEY)
        assert not await manager.is_held(KEY)

    @pytest.mark.asyncio
    async def test_reacquire_by_same_manager(self) -> None:
        manager = InMemoryLockManager()

        assert await manager.try_acquire(KEY) is not None
        assert await manager.try_acquire(KEY) is not None

    @pytest.mark.asyncio
    async def test_contention_on_shared_table(self) -> None:
        table = InMemoryLockTable()
        first = InMemoryLockManager(table)
        second = InMemoryLockManager(table)

        assert await first.try_acquire(KEY) is not None
        assert await second.try_acquire(KEY) is None
        assert not await second.is_held(KEY)

        await first.release(KEY)
        assert await second.try_acquire(KEY) is not None

    @pytest.mark.asyncio
    async def test_separate_tables_do_not_contend(self) -> None:
        assert await InMemoryLockManager().try_acquire(KEY) is not None
        assert await InMemoryLockManager().try_acquire(KEY) is not None

    @pytest.mark.asyncio
    async def test_release_not_held(self) -> None:
        table = InMemoryLockTable()
        owner = InMemoryLockManager(table)
        await owner.try_acquire(KEY)

        with pytest.raises(LockNotHeldError):
            await InMemoryLockManager(table).release(KEY)

        assert await owner.is_held(KEY)

    @pytest.mark.asyncio
    async def test_acquire_context_releases(self) -> None:
        manager = InMemoryLockManager()

        async with manager.acquire(KEY) as info:
            assert info.key == KEY
            assert await manager.is_held(KEY)

        assert not await manager.is_held(KEY)

    @pytest.mark.asyncio
    async def test_acquire_times_out(self) -> None:
        table = InMemoryLockTable()
        await InMemoryLockManager(table).try_acquire(KEY)

        with pytest.raises(LockAcquisitionError) as exc_info:
            async with InMemoryLockManager(table).acquire(KEY, timeout=0.05, retry_interval=0.01):
                pass

        assert exc_info.value.timeout == 0.05

    @pytest.mark.asyncio
    async def test_acquire_waits_for_release(self) -> None:
        table = InMemoryLockTable()
        holder = InMemoryLockManager(table)
        waiter = InMemoryLockManager(table)
        await holder.try_acquire(KEY)

        async def release_later() -> None:
            await asyncio.sleep(0.05)
            await holder.release(KEY)

        task = asyncio.create_task(release_later())
        async with waiter.acquire(KEY, timeout=2.0, retry_interval=0.01):
            assert await waiter.is_held(KEY)
        await task
