"""
Process-local run lock manager.

Holders are tracked per manager instance; managers sharing one
``InMemoryLockTable`` contend for the same keys, which models several
coordinators in one process.
"""

from __future__ import annotations

import asyncio
import logging
import zlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from datamigration.locks.interface import (
    LockAcquisitionError,
    LockInfo,
    LockNotHeldError,
)

logger = logging.getLogger(__name__)


class InMemoryLockTable:
    """Key to owner mapping shared by InMemoryLockManager instances."""

    def __init__(self) -> None:
        self.owners: dict[str, int] = {}
        self.lock = asyncio.Lock()


class InMemoryLockManager:
    """
    In-memory implementation of RunLockManager.

    Example:
        >>> manager = InMemoryLockManager()
        >>> info = await manager.try_acquire("datamigration:run")
        >>> await manager.is_held("datamigration:run")
        True
    """

    def __init__(
        self,
        table: InMemoryLockTable | None = None,
        *,
        holder_id: str | None = None,
    ) -> None:
        self._table = table or InMemoryLockTable()
        self._holder_id = holder_id
        self._token = id(self)

    def _lock_info(self, key: str) -> LockInfo:
        return LockInfo(
            key=key,
            lock_id=zlib.crc32(key.encode()),
            acquired_at=datetime.now(UTC),
            holder_id=self._holder_id,
        )

    async def try_acquire(self, key: str) -> LockInfo | None:
        async with self._table.lock:
            owner = self._table.owners.get(key)
            if owner is not None and owner != self._token:
                return None
            self._table.owners[key] = self._token
        logger.debug("Acquired in-memory lock: key=%s", key)
        return self._lock_info(key)

    @asynccontextmanager
    async def acquire(
        self,
        key: str,
        *,
        timeout: float | None = None,
        retry_interval: float = 0.1,
    ) -> AsyncIterator[LockInfo]:
        """
        Hold the lock for the block, polling every ``retry_interval``.

        Raises:
            LockAcquisitionError: If ``timeout`` elapses first.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        info = await self.try_acquire(key)
        while info is None:
            if deadline is not None and loop.time() >= deadline:
                raise LockAcquisitionError(
                    key=key,
                    reason=f"Timeout after {timeout}s",
                    timeout=timeout,
                )
            await asyncio.sleep(retry_interval)
            info = await self.try_acquire(key)

        try:
            yield info
        finally:
            await self.release(key)

    async def release(self, key: str) -> None:
        async with self._table.lock:
            if self._table.owners.get(key) != self._token:
                raise LockNotHeldError(key)
            del self._table.owners[key]
        logger.debug("Released in-memory lock: key=%s", key)

    async def is_held(self, key: str) -> bool:
        async with self._table.lock:
            return self._table.owners.get(key) == self._token


__all__ = ["InMemoryLockTable", "InMemoryLockManager"]
