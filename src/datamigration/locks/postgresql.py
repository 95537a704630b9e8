"""
Run-exclusivity lock backed by PostgreSQL advisory locks.

Advisory locks are session-level: one is held from a successful
``pg_try_advisory_lock`` until ``pg_advisory_unlock`` or until the session's
connection closes. Each run lock therefore pins its own session for the
whole run, and a coordinator in another process sharing the database cannot
start a run with the same lock key.

Usage:
    >>> lock_manager = PostgreSQLLockManager(session_factory)
    >>> async with lock_manager.acquire("datamigration:run", timeout=30):
    ...     await driver.run("CODIFICHE")
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from datamigration.locks.interface import (
    LockAcquisitionError,
    LockInfo,
    LockNotHeldError,
)
from datamigration.observability import (
    ATTR_LOCK_ID,
    ATTR_LOCK_KEY,
    ATTR_LOCK_TIMEOUT,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)

_TRY_LOCK = text("SELECT pg_try_advisory_lock(:lock_id)")
_UNLOCK = text("SELECT pg_advisory_unlock(:lock_id)")


def advisory_lock_id(key: str) -> int:
    """
    Map a lock key to a non-negative bigint advisory lock id.

    Example:
        >>> advisory_lock_id("datamigration:run") == advisory_lock_id("datamigration:run")
        True
    """
    digest = hashlib.blake2b(key.encode(), digest_size=8).digest()
    return int.from_bytes(digest, byteorder="big") & 0x7FFFFFFFFFFFFFFF


@dataclass
class _HeldLock:
    session: AsyncSession
    info: LockInfo


class PostgreSQLLockManager:
    """
    PostgreSQL implementation of RunLockManager.

    Example:
        >>> lock_manager = PostgreSQLLockManager(session_factory, holder_id="node-1")
        >>> info = await lock_manager.try_acquire("datamigration:run")
        >>> if info is None:
        ...     print("Another run is in progress")

    Note:
        Every held lock keeps one pooled connection checked out until it is
        released.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        holder_id: str | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        """
        Args:
            session_factory: Factory for the sessions that pin held locks.
            holder_id: Label copied into every LockInfo, for diagnostics.
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing.
                Ignored if tracer is explicitly provided.
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._session_factory = session_factory
        self._holder_id = holder_id
        self._held: dict[str, _HeldLock] = {}
        self._guard = asyncio.Lock()

    @property
    def held_keys(self) -> list[str]:
        return list(self._held)

    async def try_acquire(self, key: str) -> LockInfo | None:
        """
        Take the advisory lock for ``key`` if no other session holds it.

        Raises:
            LockAcquisitionError: If the database cannot be reached.
        """
        lock_id = advisory_lock_id(key)
        session = self._session_factory()
        try:
            result = await session.execute(_TRY_LOCK, {"lock_id": lock_id})
            acquired = bool(result.scalar())
        except SQLAlchemyError as e:
            await session.close()
            logger.error("Could not request advisory lock %s: %s", key, e)
            raise LockAcquisitionError(key=key, reason=f"Database error: {e}") from e

        if not acquired:
            await session.close()
            return None

        info = LockInfo(
            key=key,
            lock_id=lock_id,
            acquired_at=datetime.now(UTC),
            holder_id=self._holder_id,
        )
        async with self._guard:
            self._held[key] = _HeldLock(session, info)
        logger.debug("Acquired advisory lock %s (id %d)", key, lock_id)
        return info

    @asynccontextmanager
    async def acquire(
        self,
        key: str,
        *,
        timeout: float | None = None,
        retry_interval: float = 0.1,
    ) -> AsyncIterator[LockInfo]:
        """
        Hold the lock for the block, retrying every ``retry_interval``.

        Raises:
            LockAcquisitionError: If ``timeout`` elapses before the lock is free.
        """
        attributes = {
            ATTR_LOCK_KEY: key,
            ATTR_LOCK_ID: advisory_lock_id(key),
            ATTR_LOCK_TIMEOUT: -1 if timeout is None else timeout,
        }
        with self._tracer.span("datamigration.lock.acquire", attributes):
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
        """
        Unlock and return the pinned session to the pool.

        Raises:
            LockNotHeldError: If this manager does not hold ``key``.
        """
        async with self._guard:
            held = self._held.pop(key, None)
        if held is None:
            raise LockNotHeldError(key)

        lock_id = held.info.lock_id
        with self._tracer.span(
            "datamigration.lock.release",
            {ATTR_LOCK_KEY: key, ATTR_LOCK_ID: lock_id},
        ):
            try:
                await held.session.execute(_UNLOCK, {"lock_id": lock_id})
                logger.debug("Released advisory lock %s (id %d)", key, lock_id)
            except SQLAlchemyError as e:
                # Closing the session drops the lock on the server anyway.
                logger.warning("Unlock of %s failed, closing session: %s", key, e)
            finally:
                await held.session.close()

    async def is_held(self, key: str) -> bool:
        async with self._guard:
            return key in self._held


__all__ = ["PostgreSQLLockManager", "advisory_lock_id"]
