"""
Run-exclusivity lock contract shared by the lock managers.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class LockInfo:
    """
    Information about an acquired lock.

    Attributes:
        key: The string key used to identify the lock
        lock_id: Numeric lock ID (derived from the key hash)
        acquired_at: When the lock was acquired
        holder_id: Optional identifier for the lock holder (for debugging)
    """

    key: str
    lock_id: int
    acquired_at: datetime
    holder_id: str | None = None


class LockAcquisitionError(Exception):
    """
    Raised when a lock cannot be acquired.

    Attributes:
        key: The lock key that could not be acquired
        reason: Description of why acquisition failed
        timeout: The timeout value if timeout was the cause
    """

    def __init__(
        self,
        key: str,
        reason: str,
        timeout: float | None = None,
    ):
        self.key = key
        self.reason = reason
        self.timeout = timeout
        super().__init__(f"Failed to acquire lock '{key}': {reason}")


class LockNotHeldError(Exception):
    """
    Raised when attempting to release a lock not held.

    Attributes:
        key: The lock key that was not held
    """

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Lock '{key}' is not held by this manager")


@runtime_checkable
class RunLockManager(Protocol):
    """
    Protocol for the lock that keeps migration runs mutually exclusive.

    Implementations:
    - PostgreSQLLockManager: session-level advisory locks
    - InMemoryLockManager: process-local, for tests and single-process use
    """

    async def try_acquire(self, key: str) -> LockInfo | None:
        """Acquire without waiting; None if another holder has the lock."""
        ...

    def acquire(
        self,
        key: str,
        *,
        timeout: float | None = None,
        retry_interval: float = 0.1,
    ) -> AbstractAsyncContextManager[LockInfo]:
        """Context manager holding the lock for the block."""
        ...

    async def release(self, key: str) -> None:
        """
        Raises:
            LockNotHeldError: If this manager does not hold the lock.
        """
        ...

    async def is_held(self, key: str) -> bool:
        """Whether this manager currently holds the lock."""
        ...


__all__ = [
    "LockInfo",
    "LockAcquisitionError",
    "LockNotHeldError",
    "RunLockManager",
]
