"""
Run-exclusivity locks for datamigration.

A migration run holds one lock for its whole duration; while it is held the
run's ``lock_held`` flag is true and table steps keep reading pages.

Example:
    >>> from datamigration.locks import PostgreSQLLockManager
    >>>
    >>> lock_manager = PostgreSQLLockManager(session_factory)
    >>> info = await lock_manager.try_acquire("datamigration:run")
    >>> if info is None:
    ...     print("Another run is in progress")
"""

from datamigration.locks.in_memory import InMemoryLockManager, InMemoryLockTable
from datamigration.locks.interface import (
    LockAcquisitionError,
    LockInfo,
    LockNotHeldError,
    RunLockManager,
)
from datamigration.locks.postgresql import PostgreSQLLockManager

__all__ = [
    "LockAcquisitionError",
    "LockInfo",
    "LockNotHeldError",
    "RunLockManager",
    "PostgreSQLLockManager",
    "InMemoryLockManager",
    "InMemoryLockTable",
]
