"""
StatusStore protocol - persistence of run status documents.

A status store holds one ``MigrationRun`` document per run. Updates are
whole-document read-modify-write: callers ``get`` the document, mutate the
nested step record, and ``put`` it back. No partial-field updates exist.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from datamigration.models import MigrationRun


@runtime_checkable
class StatusStore(Protocol):
    """
    Protocol for run status persistence.

    Implementations:
    - InMemoryStatusStore: process-local, for tests and embedded use
    - PostgreSQLStatusStore: SQLAlchemy async, JSONB document column
    - SQLiteStatusStore: aiosqlite, TEXT document column
    """

    async def create(self, run: MigrationRun) -> None:
        """
        Persist a new run document.

        Raises:
            RunAlreadyExistsError: If a document with the same run_id exists.
            DataAccessError: If the backend fails.
        """
        ...

    async def get(self, run_id: str) -> MigrationRun | None:
        """
        Load the run document.

        Returns:
            The document, or None if the run is unknown.

        Raises:
            DataAccessError: If the backend fails.
        """
        ...

    async def put(self, run: MigrationRun) -> None:
        """
        Replace the stored document of an existing run.

        Raises:
            RunNotFoundError: If the run was never created.
            DataAccessError: If the backend fails.
        """
        ...

    async def list_runs(self) -> list[MigrationRun]:
        """All run documents, oldest first."""
        ...


__all__ = ["StatusStore"]
