"""
In-memory status store.

Stores deep copies of the run documents so callers can never mutate the
stored state without a ``put``. All data is lost when the process exits.
"""

from __future__ import annotations

import asyncio

from datamigration.exceptions import RunAlreadyExistsError, RunNotFoundError
from datamigration.models import MigrationRun
from datamigration.observability import ATTR_RUN_ID, Tracer, create_tracer


class InMemoryStatusStore:
    """
    In-memory implementation of StatusStore for testing.

    Example:
        >>> store = InMemoryStatusStore()
        >>> await store.create(MigrationRun.create("run-1", ["TABLE_A"]))
        >>> run = await store.get("run-1")
    """

    def __init__(
        self,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._runs: dict[str, MigrationRun] = {}
        self._lock = asyncio.Lock()

    async def create(self, run: MigrationRun) -> None:
        with self._tracer.span(
            "datamigration.status_store.create",
            {ATTR_RUN_ID: run.run_id},
        ):
            async with self._lock:
                if run.run_id in self._runs:
                    raise RunAlreadyExistsError(run.run_id)
                self._runs[run.run_id] = run.model_copy(deep=True)

    async def get(self, run_id: str) -> MigrationRun | None:
        with self._tracer.span(
            "datamigration.status_store.get",
            {ATTR_RUN_ID: run_id},
        ):
            async with self._lock:
                run = self._runs.get(run_id)
                return run.model_copy(deep=True) if run is not None else None

    async def put(self, run: MigrationRun) -> None:
        with self._tracer.span(
            "datamigration.status_store.put",
            {ATTR_RUN_ID: run.run_id},
        ):
            async with self._lock:
                if run.run_id not in self._runs:
                    raise RunNotFoundError(run.run_id)
                self._runs[run.run_id] = run.model_copy(deep=True)

    async def list_runs(self) -> list[MigrationRun]:
        async with self._lock:
            runs = sorted(self._runs.values(), key=lambda r: r.created_at)
            return [run.model_copy(deep=True) for run in runs]

    async def clear(self) -> None:
        """Remove all runs. Useful for test setup/teardown."""
        async with self._lock:
            self._runs.clear()


__all__ = ["InMemoryStatusStore"]
