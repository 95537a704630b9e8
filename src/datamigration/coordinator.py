"""
MigrationCoordinator - programmatic surface for starting, blocking and
querying migration runs.

The coordinator owns everything around a run that the driver does not:

    - Creating the run's status document in the status store.
    - Holding the run-exclusivity lock for the whole run and mirroring it
      into the run's ``lock_held`` flag.
    - Driving the run in a background asyncio task.
    - Forwarding block requests to the active run.
    - Resuming a stopped run where it stopped.

At most one run is active per coordinator. With a lock manager, at most one
run is active across every coordinator sharing the lock key.

Usage:
    >>> coordinator = MigrationCoordinator(registry, status_store)
    >>> run = await coordinator.start_run()
    >>> await coordinator.request_block(run.run_id)
    >>> result = await coordinator.wait_for_run(run.run_id)
    >>> status = await coordinator.get_status(run.run_id)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from uuid import uuid4

from datamigration.driver import DriverResult, MigrationDriver
from datamigration.exceptions import MigrationStateError, RunNotFoundError
from datamigration.locks.interface import LockNotHeldError, RunLockManager
from datamigration.models import END, MigrationConfig, MigrationRun
from datamigration.observability import (
    ATTR_INITIAL_STEP,
    ATTR_LOCK_KEY,
    ATTR_RUN_ID,
    Tracer,
    create_tracer,
)
from datamigration.registry import StepRegistry
from datamigration.state import SharedRunState
from datamigration.stores.interface import StatusStore

logger = logging.getLogger(__name__)


class MigrationCoordinator:
    """
    Starts and supervises migration runs.

    Attributes:
        _registry: Transition table and copy functions.
        _status_store: Store holding the run documents.
        _config: Migration tunables (lock key, lock timeout).
        _lock_manager: Optional run-exclusivity lock manager.
        _states: SharedRunState of the active run, by run_id.
        _tasks: Background task of the active run, or of the last finished
            run while idle, by run_id.
        _held_locks: Exit stack releasing the run lock, by run_id.
    """

    def __init__(
        self,
        registry: StepRegistry,
        status_store: StatusStore,
        config: MigrationConfig | None = None,
        *,
        lock_manager: RunLockManager | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            registry: Registered steps; validated before every run.
            status_store: Store for run documents.
            config: Migration configuration (uses defaults if None).
            lock_manager: Lock manager enforcing one run at a time across
                processes. Without one, the run's lock flag is simply set
                for the duration of the run.
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing.
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._registry = registry
        self._status_store = status_store
        self._config = config or MigrationConfig()
        self._lock_manager = lock_manager

        self._states: dict[str, SharedRunState] = {}
        self._tasks: dict[str, asyncio.Task[DriverResult]] = {}
        self._held_locks: dict[str, AsyncExitStack] = {}
        self._start_lock = asyncio.Lock()

    @property
    def active_run_id(self) -> str | None:
        return next(iter(self._states), None)

    def is_active(self, run_id: str) -> bool:
        return run_id in self._states

    async def start_run(
        self,
        initial_step: str | None = None,
        run_id: str | None = None,
    ) -> MigrationRun:
        """
        Create a run and start driving it in the background.

        Args:
            initial_step: First step to run (default: first registered step).
            run_id: Identifier for the run (default: a new UUID).

        Returns:
            The run document as created, every step PENDING.

        Raises:
            MigrationStateError: If a run is already active.
            RunAlreadyExistsError: If ``run_id`` is already taken.
            UnknownStepError: If ``initial_step`` is not registered.
            TransitionTableError: If the registry is invalid.
            LockAcquisitionError: If another run holds the run lock.
        """
        self._registry.validate()
        start = self._registry.first_step if initial_step is None else initial_step
        if start != END:
            self._registry.definition(start)

        async with self._start_lock:
            self._ensure_idle()
            run = MigrationRun.create(run_id or str(uuid4()), self._registry.step_names)

            with self._tracer.span(
                "datamigration.coordinator.start_run",
                {ATTR_RUN_ID: run.run_id, ATTR_INITIAL_STEP: start},
            ):
                await self._acquire_run_lock(run.run_id)
                try:
                    await self._status_store.create(run)
                except BaseException:
                    await self._release_run_lock(run.run_id)
                    raise

                logger.info("Created migration run %s starting at %s", run.run_id, start)
                self._launch(run.run_id, start)
                return run

    async def resume_run(self, run_id: str) -> str:
        """
        Restart a stopped run at its last executed step if that step did not
        complete, otherwise at the first unfinished step after it.

        Steps before the one the run last executed are not revisited, so a
        run started mid-chain stays mid-chain. The step restarts from its
        first page; destination writers upsert by primary key so the
        re-copied pages do not duplicate rows.

        Returns:
            The step the run resumed at, or END if nothing is left to run
            (nothing is started in that case).

        Raises:
            RunNotFoundError: If the run does not exist.
            MigrationStateError: If a run is already active.
            LockAcquisitionError: If another run holds the run lock.
        """
        self._registry.validate()

        async with self._start_lock:
            self._ensure_idle()
            run = await self._status_store.get(run_id)
            if run is None:
                raise RunNotFoundError(run_id)

            walk_from = run.last_executed_step
            if walk_from is None or walk_from not in self._registry:
                walk_from = self._registry.first_step
            resume_step = run.resume_step(self._registry.ordered_steps(walk_from))
            if resume_step == END:
                logger.info("Run %s has no step left to resume", run_id)
                return END

            with self._tracer.span(
                "datamigration.coordinator.resume_run",
                {ATTR_RUN_ID: run_id, ATTR_INITIAL_STEP: resume_step},
            ):
                await self._acquire_run_lock(run_id)
                logger.info("Resuming migration run %s at %s", run_id, resume_step)
                self._launch(run_id, resume_step)
                return resume_step

    async def request_block(self, run_id: str) -> None:
        """
        Ask the active run to stop at its next page boundary.

        Raises:
            MigrationStateError: If the run is not active here.
        """
        state = self._states.get(run_id)
        if state is None:
            raise MigrationStateError(f"Run {run_id} is not active", run_id=run_id)
        state.request_block()

    async def get_status(self, run_id: str) -> MigrationRun:
        """
        Current run document.

        Raises:
            RunNotFoundError: If the run does not exist.
        """
        run = await self._status_store.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    async def list_runs(self) -> list[MigrationRun]:
        return await self._status_store.list_runs()

    async def wait_for_run(
        self,
        run_id: str,
        *,
        timeout: float | None = None,
    ) -> DriverResult:
        """
        Wait for the active run, or the last finished one, to stop.

        A timeout does not cancel the run.

        Raises:
            RunNotFoundError: If the run is neither active here nor the last
                run this coordinator finished.
            TimeoutError: If ``timeout`` elapses first.
        """
        task = self._tasks.get(run_id)
        if task is None:
            raise RunNotFoundError(run_id)
        return await asyncio.wait_for(asyncio.shield(task), timeout)

    async def shutdown(self, *, timeout: float | None = None) -> None:
        """Block every active run and wait for them to stop."""
        for run_id, state in list(self._states.items()):
            logger.info("Shutting down: blocking run %s", run_id)
            state.request_block()
        tasks = [task for task in self._tasks.values() if not task.done()]
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)

    def _ensure_idle(self) -> None:
        active = self.active_run_id
        if active is not None:
            raise MigrationStateError(f"Run {active} is already active", run_id=active)

    def _launch(self, run_id: str, initial_step: str) -> None:
        # Only one run is active, so every earlier task has finished.
        self._tasks = {key: task for key, task in self._tasks.items() if not task.done()}

        state = SharedRunState(run_id, lock_held=True)
        self._states[run_id] = state
        task = asyncio.create_task(
            self._drive(state, initial_step),
            name=f"migration_run_{run_id}",
        )
        task.add_done_callback(self._on_run_done)
        self._tasks[run_id] = task

    def _on_run_done(self, task: asyncio.Task[DriverResult]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Migration run task %s aborted: %s", task.get_name(), exc, exc_info=exc)

    async def _drive(self, state: SharedRunState, initial_step: str) -> DriverResult:
        run_id = state.run_id
        view = state.view()
        driver = MigrationDriver(
            self._registry.bind(view, self._status_store),
            view,
            tracer=self._tracer,
        )
        try:
            result = await driver.run(initial_step)
            logger.info(
                "Migration run %s finished in state %s",
                run_id,
                result.final_state,
            )
            return result

        except asyncio.CancelledError:
            logger.info("Migration run %s cancelled", run_id)
            raise

        finally:
            state.set_lock_held(False)
            await self._release_run_lock(run_id)
            self._states.pop(run_id, None)

    async def _acquire_run_lock(self, run_id: str) -> None:
        if self._lock_manager is None:
            return

        key = self._config.lock_key
        stack = AsyncExitStack()
        with self._tracer.span(
            "datamigration.coordinator.acquire_lock",
            {ATTR_LOCK_KEY: key},
        ):
            # A None timeout means a single attempt.
            await stack.enter_async_context(
                self._lock_manager.acquire(key, timeout=self._config.lock_timeout_seconds or 0.0)
            )
        self._held_locks[run_id] = stack

    async def _release_run_lock(self, run_id: str) -> None:
        stack = self._held_locks.pop(run_id, None)
        if stack is None:
            return
        try:
            await stack.aclose()
        except LockNotHeldError as e:
            logger.warning("Run %s ended without holding its lock: %s", run_id, e)


__all__ = ["MigrationCoordinator"]
