"""
MigrationStep - one migratable unit of a run.

Every table migration is an instance of the same class, parameterized by a
``StepDefinition`` (its identity and default successor) and an injected
page-copy function, usually the bound ``copy`` method of a
``PagedTableCopier``.

Lifecycle of ``execute_step()``:

1. Mark the step IN_PROGRESS.
2. If a block is already pending, mark BLOCKED and stop before copying.
3. Copy page by page while ``can_continue_read_pages`` holds.
4. Record COMPLETED, BLOCKED or FAILED from the copy outcome.

``call()`` wraps ``execute_step()`` for the driver: it maps an interruption
to ``END``, a data-access failure to ``ERROR``, and otherwise returns the
step's default successor.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from datamigration.copier import (
    Completed,
    ContinuePredicate,
    CopyOutcome,
    CopyResult,
    Failed,
    Interrupted,
)
from datamigration.exceptions import DataAccessError, MigrationError
from datamigration.lifecycle import (
    can_continue_read_pages,
    check_execution_block,
    mark_failed,
    mark_started,
    mark_step_end,
)
from datamigration.models import END, ERROR, MigrationRun, StepStatus, StepStatusRecord
from datamigration.observability import (
    ATTR_NEXT_STEP,
    ATTR_RUN_ID,
    ATTR_STEP_NAME,
    ATTR_STEP_STATUS,
    Tracer,
    create_tracer,
)
from datamigration.paging import PageRequest
from datamigration.state import RunStateView
from datamigration.stores.interface import StatusStore

logger = logging.getLogger(__name__)

PageCopyFunction = Callable[[ContinuePredicate], Awaitable[CopyResult]]
"""Copies a table page by page, consulting the predicate between pages."""


@dataclass(frozen=True)
class StepDefinition:
    """
    Static description of one step in the transition table.

    Attributes:
        name: Stable identity, used for logging and the status record key.
        next_step: Default successor identity (another step or END).
    """

    name: str
    next_step: str


@dataclass(frozen=True)
class StepResult:
    """
    What one ``execute_step()`` invocation did.

    Attributes:
        status: Terminal status recorded for the step.
        records_processed: Records copied by this attempt.
        outcome: The tagged copy outcome.
    """

    status: StepStatus
    records_processed: int
    outcome: CopyOutcome

    @property
    def interrupted(self) -> bool:
        return isinstance(self.outcome, Interrupted)

    @property
    def failed(self) -> bool:
        return isinstance(self.outcome, Failed)


@runtime_checkable
class Step(Protocol):
    """What the driver needs from a resolved step."""

    @property
    def step_name(self) -> str: ...

    def get_next_state(self) -> str: ...

    async def call(self) -> str: ...


class MigrationStep:
    """
    Executes one table migration within a run.

    Example:
        >>> step = MigrationStep(
        ...     StepDefinition("CODIFICHE", next_step="TIPI_VERSAMENTO"),
        ...     copier.copy,
        ...     run_state.view(),
        ...     status_store,
        ... )
        >>> await step.call()
        'TIPI_VERSAMENTO'
    """

    def __init__(
        self,
        definition: StepDefinition,
        copy: PageCopyFunction,
        run_state: RunStateView,
        status_store: StatusStore,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the step.

        Args:
            definition: Identity and default successor.
            copy: Page-copy function run by ``execute_step``.
            run_state: Read-only view of the run flags.
            status_store: Store holding the run document.
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing.
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._definition = definition
        self._copy = copy
        self._run_state = run_state
        self._status_store = status_store
        self._last_result: StepResult | None = None

    @property
    def step_name(self) -> str:
        return self._definition.name

    @property
    def definition(self) -> StepDefinition:
        return self._definition

    @property
    def last_result(self) -> StepResult | None:
        """Result of the most recent ``execute_step()``, if any."""
        return self._last_result

    def get_next_state(self) -> str:
        """Default successor from the transition table."""
        return self._definition.next_step

    def get_step_status(self, run: MigrationRun) -> StepStatusRecord:
        """Project this step's record out of the run document."""
        return run.step_status(self.step_name)

    def _should_continue(self, cursor: PageRequest | None) -> bool:
        return can_continue_read_pages(self._run_state, cursor)

    async def execute_step(self) -> StepResult:
        """
        Copy the table and record the step's status.

        Returns:
            StepResult describing the recorded status and copy outcome.

        Raises:
            InvalidMigrationStatusError: If the run document is missing.
            InvalidStatusTransitionError: If the stored status forbids the update.
        """
        run_id = self._run_state.run_id
        records = 0
        try:
            await mark_started(self._status_store, run_id, self.step_name)

            blocked = await check_execution_block(
                self._run_state, self._status_store, self.step_name
            )
            if blocked is not None:
                return self._finish(StepStatus.BLOCKED, 0, blocked)

            result = await self._copy(self._should_continue)
            records = result.records_copied
            outcome = result.outcome

            if isinstance(outcome, Failed):
                await mark_failed(self._status_store, run_id, self.step_name, records)
                return self._finish(StepStatus.FAILED, records, outcome)

            interrupted = isinstance(outcome, Interrupted)
            await mark_step_end(
                self._status_store,
                run_id,
                self.step_name,
                interrupted=interrupted,
                records_processed=records,
            )
            status = StepStatus.BLOCKED if interrupted else StepStatus.COMPLETED
            return self._finish(status, records, outcome)

        except DataAccessError as e:
            # The status store itself failed; try once to leave FAILED behind.
            logger.error(
                "Status update failed for run %s step %s: %s",
                run_id,
                self.step_name,
                e,
            )
            try:
                await mark_failed(self._status_store, run_id, self.step_name, records)
            except MigrationError as mark_error:
                logger.warning(
                    "Could not record FAILED for run %s step %s: %s",
                    run_id,
                    self.step_name,
                    mark_error,
                )
            return self._finish(StepStatus.FAILED, records, Failed(cause=e))

    def _finish(self, status: StepStatus, records: int, outcome: CopyOutcome) -> StepResult:
        self._last_result = StepResult(
            status=status,
            records_processed=records,
            outcome=outcome,
        )
        return self._last_result

    async def call(self) -> str:
        """
        Run the step once and choose the next identity.

        Returns:
            END when the step was interrupted, ERROR when it failed,
            otherwise the default successor.
        """
        start = time.monotonic()
        next_state = self.get_next_state()
        run_id = self._run_state.run_id

        logger.info("Run %s: starting step %s", run_id, self.step_name)

        with self._tracer.span(
            "datamigration.step.call",
            {ATTR_RUN_ID: run_id, ATTR_STEP_NAME: self.step_name},
        ) as span:
            try:
                result = await self.execute_step()
                outcome = result.outcome
                if isinstance(outcome, Interrupted):
                    logger.info(
                        "Run %s: step %s stopped on block request after %d records",
                        run_id,
                        self.step_name,
                        result.records_processed,
                    )
                    next_state = END
                elif isinstance(outcome, Failed):
                    logger.error(
                        "Run %s: step %s failed after %d records: %s",
                        run_id,
                        self.step_name,
                        result.records_processed,
                        outcome.cause,
                    )
                    next_state = ERROR
                elif isinstance(outcome, Completed):
                    logger.info(
                        "Run %s: step %s copied %d records",
                        run_id,
                        self.step_name,
                        result.records_processed,
                    )

                if span is not None:
                    span.set_attribute(ATTR_STEP_STATUS, result.status.value)
                    span.set_attribute(ATTR_NEXT_STEP, next_state)
            finally:
                logger.info(
                    "Run %s: step %s took %d ms",
                    run_id,
                    self.step_name,
                    int((time.monotonic() - start) * 1000),
                )

        return next_state


__all__ = [
    "PageCopyFunction",
    "StepDefinition",
    "StepResult",
    "Step",
    "MigrationStep",
]
