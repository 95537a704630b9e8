"""
MigrationDriver - the finite state machine that walks a run's steps.

Starting from an initial identity, the driver resolves the step, awaits
its ``call()``, and moves to whatever identity the step returns, until it
reaches ``END`` or ``ERROR``. Exactly one step is active at a time.

The driver does not decide where a step goes next; it only classifies what
happened for logging and for the ``DriverResult``:

    - ERROR returned: the step hit a hard data-access failure.
    - END returned while the default successor was another step: the step
      honoured a block request.
    - anything else: the step succeeded.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from datamigration.exceptions import MigrationStateError
from datamigration.models import END, ERROR, TERMINAL_STATES
from datamigration.observability import (
    ATTR_FINAL_STATE,
    ATTR_INITIAL_STEP,
    ATTR_NEXT_STEP,
    ATTR_RUN_ID,
    ATTR_STEP_NAME,
    Tracer,
    create_tracer,
)
from datamigration.registry import StepResolver
from datamigration.state import RunStateView

logger = logging.getLogger(__name__)


class ExecutionOutcome(Enum):
    """How one step activation ended, as seen by the driver."""

    SUCCEEDED = "succeeded"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


@dataclass(frozen=True)
class StepExecution:
    """
    One step activation.

    Attributes:
        step_name: The step that ran.
        next_step: Identity it returned.
        outcome: Driver classification of the activation.
        duration_seconds: Wall-clock time spent in ``call()``.
    """

    step_name: str
    next_step: str
    outcome: ExecutionOutcome
    duration_seconds: float


@dataclass
class DriverResult:
    """
    Outcome of one ``MigrationDriver.run()``.

    Attributes:
        run_id: Run that was driven.
        initial_step: Identity the run started from.
        final_state: END or ERROR.
        executions: Step activations in visiting order.
        duration_seconds: Total wall-clock duration.
    """

    run_id: str
    initial_step: str
    final_state: str = END
    executions: list[StepExecution] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def visited_steps(self) -> list[str]:
        return [execution.step_name for execution in self.executions]

    @property
    def failed(self) -> bool:
        return self.final_state == ERROR

    @property
    def interrupted(self) -> bool:
        return any(e.outcome == ExecutionOutcome.INTERRUPTED for e in self.executions)

    @property
    def succeeded(self) -> bool:
        return not self.failed and not self.interrupted


def classify_transition(default_next: str, returned_next: str) -> ExecutionOutcome:
    """Classify a step activation from its default and returned successors."""
    if returned_next == ERROR:
        return ExecutionOutcome.FAILED
    if returned_next == END and default_next != END:
        return ExecutionOutcome.INTERRUPTED
    return ExecutionOutcome.SUCCEEDED


class MigrationDriver:
    """
    Drives one run from an initial step to a terminal identity.

    Example:
        >>> state = SharedRunState("run-1", lock_held=True)
        >>> driver = MigrationDriver(registry.bind(state.view(), store), state.view())
        >>> result = await driver.run("CODIFICHE")
        >>> result.final_state
        'END'
    """

    def __init__(
        self,
        resolver: StepResolver,
        run_state: RunStateView,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._resolver = resolver
        self._run_state = run_state
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self, initial_step: str) -> DriverResult:
        """
        Execute steps until END or ERROR is reached.

        Args:
            initial_step: Identity of the first step. Passing END or ERROR
                returns immediately without running anything.

        Returns:
            DriverResult with every activation in order.

        Raises:
            MigrationStateError: If this driver is already running.
            UnknownStepError: If a transition names an unregistered step.
        """
        if self._running:
            raise MigrationStateError(
                "Driver is already running", run_id=self._run_state.run_id
            )

        self._running = True
        try:
            return await self._run(initial_step)
        finally:
            self._running = False

    async def _run(self, initial_step: str) -> DriverResult:
        run_id = self._run_state.run_id
        result = DriverResult(run_id=run_id, initial_step=initial_step)
        run_start = time.monotonic()

        with self._tracer.span(
            "datamigration.driver.run",
            {ATTR_RUN_ID: run_id, ATTR_INITIAL_STEP: initial_step},
        ) as span:
            logger.info("Run %s: driving from step %s", run_id, initial_step)

            current = initial_step
            while current not in TERMINAL_STATES:
                step = self._resolver.resolve(current)
                default_next = step.get_next_state()

                with self._tracer.span(
                    "datamigration.driver.step",
                    {ATTR_RUN_ID: run_id, ATTR_STEP_NAME: current},
                ) as step_span:
                    step_start = time.monotonic()
                    returned_next = await step.call()
                    elapsed = time.monotonic() - step_start
                    if step_span is not None:
                        step_span.set_attribute(ATTR_NEXT_STEP, returned_next)

                outcome = classify_transition(default_next, returned_next)
                result.executions.append(
                    StepExecution(
                        step_name=current,
                        next_step=returned_next,
                        outcome=outcome,
                        duration_seconds=elapsed,
                    )
                )

                if outcome == ExecutionOutcome.FAILED:
                    logger.error("Run %s: step %s failed, stopping run", run_id, current)
                elif outcome == ExecutionOutcome.INTERRUPTED:
                    logger.info("Run %s: step %s interrupted, stopping run", run_id, current)
                else:
                    logger.info(
                        "Run %s: step %s done in %.3fs, next %s",
                        run_id,
                        current,
                        elapsed,
                        returned_next,
                    )

                current = returned_next

            result.final_state = current
            result.duration_seconds = time.monotonic() - run_start
            if span is not None:
                span.set_attribute(ATTR_FINAL_STATE, current)

            logger.info(
                "Run %s: reached %s after %d steps in %.3fs",
                run_id,
                current,
                len(result.executions),
                result.duration_seconds,
            )
            return result


__all__ = [
    "ExecutionOutcome",
    "StepExecution",
    "DriverResult",
    "MigrationDriver",
    "classify_transition",
]
