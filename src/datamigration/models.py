"""
Data models for the datamigration system.

Enums:
    - StepStatus: Per-step lifecycle status

Configuration:
    - MigrationConfig: Tunables shared by the coordinator and table steps

Persisted documents (pydantic, stored as one JSON document per run):
    - StepStatusRecord: Status, timestamps and record count of one step
    - StatusTransition: Audit entry appended for every status update
    - MigrationRun: The aggregate status document of a run

Sentinels:
    - END: Terminal identity reached on success or graceful interruption
    - ERROR: Terminal identity reached on an unrecoverable step failure
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from datamigration.exceptions import InvalidStatusTransitionError

END = "END"
"""Terminal step identity for a run that stopped without failure."""

ERROR = "ERROR"
"""Terminal step identity for a run that stopped on a hard step error."""

TERMINAL_STATES: frozenset[str] = frozenset({END, ERROR})

DEFAULT_PAGE_SIZE = 50
DEFAULT_LOCK_KEY = "datamigration:run"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class StepStatus(Enum):
    """
    Lifecycle status of one step within a run.

    State machine:
        PENDING -> IN_PROGRESS -> COMPLETED
                              -> FAILED
                              -> BLOCKED
        any status -> IN_PROGRESS (a new attempt)

    Attributes:
        PENDING: The step has not been attempted in this run.
        IN_PROGRESS: An attempt has started and not yet finished.
        COMPLETED: Every source page was copied.
        FAILED: A data-access failure aborted the attempt.
        BLOCKED: An external block request (or lock loss) stopped the attempt.
    """

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    BLOCKED = "BLOCKED"

    @property
    def is_terminal(self) -> bool:
        """True for COMPLETED, FAILED and BLOCKED."""
        return self in (StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.BLOCKED)

    def can_transition_to(self, target: StepStatus) -> bool:
        """
        Check if transition to target status is valid.

        Args:
            target: The status to transition to.

        Returns:
            True if the transition is valid.
        """
        if target == StepStatus.IN_PROGRESS:
            return True
        if target.is_terminal:
            return self == StepStatus.IN_PROGRESS
        return False


@dataclass(frozen=True)
class MigrationConfig:
    """
    Configuration for migration runs.

    Attributes:
        page_size: Records per page for table steps registered without an
            explicit page size (default 50).
        lock_key: Key of the run-exclusivity lock (default "datamigration:run").
        lock_timeout_seconds: Seconds to wait for the run lock; None tries
            once without waiting.

    Example:
        >>> config = MigrationConfig(page_size=200)
        >>> config.page_size
        200
    """

    page_size: int = DEFAULT_PAGE_SIZE
    lock_key: str = DEFAULT_LOCK_KEY
    lock_timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")
        if not self.lock_key:
            raise ValueError("lock_key must not be empty")
        if self.lock_timeout_seconds is not None and self.lock_timeout_seconds < 0:
            raise ValueError(
                f"lock_timeout_seconds must be >= 0, got {self.lock_timeout_seconds}"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MigrationConfig:
        """Create a config from a dictionary, ignoring unknown keys."""
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        return cls(**known)


class StepStatusRecord(BaseModel):
    """
    Status of a single step within a run.

    Attributes:
        step_name: Identity of the step.
        status: Current StepStatus.
        start: When the latest attempt started.
        end: When the latest attempt reached a terminal status.
        records_processed: Records copied by the latest attempt, finalized
            together with the terminal status.
    """

    model_config = ConfigDict(validate_assignment=True)

    step_name: str
    status: StepStatus = StepStatus.PENDING
    start: datetime | None = None
    end: datetime | None = None
    records_processed: int = Field(default=0, ge=0)


class StatusTransition(BaseModel):
    """Audit entry recorded for every step status update."""

    model_config = ConfigDict(frozen=True)

    step_name: str
    from_status: StepStatus
    to_status: StepStatus
    occurred_at: datetime
    records_processed: int = 0


class MigrationRun(BaseModel):
    """
    Aggregate status document for one migration run.

    The document is read, mutated and written back as a whole on every
    step status update. The ``history`` list only ever grows and forms the
    audit trail of the run.

    Example:
        >>> run = MigrationRun.create("run-1", ["TABLE_A", "TABLE_B"])
        >>> run.step_status("TABLE_A").status
        <StepStatus.PENDING: 'PENDING'>
        >>> run.resume_step(["TABLE_A", "TABLE_B"])
        'TABLE_A'
    """

    run_id: str = Field(default_factory=lambda: str(uuid4()))
    last_executed_step: str | None = None
    steps: dict[str, StepStatusRecord] = Field(default_factory=dict)
    history: list[StatusTransition] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def create(cls, run_id: str, step_names: Iterable[str]) -> MigrationRun:
        """Build a new run document with every step PENDING."""
        return cls(
            run_id=run_id,
            steps={name: StepStatusRecord(step_name=name) for name in step_names},
        )

    def step_status(self, step_name: str) -> StepStatusRecord:
        """
        Project the status record of one step out of the document.

        Steps added to the topology after the run was created get a
        PENDING record on first access.
        """
        record = self.steps.get(step_name)
        if record is None:
            record = StepStatusRecord(step_name=step_name)
            self.steps[step_name] = record
        return record

    def apply_status(
        self,
        step_name: str,
        status: StepStatus,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        records_processed: int | None = None,
    ) -> StepStatusRecord:
        """
        Move one step to a new status and append the audit entry.

        Args:
            step_name: Step to update.
            status: New status.
            start: Start timestamp to record (only set when given).
            end: End timestamp to record (only set when given).
            records_processed: Final record count (only set when given).

        Returns:
            The updated step record.

        Raises:
            InvalidStatusTransitionError: If the status machine forbids the move.
        """
        record = self.step_status(step_name)
        previous = record.status
        if not previous.can_transition_to(status):
            raise InvalidStatusTransitionError(self.run_id, step_name, previous, status)

        now = utc_now()
        record.status = status
        if status == StepStatus.IN_PROGRESS:
            # A new attempt: clear what the previous attempt finalized.
            record.end = None
            record.records_processed = 0
        if start is not None:
            record.start = start
        if end is not None:
            record.end = end
        if records_processed is not None:
            record.records_processed = records_processed

        self.last_executed_step = step_name
        self.updated_at = now
        self.history.append(
            StatusTransition(
                step_name=step_name,
                from_status=previous,
                to_status=status,
                occurred_at=now,
                records_processed=record.records_processed,
            )
        )
        return record

    def resume_step(self, ordered_step_names: Iterable[str]) -> str:
        """
        First step, in topology order, that has not COMPLETED.

        Returns:
            The step identity to restart from, or END when every step is done.
        """
        for name in ordered_step_names:
            if self.step_status(name).status != StepStatus.COMPLETED:
                return name
        return END

    def records_total(self) -> int:
        """Sum of the record counters of every step."""
        return sum(record.records_processed for record in self.steps.values())

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> MigrationRun:
        return cls.model_validate_json(data)


__all__ = [
    "END",
    "ERROR",
    "TERMINAL_STATES",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_LOCK_KEY",
    "utc_now",
    "StepStatus",
    "MigrationConfig",
    "StepStatusRecord",
    "StatusTransition",
    "MigrationRun",
]
