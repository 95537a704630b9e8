"""
Exceptions for the datamigration system.

Exception Hierarchy:
    MigrationError (base)
    +-- DataAccessError
    +-- InvalidMigrationStatusError
    +-- MigrationStateError
    |   +-- InvalidStatusTransitionError
    +-- RunNotFoundError
    +-- RunAlreadyExistsError
    +-- UnknownStepError
    +-- TransitionTableError

Graceful interruption and hard step failure are not exceptions: the copy
routine returns a tagged outcome (see :mod:`datamigration.copier`). Only
``DataAccessError`` is classified into such an outcome; every other
``MigrationError`` is an invariant violation and propagates to the caller.

Every exception carries an :class:`ErrorClassification` so operators and
callers can decide whether re-triggering the run makes sense.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datamigration.models import StepStatus


class ErrorSeverity(Enum):
    """
    Severity level of migration errors.

    Attributes:
        CRITICAL: System-level failure requiring immediate attention.
        ERROR: Significant failure that may require operator intervention.
        WARNING: Issue that should be monitored but may self-resolve.
        INFO: Informational condition, not a failure.
    """

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def log_level(self) -> int:
        """Get the corresponding Python logging level."""
        level_map = {
            ErrorSeverity.CRITICAL: logging.CRITICAL,
            ErrorSeverity.ERROR: logging.ERROR,
            ErrorSeverity.WARNING: logging.WARNING,
            ErrorSeverity.INFO: logging.INFO,
        }
        return level_map[self]


class ErrorRecoverability(Enum):
    """
    Recoverability classification for migration errors.

    Attributes:
        TRANSIENT: Temporary error; re-triggering the run may succeed.
        RECOVERABLE: Operator action is needed before the run can continue.
        FATAL: Programming or configuration error; re-running will not help.
    """

    TRANSIENT = "transient"
    RECOVERABLE = "recoverable"
    FATAL = "fatal"

    @property
    def should_resume(self) -> bool:
        """True when re-triggering the run is a sensible operator response."""
        return self != ErrorRecoverability.FATAL


@dataclass(frozen=True)
class ErrorClassification:
    """
    Rich metadata for error classification.

    Attributes:
        severity: The severity level of the error.
        recoverability: How the error can be recovered from.
        error_code: Unique error code for programmatic handling.
        category: Error category for grouping related errors.
        suggested_action: Human-readable guidance for operators.
    """

    severity: ErrorSeverity
    recoverability: ErrorRecoverability
    error_code: str
    category: str
    suggested_action: str

    def to_dict(self) -> dict[str, Any]:
        """Convert classification to dictionary for serialization."""
        return {
            "severity": self.severity.value,
            "recoverability": self.recoverability.value,
            "error_code": self.error_code,
            "category": self.category,
            "suggested_action": self.suggested_action,
        }


class MigrationError(Exception):
    """
    Base exception for all datamigration errors.

    Attributes:
        message: Human-readable error description.
        run_id: The run involved, if applicable.
        step_name: The step involved, if applicable.
    """

    _default_classification: ErrorClassification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="MIGRATION_ERROR",
        category="general",
        suggested_action="Review migration logs",
    )

    def __init__(
        self,
        message: str,
        *,
        run_id: str | None = None,
        step_name: str | None = None,
    ) -> None:
        self.message = message
        self.run_id = run_id
        self.step_name = step_name
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.run_id:
            parts.append(f"run_id={self.run_id}")
        if self.step_name:
            parts.append(f"step={self.step_name}")
        return " ".join(parts)

    @property
    def classification(self) -> ErrorClassification:
        """Error classification for this exception type."""
        return self._default_classification

    @property
    def severity(self) -> ErrorSeverity:
        return self.classification.severity

    @property
    def error_code(self) -> str:
        return self.classification.error_code

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "message": self.message,
            "run_id": self.run_id,
            "step_name": self.step_name,
            "error_code": self.error_code,
            "classification": self.classification.to_dict(),
        }


class DataAccessError(MigrationError):
    """
    Raised by readers, writers and status stores when the backend fails.

    Connectivity loss, constraint violations and serialization faults are
    all wrapped in this type so that steps can classify them as a hard step
    failure without knowing which driver produced them.

    Attributes:
        operation: The data-access operation that failed (e.g. "read_page").
        original_error: The backend exception, also chained as __cause__.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.TRANSIENT,
        error_code="DATA_ACCESS_ERROR",
        category="data_access",
        suggested_action=(
            "Check connectivity and constraints on the source and destination "
            "databases, then resume the run."
        ),
    )

    def __init__(
        self,
        operation: str,
        original_error: BaseException | str,
        *,
        table: str | None = None,
    ) -> None:
        self.operation = operation
        self.original_error = original_error
        self.table = table
        where = f" on {table}" if table else ""
        super().__init__(f"Data access failed during {operation}{where}: {original_error}")


class InvalidMigrationStatusError(MigrationError):
    """
    Raised when the status store holds no document for the run being updated.

    This is an invariant violation: status documents are created when a run
    starts and are never deleted, so a missing one means the driver was
    wired to the wrong store or run identifier.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        recoverability=ErrorRecoverability.FATAL,
        error_code="INVALID_MIGRATION_STATUS",
        category="state",
        suggested_action="Verify the run was created in the status store the driver uses",
    )

    def __init__(self, run_id: str, step_name: str | None = None) -> None:
        super().__init__(
            f"No migration status found for run {run_id}",
            run_id=run_id,
            step_name=step_name,
        )


class MigrationStateError(MigrationError):
    """
    Raised when an operation is invalid for the current run state.

    Examples: starting a second run while one is active, re-entering a
    driver that is already running, blocking a run that is not active.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="MIGRATION_STATE_ERROR",
        category="state",
        suggested_action="Wait for the active run to finish or block it first",
    )


class InvalidStatusTransitionError(MigrationStateError):
    """
    Raised when a step status update would break the status state machine.

    Attributes:
        current_status: Status currently stored for the step.
        target_status: Status that was attempted.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="INVALID_STATUS_TRANSITION",
        category="state",
        suggested_action="Review the step lifecycle; terminal statuses need a new attempt first",
    )

    def __init__(
        self,
        run_id: str,
        step_name: str,
        current_status: StepStatus,
        target_status: StepStatus,
    ) -> None:
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {target_status.value}",
            run_id=run_id,
            step_name=step_name,
        )


class RunNotFoundError(MigrationError):
    """Raised when a requested run does not exist."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="RUN_NOT_FOUND",
        category="lookup",
        suggested_action="Verify the run identifier",
    )

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Migration run not found: {run_id}", run_id=run_id)


class RunAlreadyExistsError(MigrationError):
    """Raised when creating a run whose identifier is already taken."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="RUN_ALREADY_EXISTS",
        category="state",
        suggested_action="Resume the existing run instead of starting a new one",
    )

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Migration run already exists: {run_id}", run_id=run_id)


class UnknownStepError(MigrationError):
    """Raised when the resolver is asked for a step that is not registered."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="UNKNOWN_STEP",
        category="configuration",
        suggested_action="Register the step or fix the transition table",
    )

    def __init__(self, step_name: str) -> None:
        super().__init__(f"No step registered under {step_name!r}", step_name=step_name)


class TransitionTableError(MigrationError):
    """Raised when the static transition table does not form a valid topology."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.FATAL,
        error_code="INVALID_TRANSITION_TABLE",
        category="configuration",
        suggested_action="Fix the step registrations so every path ends at END",
    )


__all__ = [
    "ErrorSeverity",
    "ErrorRecoverability",
    "ErrorClassification",
    "MigrationError",
    "DataAccessError",
    "InvalidMigrationStatusError",
    "MigrationStateError",
    "InvalidStatusTransitionError",
    "RunNotFoundError",
    "RunAlreadyExistsError",
    "UnknownStepError",
    "TransitionTableError",
]
