"""Unit tests for the datamigration exception hierarchy and classification."""

import logging

from datamigration.exceptions import (
    DataAccessError,
    ErrorRecoverability,
    ErrorSeverity,
    InvalidMigrationStatusError,
    InvalidStatusTransitionError,
    MigrationError,
    MigrationStateError,
    RunAlreadyExistsError,
    RunNotFoundError,
    TransitionTableError,
    UnknownStepError,
)
from datamigration.models import StepStatus


class TestHierarchy:
    def test_every_error_is_a_migration_error(self) -> None:
        errors = [
            DataAccessError("read_page", "boom"),
            InvalidMigrationStatusError("run-1"),
            MigrationStateError("busy"),
            InvalidStatusTransitionError(
                "run-1", "A", StepStatus.PENDING, StepStatus.COMPLETED
            ),
            RunNotFoundError("run-1"),
            RunAlreadyExistsError("run-1"),
            UnknownStepError("A"),
            TransitionTableError("cycle"),
        ]
        for error in errors:
            assert isinstance(error, MigrationError)

    def test_invalid_transition_is_state_error(self) -> None:
        error = InvalidStatusTransitionError(
            "run-1", "A", StepStatus.COMPLETED, StepStatus.BLOCKED
        )
        assert isinstance(error, MigrationStateError)
        assert "COMPLETED -> BLOCKED" in str(error)


class TestDataAccessError:
    def test_message_and_attributes(self) -> None:
        cause = RuntimeError("connection reset")
        error = DataAccessError("write_page", cause, table="CODIFICHE")

        assert error.operation == "write_page"
        assert error.original_error is cause
        assert error.table == "CODIFICHE"
        assert "write_page" in str(error)
        assert "CODIFICHE" in str(error)
        assert "connection reset" in str(error)

    def test_classification_is_transient(self) -> None:
        error = DataAccessError("read_page", "boom")
        assert error.classification.recoverability == ErrorRecoverability.TRANSIENT
        assert error.error_code == "DATA_ACCESS_ERROR"
        assert error.severity == ErrorSeverity.ERROR


class TestInvalidMigrationStatusError:
    def test_is_fatal(self) -> None:
        error = InvalidMigrationStatusError("run-1", "CODIFICHE")
        assert error.run_id == "run-1"
        assert error.step_name == "CODIFICHE"
        assert error.classification.recoverability == ErrorRecoverability.FATAL
        assert not error.classification.recoverability.should_resume


class TestClassification:
    def test_severity_log_levels(self) -> None:
        assert ErrorSeverity.ERROR.log_level == logging.ERROR
        assert ErrorSeverity.CRITICAL.log_level == logging.CRITICAL

    def test_to_dict(self) -> None:
        error = RunNotFoundError("run-1")
        data = error.to_dict()

        assert data["error_code"] == "RUN_NOT_FOUND"
        assert data["run_id"] == "run-1"
        assert data["classification"]["recoverability"] == "fatal"
