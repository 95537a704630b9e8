"""
datamigration - Table-by-table data migration orchestration for Python.

This library provides:
- A finite state machine driver walking a static table of migration steps
- Paged table copying with cooperative block requests between pages
- Per-step status documents with PostgreSQL, SQLite and In-Memory stores
- Run exclusivity through PostgreSQL advisory locks
- Optional OpenTelemetry tracing
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("datamigration-py")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from datamigration.coordinator import MigrationCoordinator
from datamigration.copier import (
    Completed,
    ContinuePredicate,
    CopyOutcome,
    CopyProgress,
    CopyResult,
    Failed,
    Interrupted,
    PagedTableCopier,
)
from datamigration.driver import (
    DriverResult,
    ExecutionOutcome,
    MigrationDriver,
    StepExecution,
)
from datamigration.exceptions import (
    DataAccessError,
    ErrorClassification,
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
from datamigration.lifecycle import can_continue_read_pages, check_execution_block
from datamigration.locks import (
    InMemoryLockManager,
    LockAcquisitionError,
    LockInfo,
    LockNotHeldError,
    PostgreSQLLockManager,
    RunLockManager,
)
from datamigration.models import (
    DEFAULT_PAGE_SIZE,
    END,
    ERROR,
    MigrationConfig,
    MigrationRun,
    StatusTransition,
    StepStatus,
    StepStatusRecord,
)
from datamigration.paging import BulkWriter, Page, PagedReader, PageRequest, Record
from datamigration.registry import (
    RegistryStepResolver,
    StepRegistry,
    StepResolver,
    linear_transitions,
)
from datamigration.state import RunStateView, SharedRunState
from datamigration.step import (
    MigrationStep,
    PageCopyFunction,
    Step,
    StepDefinition,
    StepResult,
)
from datamigration.stores import (
    SQLITE_AVAILABLE,
    InMemoryStatusStore,
    PostgreSQLStatusStore,
    SQLiteNotAvailableError,
    SQLiteStatusStore,
    StatusStore,
    get_schema,
)
from datamigration.tables import (
    InMemoryBulkWriter,
    InMemoryPagedReader,
    InMemoryTable,
    SQLAlchemyBulkWriter,
    SQLAlchemyPagedReader,
)

__all__ = [
    "__version__",
    # Models
    "END",
    "ERROR",
    "DEFAULT_PAGE_SIZE",
    "StepStatus",
    "StepStatusRecord",
    "StatusTransition",
    "MigrationRun",
    "MigrationConfig",
    # Exceptions
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
    # State
    "SharedRunState",
    "RunStateView",
    # Paging
    "Record",
    "PageRequest",
    "Page",
    "PagedReader",
    "BulkWriter",
    # Copier
    "ContinuePredicate",
    "Completed",
    "Interrupted",
    "Failed",
    "CopyOutcome",
    "CopyProgress",
    "CopyResult",
    "PagedTableCopier",
    # Step lifecycle
    "can_continue_read_pages",
    "check_execution_block",
    "PageCopyFunction",
    "StepDefinition",
    "StepResult",
    "Step",
    "MigrationStep",
    # Registry and driver
    "StepResolver",
    "StepRegistry",
    "RegistryStepResolver",
    "linear_transitions",
    "ExecutionOutcome",
    "StepExecution",
    "DriverResult",
    "MigrationDriver",
    "MigrationCoordinator",
    # Stores
    "StatusStore",
    "InMemoryStatusStore",
    "PostgreSQLStatusStore",
    "SQLiteStatusStore",
    "SQLITE_AVAILABLE",
    "SQLiteNotAvailableError",
    "get_schema",
    # Tables
    "InMemoryTable",
    "InMemoryPagedReader",
    "InMemoryBulkWriter",
    "SQLAlchemyPagedReader",
    "SQLAlchemyBulkWriter",
    # Locks
    "RunLockManager",
    "LockInfo",
    "LockAcquisitionError",
    "LockNotHeldError",
    "PostgreSQLLockManager",
    "InMemoryLockManager",
]
