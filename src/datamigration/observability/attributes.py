"""
Standard span attributes for datamigration.

Attribute constants shared by every component so that spans emitted by the
driver, steps, copier, and stores can be correlated. Database attributes
follow the OpenTelemetry semantic conventions.
"""

# =============================================================================
# Run / Step Attributes
# =============================================================================

ATTR_RUN_ID = "datamigration.run.id"
"""Identifier of the migration run."""

ATTR_STEP_NAME = "datamigration.step.name"
"""Identity of the step being executed."""

ATTR_NEXT_STEP = "datamigration.step.next"
"""Identity the step routed to after it returned."""

ATTR_STEP_STATUS = "datamigration.step.status"
"""Status written for the step (StepStatus value)."""

ATTR_INITIAL_STEP = "datamigration.run.initial_step"
"""Step identity the driver started from."""

ATTR_FINAL_STATE = "datamigration.run.final_state"
"""Terminal identity the driver stopped at (END or ERROR)."""

# =============================================================================
# Paging Attributes
# =============================================================================

ATTR_PAGE_NUMBER = "datamigration.page.number"
"""Zero-based page number being read."""

ATTR_PAGE_SIZE = "datamigration.page.size"
"""Maximum records per page."""

ATTR_RECORD_COUNT = "datamigration.records.count"
"""Number of records involved in an operation."""

# =============================================================================
# Database Attributes (OpenTelemetry semantic conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'postgresql', 'sqlite')."""

ATTR_DB_TABLE = "db.sql.table"
"""Table name the operation works on."""

# =============================================================================
# Lock Attributes
# =============================================================================

ATTR_LOCK_KEY = "datamigration.lock.key"
"""String key identifying a run lock."""

ATTR_LOCK_ID = "datamigration.lock.id"
"""Numeric advisory lock identifier derived from the key."""

ATTR_LOCK_TIMEOUT = "datamigration.lock.timeout"
"""Acquisition timeout in seconds (-1 when waiting forever)."""

__all__ = [
    "ATTR_RUN_ID",
    "ATTR_STEP_NAME",
    "ATTR_NEXT_STEP",
    "ATTR_STEP_STATUS",
    "ATTR_INITIAL_STEP",
    "ATTR_FINAL_STATE",
    "ATTR_PAGE_NUMBER",
    "ATTR_PAGE_SIZE",
    "ATTR_RECORD_COUNT",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_TABLE",
    "ATTR_LOCK_KEY",
    "ATTR_LOCK_ID",
    "ATTR_LOCK_TIMEOUT",
]
