"""
Shared pytest fixtures for the datamigration tests.

This module provides:
- Run state fixtures (run_state, run_view)
- Status store fixtures (status_store, created_run)
- Table fixtures (source_table, destination_table)
- SQLite availability check and skip marker
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from datamigration.models import MigrationRun
from datamigration.state import RunStateView, SharedRunState
from datamigration.stores import InMemoryStatusStore
from datamigration.tables import InMemoryTable
from tests.fixtures import make_table

# ============================================================================
# SQLite Availability Check
# ============================================================================

AIOSQLITE_AVAILABLE = False
try:
    import aiosqlite  # noqa: F401

    AIOSQLITE_AVAILABLE = True
except ImportError:
    pass


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for tests."""
    config.addinivalue_line("markers", "sqlite: marks tests that require SQLite (aiosqlite)")


skip_if_no_aiosqlite = pytest.mark.skipif(not AIOSQLITE_AVAILABLE, reason="aiosqlite not installed")


# ============================================================================
# Run Fixtures
# ============================================================================

RUN_ID = "run-1"
STEP_NAMES = ["CODIFICHE", "TIPI_VERSAMENTO", "CDI_DETAIL"]


@pytest.fixture
def run_state() -> SharedRunState:
    """Run state holding the lock with no block requested."""
    return SharedRunState(RUN_ID, lock_held=True)


@pytest.fixture
def run_view(run_state: SharedRunState) -> RunStateView:
    return run_state.view()


@pytest.fixture
def status_store() -> InMemoryStatusStore:
    return InMemoryStatusStore(enable_tracing=False)


@pytest_asyncio.fixture
async def created_run(status_store: InMemoryStatusStore) -> MigrationRun:
    """A run document for RUN_ID with every step PENDING, already stored."""
    run = MigrationRun.create(RUN_ID, STEP_NAMES)
    await status_store.create(run)
    return run


# ============================================================================
# Table Fixtures
# ============================================================================


@pytest.fixture
def source_table() -> InMemoryTable:
    """Source table with 125 rows."""
    return make_table("CODIFICHE", 125)


@pytest.fixture
def destination_table() -> InMemoryTable:
    return make_table("CODIFICHE")
