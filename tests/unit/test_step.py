"""
Unit tests for MigrationStep.

Tests cover:
- A full table copy: COMPLETED, default successor
- Block requested before the step starts and between pages: BLOCKED, END
- Data-access failure on a page write: FAILED, ERROR
- Status store failures and missing run documents
- Elapsed-time logging
"""

import logging
from unittest.mock import AsyncMock

import pytest

from datamigration.copier import Completed, Failed, Interrupted, PagedTableCopier
from datamigration.exceptions import DataAccessError, InvalidMigrationStatusError
from datamigration.models import END, ERROR, MigrationRun, StepStatus
from datamigration.observability import ATTR_RUN_ID, ATTR_STEP_NAME, MockTracer
from datamigration.state import SharedRunState
from datamigration.step import MigrationStep, Step, StepDefinition
from datamigration.stores import InMemoryStatusStore
from datamigration.tables import InMemoryBulkWriter, InMemoryPagedReader, InMemoryTable
from tests.conftest import RUN_ID
from tests.fixtures import BlockingWriter, FailingWriter

STEP = "CODIFICHE"
SUCCESSOR = "TIPI_VERSAMENTO"


def build_step(
    source: InMemoryTable,
    writer: InMemoryBulkWriter,
    run_state: SharedRunState,
    store: InMemoryStatusStore,
    **kwargs,
) -> MigrationStep:
    copier = PagedTableCopier(InMemoryPagedReader(source), writer, page_size=50, enable_tracing=False)
    return MigrationStep(
        StepDefinition(STEP, SUCCESSOR),
        copier.copy,
        run_state.view(),
        store,
        enable_tracing=False,
        **kwargs,
    )


async def stored_status(store: InMemoryStatusStore):
    run = await store.get(RUN_ID)
    assert run is not None
    return run.step_status(STEP)


class TestMigrationStepContract:
    def test_identity_and_successor(
        self,
        source_table: InMemoryTable,
        destination_table: InMemoryTable,
        run_state: SharedRunState,
        status_store: InMemoryStatusStore,
    ) -> None:
        step = build_step(source_table, InMemoryBulkWriter(destination_table), run_state, status_store)

        assert step.step_name == STEP
        assert step.get_next_state() == SUCCESSOR
        assert step.last_result is None
        assert isinstance(step, Step)

    def test_get_step_status_projects_record(
        self,
        source_table: InMemoryTable,
        destination_table: InMemoryTable,
        run_state: SharedRunState,
        status_store: InMemoryStatusStore,
    ) -> None:
        step = build_step(source_table, InMemoryBulkWriter(destination_table), run_state, status_store)
        run = MigrationRun.create(RUN_ID, [STEP, SUCCESSOR])

        record = step.get_step_status(run)

        assert record.step_name == STEP
        assert record is run.steps[STEP]


class TestMigrationStepCall:
    """Tests for MigrationStep.call()."""

    @pytest.mark.asyncio
    async def test_full_copy_completes(
        self,
        source_table: InMemoryTable,
        destination_table: InMemoryTable,
        run_state: SharedRunState,
        status_store: InMemoryStatusStore,
        created_run: MigrationRun,
    ) -> None:
        step = build_step(source_table, InMemoryBulkWriter(destination_table), run_state, status_store)

        next_state = await step.call()

        assert next_state == SUCCESSOR
        record = await stored_status(status_store)
        assert record.status == StepStatus.COMPLETED
        assert record.records_processed == 125
        assert record.start is not None and record.end is not None
        assert len(destination_table) == 125
        assert isinstance(step.last_result.outcome, Completed)

    @pytest.mark.asyncio
    async def test_block_after_page_two(
        self,
        source_table: InMemoryTable,
        destination_table: InMemoryTable,
        run_state: SharedRunState,
        status_store: InMemoryStatusStore,
        created_run: MigrationRun,
    ) -> None:
        writer = BlockingWriter(destination_table, run_state, block_after=2)
        step = build_step(source_table, writer, run_state, status_store)

        next_state = await step.call()

        assert next_state == END
        record = await stored_status(status_store)
        assert record.status == StepStatus.BLOCKED
        assert record.records_processed == 100
        assert len(destination_table) == 100
        assert step.last_result.interrupted

    @pytest.mark.asyncio
    async def test_block_before_start_copies_nothing(
        self,
        source_table: InMemoryTable,
        destination_table: InMemoryTable,
        run_state: SharedRunState,
        status_store: InMemoryStatusStore,
        created_run: MigrationRun,
    ) -> None:
        copy = AsyncMock()
        run_state.request_block()
        step = MigrationStep(
            StepDefinition(STEP, SUCCESSOR),
            copy,
            run_state.view(),
            status_store,
            enable_tracing=False,
        )

        next_state = await step.call()

        assert next_state == END
        copy.assert_not_awaited()
        record = await stored_status(status_store)
        assert record.status == StepStatus.BLOCKED
        assert record.records_processed == 0

    @pytest.mark.asyncio
    async def test_write_failure_on_page_two(
        self,
        source_table: InMemoryTable,
        destination_table: InMemoryTable,
        run_state: SharedRunState,
        status_store: InMemoryStatusStore,
        created_run: MigrationRun,
    ) -> None:
        writer = FailingWriter(destination_table, fail_on_call=2)
        step = build_step(source_table, writer, run_state, status_store)

        next_state = await step.call()

        assert next_state == ERROR
        record = await stored_status(status_store)
        assert record.status == StepStatus.FAILED
        assert record.records_processed == 50
        assert len(destination_table) == 50
        assert writer.calls == 2
        assert step.last_result.failed

    @pytest.mark.asyncio
    async def test_lock_lost_mid_copy_blocks(
        self,
        source_table: InMemoryTable,
        destination_table: InMemoryTable,
        run_state: SharedRunState,
        status_store: InMemoryStatusStore,
        created_run: MigrationRun,
    ) -> None:
        class LockLosingWriter(InMemoryBulkWriter):
            async def write_all(self, records):
                await super().write_all(records)
                run_state.set_lock_held(False)

        step = build_step(source_table, LockLosingWriter(destination_table), run_state, status_store)

        assert await step.call() == END
        record = await stored_status(status_store)
        assert record.status == StepStatus.BLOCKED
        assert record.records_processed == 50

    @pytest.mark.asyncio
    async def test_rerun_after_block_completes(
        self,
        source_table: InMemoryTable,
        destination_table: InMemoryTable,
        run_state: SharedRunState,
        status_store: InMemoryStatusStore,
        created_run: MigrationRun,
    ) -> None:
        blocked = build_step(
            source_table,
            BlockingWriter(destination_table, run_state, block_after=1),
            run_state,
            status_store,
        )
        assert await blocked.call() == END

        run_state.clear_block_request()
        resumed = build_step(source_table, InMemoryBulkWriter(destination_table), run_state, status_store)

        assert await resumed.call() == SUCCESSOR
        record = await stored_status(status_store)
        assert record.status == StepStatus.COMPLETED
        assert record.records_processed == 125
        assert len(destination_table) == 125

    @pytest.mark.asyncio
    async def test_missing_run_propagates(
        self,
        source_table: InMemoryTable,
        destination_table: InMemoryTable,
        run_state: SharedRunState,
        status_store: InMemoryStatusStore,
    ) -> None:
        step = build_step(source_table, InMemoryBulkWriter(destination_table), run_state, status_store)

        with pytest.raises(InvalidMigrationStatusError):
            await step.call()

        assert len(destination_table) == 0

    @pytest.mark.asyncio
    async def test_status_store_failure_is_step_error(
        self,
        source_table: InMemoryTable,
        destination_table: InMemoryTable,
        run_state: SharedRunState,
    ) -> None:
        store = AsyncMock()
        store.get.side_effect = DataAccessError("get_run", "connection refused")
        step = build_step(source_table, InMemoryBulkWriter(destination_table), run_state, store)

        next_state = await step.call()

        assert next_state == ERROR
        assert isinstance(step.last_result.outcome, Failed)
        assert step.last_result.status == StepStatus.FAILED
        assert len(destination_table) == 0

    @pytest.mark.asyncio
    async def test_logs_elapsed_time(
        self,
        source_table: InMemoryTable,
        destination_table: InMemoryTable,
        run_state: SharedRunState,
        status_store: InMemoryStatusStore,
        created_run: MigrationRun,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        step = build_step(source_table, InMemoryBulkWriter(destination_table), run_state, status_store)

        with caplog.at_level(logging.INFO, logger="datamigration.step"):
            await step.call()

        messages = [r.getMessage() for r in caplog.records]
        assert any("starting step CODIFICHE" in m for m in messages)
        assert any(m.endswith(" ms") and "CODIFICHE took" in m for m in messages)

    @pytest.mark.asyncio
    async def test_failure_logged_at_error(
        self,
        source_table: InMemoryTable,
        destination_table: InMemoryTable,
        run_state: SharedRunState,
        status_store: InMemoryStatusStore,
        created_run: MigrationRun,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        step = build_step(source_table, FailingWriter(destination_table, 1), run_state, status_store)

        with caplog.at_level(logging.INFO, logger="datamigration.step"):
            await step.call()

        assert any(
            r.levelno == logging.ERROR and "failed" in r.getMessage() for r in caplog.records
        )

    @pytest.mark.asyncio
    async def test_call_span(
        self,
        source_table: InMemoryTable,
        destination_table: InMemoryTable,
        run_state: SharedRunState,
        status_store: InMemoryStatusStore,
        created_run: MigrationRun,
    ) -> None:
        tracer = MockTracer()
        step = build_step(
            source_table,
            InMemoryBulkWriter(destination_table),
            run_state,
            status_store,
            tracer=tracer,
        )

        await step.call()

        assert tracer.spans[0] == (
            "datamigration.step.call",
            {ATTR_RUN_ID: RUN_ID, ATTR_STEP_NAME: STEP},
        )


class TestInterruptedOutcome:
    @pytest.mark.asyncio
    async def test_injected_copy_interruption(
        self,
        run_state: SharedRunState,
        status_store: InMemoryStatusStore,
        created_run: MigrationRun,
    ) -> None:
        from datamigration.copier import CopyResult

        async def copy(should_continue):
            return CopyResult(
                records_copied=10, pages_read=1, duration_seconds=0.0, outcome=Interrupted()
            )

        step = MigrationStep(
            StepDefinition(STEP, END),
            copy,
            run_state.view(),
            status_store,
            enable_tracing=False,
        )

        assert await step.call() == END
        record = await stored_status(status_store)
        assert record.status == StepStatus.BLOCKED
        assert record.records_processed == 10
