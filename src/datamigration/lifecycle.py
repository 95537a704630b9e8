"""
Shared bookkeeping used by every migration step.

The functions here implement the step lifecycle outside any one step class:

- ``can_continue_read_pages``: the between-page continuation predicate.
- ``check_execution_block``: turns a pending block request into an
  ``Interrupted`` outcome, optionally persisting BLOCKED first.
- ``mark_*``: status updates. Each one reads the whole run document from
  the status store, moves the nested step record and writes the document
  back.

A missing run document raises ``InvalidMigrationStatusError`` and is never
papered over by creating a fresh document.
"""

from __future__ import annotations

import logging
from datetime import datetime

from datamigration.copier import Interrupted
from datamigration.exceptions import InvalidMigrationStatusError
from datamigration.models import StepStatus, StepStatusRecord, utc_now
from datamigration.paging import PageRequest
from datamigration.state import RunStateView
from datamigration.stores.interface import StatusStore

logger = logging.getLogger(__name__)


def can_continue_read_pages(state: RunStateView, cursor: PageRequest | None) -> bool:
    """
    Decide whether the copy loop may read the next page.

    True only when no block was requested, the run still holds its lock and
    the source reported another page.
    """
    return not state.block_requested and state.lock_held and cursor is not None


async def update_step_status(
    store: StatusStore,
    run_id: str,
    step_name: str,
    status: StepStatus,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    records_processed: int | None = None,
) -> StepStatusRecord:
    """
    Read-modify-write one step record inside the run document.

    Raises:
        InvalidMigrationStatusError: If the store holds no document for the run.
        InvalidStatusTransitionError: If the status machine forbids the move.
        DataAccessError: If the store fails.
    """
    run = await store.get(run_id)
    if run is None:
        raise InvalidMigrationStatusError(run_id, step_name)

    record = run.apply_status(
        step_name,
        status,
        start=start,
        end=end,
        records_processed=records_processed,
    )
    await store.put(run)

    logger.debug(
        "Run %s step %s -> %s (%d records)",
        run_id,
        step_name,
        status.value,
        record.records_processed,
    )
    return record


async def mark_started(store: StatusStore, run_id: str, step_name: str) -> StepStatusRecord:
    return await update_step_status(
        store, run_id, step_name, StepStatus.IN_PROGRESS, start=utc_now()
    )


async def mark_completed(
    store: StatusStore, run_id: str, step_name: str, records_processed: int
) -> StepStatusRecord:
    return await update_step_status(
        store,
        run_id,
        step_name,
        StepStatus.COMPLETED,
        end=utc_now(),
        records_processed=records_processed,
    )


async def mark_failed(
    store: StatusStore, run_id: str, step_name: str, records_processed: int
) -> StepStatusRecord:
    return await update_step_status(
        store,
        run_id,
        step_name,
        StepStatus.FAILED,
        end=utc_now(),
        records_processed=records_processed,
    )


async def mark_blocked(
    store: StatusStore, run_id: str, step_name: str, records_processed: int = 0
) -> StepStatusRecord:
    return await update_step_status(
        store,
        run_id,
        step_name,
        StepStatus.BLOCKED,
        end=utc_now(),
        records_processed=records_processed,
    )


async def mark_step_end(
    store: StatusStore,
    run_id: str,
    step_name: str,
    *,
    interrupted: bool,
    records_processed: int,
) -> StepStatusRecord:
    """Record the end of the copy loop: BLOCKED if it was interrupted, else COMPLETED."""
    if interrupted:
        return await mark_blocked(store, run_id, step_name, records_processed)
    return await mark_completed(store, run_id, step_name, records_processed)


async def check_execution_block(
    state: RunStateView,
    store: StatusStore,
    step_name: str,
    *,
    update_status: bool = True,
) -> Interrupted | None:
    """
    Honour a block request (or a lost run lock) before the step touches data.

    Returns:
        An Interrupted outcome when a block is pending (after persisting
        BLOCKED if ``update_status``), otherwise None.
    """
    if not state.block_requested and state.lock_held:
        return None

    logger.info(
        "Run %s: %s, step %s will not copy",
        state.run_id,
        "block requested" if state.block_requested else "migration lock not held",
        step_name,
    )
    if update_status:
        await mark_blocked(store, state.run_id, step_name)
    return Interrupted()


__all__ = [
    "can_continue_read_pages",
    "update_step_status",
    "mark_started",
    "mark_completed",
    "mark_failed",
    "mark_blocked",
    "mark_step_end",
    "check_execution_block",
]
