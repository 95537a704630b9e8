"""Unit tests for SharedRunState and RunStateView."""

import logging

import pytest

from datamigration.state import RunStateView, SharedRunState


class TestSharedRunState:
    def test_initial_flags(self) -> None:
        state = SharedRunState("run-1")
        assert state.run_id == "run-1"
        assert not state.block_requested
        assert not state.lock_held

    def test_request_and_clear_block(self) -> None:
        state = SharedRunState("run-1", lock_held=True)
        state.request_block()
        assert state.block_requested
        state.clear_block_request()
        assert not state.block_requested

    def test_request_block_logs_once(self, caplog: pytest.LogCaptureFixture) -> None:
        state = SharedRunState("run-1")
        with caplog.at_level(logging.INFO, logger="datamigration.state"):
            state.request_block()
            state.request_block()

        assert sum("Block requested" in r.message for r in caplog.records) == 1

    def test_lock_loss_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        state = SharedRunState("run-1", lock_held=True)
        with caplog.at_level(logging.INFO, logger="datamigration.state"):
            state.set_lock_held(False)

        assert not state.lock_held
        assert any("no longer holds" in r.message for r in caplog.records)


class TestRunStateView:
    def test_view_reads_through(self) -> None:
        state = SharedRunState("run-1", lock_held=True)
        view = state.view()
        assert isinstance(view, RunStateView)
        assert view.run_id == "run-1"
        assert view.lock_held
        assert not view.block_requested

        state.request_block()
        state.set_lock_held(False)

        assert view.block_requested
        assert not view.lock_held

    def test_view_is_read_only(self) -> None:
        view = SharedRunState("run-1").view()
        assert not hasattr(view, "request_block")
        with pytest.raises(AttributeError):
            view.block_requested = True  # type: ignore[misc]

    def test_view_is_stable(self) -> None:
        state = SharedRunState("run-1")
        assert state.view() is state.view()
