"""
Process-local coordination state for one migration run.

``SharedRunState`` is owned by whoever drives the run (the coordinator, or
a caller wiring a ``MigrationDriver`` by hand). It carries two flags:

- ``block_requested``: set by an operator to pause the run. Steps poll it
  between pages and stop cleanly.
- ``lock_held``: true while the run owns exclusive access to migration
  state. Only the lock owner flips it; when it drops, steps stop reading
  new pages.

Steps never receive the writable object. They get a ``RunStateView``, which
exposes the same flags read-only.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class RunStateView:
    """
    Read-only capability over a SharedRunState.

    Attributes are read through to the owning state on every access, so a
    block request made after the view was handed out is visible at the next
    page boundary.
    """

    __slots__ = ("_state",)

    def __init__(self, state: SharedRunState) -> None:
        self._state = state

    @property
    def run_id(self) -> str:
        return self._state.run_id

    @property
    def block_requested(self) -> bool:
        return self._state.block_requested

    @property
    def lock_held(self) -> bool:
        return self._state.lock_held

    def __repr__(self) -> str:
        return (
            f"RunStateView(run_id={self.run_id!r}, "
            f"block_requested={self.block_requested}, lock_held={self.lock_held})"
        )


class SharedRunState:
    """
    Run-wide flags shared between the run owner and the active step.

    Example:
        >>> state = SharedRunState("run-1", lock_held=True)
        >>> view = state.view()
        >>> state.request_block()
        >>> view.block_requested
        True
    """

    def __init__(self, run_id: str, *, lock_held: bool = False) -> None:
        self._run_id = run_id
        self._block_requested = False
        self._lock_held = lock_held
        self._view = RunStateView(self)

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def block_requested(self) -> bool:
        return self._block_requested

    @property
    def lock_held(self) -> bool:
        return self._lock_held

    def request_block(self) -> None:
        """Ask the run to stop at the next page boundary."""
        if not self._block_requested:
            logger.info("Block requested for run %s", self._run_id)
        self._block_requested = True

    def clear_block_request(self) -> None:
        """Withdraw a block request (used before resuming a run)."""
        self._block_requested = False

    def set_lock_held(self, held: bool) -> None:
        """Record whether the run currently owns the exclusivity lock."""
        if self._lock_held and not held:
            logger.info("Run %s no longer holds the migration lock", self._run_id)
        self._lock_held = held

    def view(self) -> RunStateView:
        """Read-only view handed to steps."""
        return self._view

    def __repr__(self) -> str:
        return (
            f"SharedRunState(run_id={self._run_id!r}, "
            f"block_requested={self._block_requested}, lock_held={self._lock_held})"
        )


__all__ = [
    "RunStateView",
    "SharedRunState",
]
