"""
StepRegistry - the static transition table and the step resolver.

Steps are registered with their default successor, forming a chain that
ends at ``END``. Binding the registry to a run's state view and status
store yields a ``StepResolver`` that builds ``MigrationStep`` instances on
demand for the driver.

Usage:
    >>> registry = StepRegistry()
    >>> registry.register_table("CODIFICHE", "TIPI_VERSAMENTO", reader, writer)
    >>> registry.register_table("TIPI_VERSAMENTO", END, reader2, writer2)
    >>> registry.validate()
    >>> resolver = registry.bind(run_state.view(), status_store)
    >>> step = resolver.resolve("CODIFICHE")
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from datamigration.copier import PagedTableCopier
from datamigration.exceptions import TransitionTableError, UnknownStepError
from datamigration.models import END, ERROR, TERMINAL_STATES, MigrationConfig
from datamigration.observability import Tracer, create_tracer
from datamigration.paging import BulkWriter, PagedReader
from datamigration.state import RunStateView
from datamigration.step import MigrationStep, PageCopyFunction, Step, StepDefinition
from datamigration.stores.interface import StatusStore

logger = logging.getLogger(__name__)


@runtime_checkable
class StepResolver(Protocol):
    """Maps a step identity to a ready-to-run step."""

    def resolve(self, step_name: str) -> Step:
        """
        Raises:
            UnknownStepError: If no step is registered under the name.
        """
        ...


def linear_transitions(step_names: Iterable[str]) -> dict[str, str]:
    """
    Build a transition table chaining the names in order, last one to END.

    Example:
        >>> linear_transitions(["A", "B"])
        {'A': 'B', 'B': 'END'}
    """
    names = list(step_names)
    return dict(zip(names, names[1:] + [END]))


class StepRegistry:
    """
    Holds the step definitions and copy functions of a migration.

    Registration order is kept: the first registered step is the default
    initial step of a run.
    """

    def __init__(
        self,
        config: MigrationConfig | None = None,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._config = config or MigrationConfig()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._definitions: dict[str, StepDefinition] = {}
        self._copies: dict[str, PageCopyFunction] = {}

    def register(self, name: str, next_step: str, copy: PageCopyFunction) -> StepDefinition:
        """
        Register a step with an arbitrary page-copy function.

        Raises:
            TransitionTableError: If the name is reserved, empty or taken,
                or the successor is ERROR.
        """
        if not name:
            raise TransitionTableError("Step name must not be empty")
        if name in TERMINAL_STATES:
            raise TransitionTableError(f"Step name {name!r} is reserved")
        if name in self._definitions:
            raise TransitionTableError(f"Step {name!r} is already registered")
        if next_step == ERROR:
            raise TransitionTableError(f"Step {name!r} cannot have ERROR as its successor")

        definition = StepDefinition(name=name, next_step=next_step)
        self._definitions[name] = definition
        self._copies[name] = copy
        logger.debug("Registered step %s -> %s", name, next_step)
        return definition

    def register_table(
        self,
        name: str,
        next_step: str,
        reader: PagedReader,
        writer: BulkWriter,
        *,
        page_size: int | None = None,
    ) -> StepDefinition:
        """
        Register a table step copied by a ``PagedTableCopier``.

        Args:
            name: Step identity (typically the table name).
            next_step: Default successor.
            reader: Source table reader.
            writer: Destination table writer.
            page_size: Records per page; defaults to the config page size.
        """
        copier = PagedTableCopier(
            reader,
            writer,
            page_size=page_size or self._config.page_size,
            tracer=self._tracer,
        )
        return self.register(name, next_step, copier.copy)

    @property
    def transitions(self) -> dict[str, str]:
        """Step name to default successor, in registration order."""
        return {name: d.next_step for name, d in self._definitions.items()}

    @property
    def step_names(self) -> list[str]:
        return list(self._definitions)

    @property
    def first_step(self) -> str:
        """First registered step, or END for an empty registry."""
        return next(iter(self._definitions), END)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def definition(self, name: str) -> StepDefinition:
        try:
            return self._definitions[name]
        except KeyError:
            raise UnknownStepError(name) from None

    def ordered_steps(self, initial_step: str | None = None) -> list[str]:
        """
        Steps in execution order, following successors from ``initial_step``.

        Raises:
            UnknownStepError: If the walk reaches an unregistered step.
            TransitionTableError: If the walk revisits a step.
        """
        current = self.first_step if initial_step is None else initial_step
        ordered: list[str] = []
        seen: set[str] = set()
        while current not in TERMINAL_STATES:
            if current in seen:
                raise TransitionTableError(f"Transition cycle through step {current!r}")
            seen.add(current)
            ordered.append(current)
            current = self.definition(current).next_step
        return ordered

    def validate(self) -> None:
        """
        Check that every path through the table ends at END.

        Raises:
            TransitionTableError: On an unknown successor or a cycle.
        """
        for name, definition in self._definitions.items():
            if definition.next_step != END and definition.next_step not in self._definitions:
                raise TransitionTableError(
                    f"Step {name!r} points to unknown step {definition.next_step!r}"
                )
        for name in self._definitions:
            self.ordered_steps(name)

    def bind(
        self,
        run_state: RunStateView,
        status_store: StatusStore,
    ) -> RegistryStepResolver:
        """Resolver producing steps wired to one run."""
        return RegistryStepResolver(self, run_state, status_store, tracer=self._tracer)

    def copy_function(self, name: str) -> PageCopyFunction:
        if name not in self._copies:
            raise UnknownStepError(name)
        return self._copies[name]


class RegistryStepResolver:
    """StepResolver backed by a StepRegistry and bound to one run."""

    def __init__(
        self,
        registry: StepRegistry,
        run_state: RunStateView,
        status_store: StatusStore,
        *,
        tracer: Tracer | None = None,
    ) -> None:
        self._registry = registry
        self._run_state = run_state
        self._status_store = status_store
        self._tracer = tracer

    def resolve(self, step_name: str) -> MigrationStep:
        definition = self._registry.definition(step_name)
        return MigrationStep(
            definition,
            self._registry.copy_function(step_name),
            self._run_state,
            self._status_store,
            tracer=self._tracer,
        )


__all__ = [
    "StepResolver",
    "StepRegistry",
    "RegistryStepResolver",
    "linear_transitions",
]
