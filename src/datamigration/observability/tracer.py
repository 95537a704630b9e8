"""
Tracers injected into migration components.

Drivers, steps, copiers, stores and lock managers take a ``tracer`` argument
and never import OpenTelemetry themselves; ``create_tracer`` decides whether
spans are real.

    >>> tracer = create_tracer(__name__, enable_tracing=False)
    >>> with tracer.span("datamigration.copier.page", {"datamigration.page.number": 0}):
    ...     pass
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from datamigration.observability.tracing import OTEL_AVAILABLE

if TYPE_CHECKING:
    from opentelemetry.trace import Span

SpanAttributes = dict[str, Any]


@runtime_checkable
class Tracer(Protocol):
    """Opens spans around migration operations."""

    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> AbstractContextManager[Span | None]: ...

    @property
    def enabled(self) -> bool:
        """False when spans are discarded, so callers can skip building attributes."""
        ...


class NullTracer:
    """Tracer used when tracing is off or OpenTelemetry is missing."""

    @contextlib.contextmanager
    def span(self, name: str, attributes: SpanAttributes | None = None) -> Iterator[None]:
        yield None

    @property
    def enabled(self) -> bool:
        return False


class OpenTelemetryTracer:
    """
    Tracer delegating to the globally configured OpenTelemetry provider.

    Raises:
        ImportError: If the ``telemetry`` extra is not installed.
    """

    def __init__(self, tracer_name: str) -> None:
        from opentelemetry import trace

        self._otel = trace.get_tracer(tracer_name)

    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> AbstractContextManager[Span | None]:
        return self._otel.start_as_current_span(name, attributes=attributes or {})

    @property
    def enabled(self) -> bool:
        return True


class MockTracer:
    """
    Records ``(name, attributes)`` pairs so tests can assert on spans.

    Example:
        >>> tracer = MockTracer()
        >>> with tracer.span("datamigration.step.call", {"datamigration.step.name": "A"}):
        ...     pass
        >>> tracer.span_names
        ['datamigration.step.call']
    """

    def __init__(self) -> None:
        self.spans: list[tuple[str, SpanAttributes | None]] = []

    @contextlib.contextmanager
    def span(self, name: str, attributes: SpanAttributes | None = None) -> Iterator[None]:
        self.spans.append((name, attributes))
        yield None

    @property
    def enabled(self) -> bool:
        return True

    @property
    def span_names(self) -> list[str]:
        return [name for name, _ in self.spans]

    def clear(self) -> None:
        self.spans.clear()


def create_tracer(name: str, enable_tracing: bool = True) -> Tracer:
    """OpenTelemetryTracer when enabled and installed, NullTracer otherwise."""
    if enable_tracing and OTEL_AVAILABLE:
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
]
