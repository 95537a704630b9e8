"""
Tests for the composition-based tracer implementations.

Tests cover:
- NullTracer and MockTracer behaviour
- create_tracer() selection
"""

from unittest.mock import patch

import pytest

from datamigration.observability import (
    OTEL_AVAILABLE,
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)


class TestNullTracer:
    def test_span_yields_none(self) -> None:
        tracer = NullTracer()

        with tracer.span("datamigration.test", {"key": "value"}) as span:
            assert span is None

        assert not tracer.enabled
        assert isinstance(tracer, Tracer)


class TestMockTracer:
    def test_records_spans(self) -> None:
        tracer = MockTracer()

        with tracer.span("a", {"k": 1}):
            with tracer.span("b"):
                pass

        assert tracer.spans == [("a", {"k": 1}), ("b", None)]
        assert tracer.span_names == ["a", "b"]
        assert tracer.enabled

    def test_clear(self) -> None:
        tracer = MockTracer()
        with tracer.span("a"):
            pass

        tracer.clear()

        assert tracer.spans == []


class TestCreateTracer:
    def test_disabled_returns_null_tracer(self) -> None:
        assert isinstance(create_tracer(__name__, enable_tracing=False), NullTracer)

    def test_without_opentelemetry(self) -> None:
        with patch("datamigration.observability.tracer.OTEL_AVAILABLE", False):
            assert isinstance(create_tracer(__name__), NullTracer)

    @pytest.mark.skipif(not OTEL_AVAILABLE, reason="opentelemetry not installed")
    def test_enabled_returns_opentelemetry_tracer(self) -> None:
        tracer = create_tracer(__name__)

        assert isinstance(tracer, OpenTelemetryTracer)
        assert tracer.enabled
        with tracer.span("datamigration.test", {"datamigration.run.id": "run-1"}) as span:
            assert span is not None
