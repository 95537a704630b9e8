"""
Observability utilities for datamigration.

Composition-based tracing plus the standard attribute names used on spans.
OpenTelemetry is optional; without it every component falls back to a
NullTracer.
"""

from datamigration.observability.attributes import (
    ATTR_DB_SYSTEM,
    ATTR_DB_TABLE,
    ATTR_FINAL_STATE,
    ATTR_INITIAL_STEP,
    ATTR_LOCK_ID,
    ATTR_LOCK_KEY,
    ATTR_LOCK_TIMEOUT,
    ATTR_NEXT_STEP,
    ATTR_PAGE_NUMBER,
    ATTR_PAGE_SIZE,
    ATTR_RECORD_COUNT,
    ATTR_RUN_ID,
    ATTR_STEP_NAME,
    ATTR_STEP_STATUS,
)
from datamigration.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)
from datamigration.observability.tracing import OTEL_AVAILABLE

__all__ = [
    "OTEL_AVAILABLE",
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
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
