"""
OpenTelemetry availability detection for datamigration.

OpenTelemetry is an optional dependency (``pip install datamigration-py[telemetry]``).
This module is the single place that attempts the import; every other
component goes through :func:`datamigration.observability.create_tracer`.
"""

try:
    import opentelemetry.trace  # noqa: F401

    OTEL_AVAILABLE = True
except ImportError:
    OTEL_AVAILABLE = False

__all__ = ["OTEL_AVAILABLE"]
