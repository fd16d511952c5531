"""
Dependency telemetry for stored procedure calls.

    from sqlproc.telemetry import LoggingTelemetrySink
    sink = LoggingTelemetrySink()
"""

from .record import DependencyTelemetry  # noqa: F401
from .sinks import (  # noqa: F401
    HttpTelemetrySink,
    InMemoryTelemetrySink,
    LoggingTelemetrySink,
    TelemetrySink,
)
