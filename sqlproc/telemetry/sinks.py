"""
Telemetry sinks.

A sink is anything with a ``record(telemetry)`` method.  The executor
calls it once per stored procedure invocation, possibly from several
invocations at the same time, so every sink here is safe to share.

* ``LoggingTelemetrySink`` writes records through ``logging``.
* ``HttpTelemetrySink`` posts each record as JSON to a collector
  endpoint.  The API key is sent in the ``ApiKeyApp`` header.
* ``InMemoryTelemetrySink`` keeps records in a list, for tests and
  diagnostics.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Protocol

import requests

from .record import DependencyTelemetry


class TelemetrySink(Protocol):
    def record(self, telemetry: DependencyTelemetry) -> None: ...


class LoggingTelemetrySink:
    """Log each dependency call; failures are logged at WARNING."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def record(self, telemetry: DependencyTelemetry) -> None:
        level = self.level if telemetry.success else max(self.level, logging.WARNING)
        logging.log(
            level,
            '[telemetry] %s %s on %s',
            telemetry.type,
            telemetry.name,
            telemetry.target,
            extra={'dependency': telemetry.to_dict()},
        )


class HttpTelemetrySink:
    """Send dependency records to an HTTP collector.

    Args:
        endpoint: URL accepting a JSON body per record.
        api_key: Key sent in the ``ApiKeyApp`` header.
        timeout: Seconds to wait for the collector.

    Raises:
        ValueError: If ``endpoint`` or ``api_key`` is empty.
    """

    def __init__(self, endpoint: str, api_key: str, timeout: float = 5) -> None:
        if not endpoint or not api_key:
            raise ValueError('TELEMETRY_ENDPOINT/TELEMETRY_KEY not configured (set in environment)')
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout

    def record(self, telemetry: DependencyTelemetry) -> None:
        response = requests.post(
            self.endpoint,
            json=telemetry.to_dict(),
            headers={
                'accept': '*/*',
                'ApiKeyApp': self.api_key,
                'Content-Type': 'application/json',
            },
            timeout=self.timeout,
        )
        response.raise_for_status()


class InMemoryTelemetrySink:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: List[DependencyTelemetry] = []

    def record(self, telemetry: DependencyTelemetry) -> None:
        with self._lock:
            self._records.append(telemetry)

    @property
    def records(self) -> List[DependencyTelemetry]:
        with self._lock:
            return list(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
