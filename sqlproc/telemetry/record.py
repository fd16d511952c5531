"""
Dependency telemetry record.

One ``DependencyTelemetry`` describes one outbound call to the
database: which target was called, what was run, when it started, how
long it took and whether it succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class DependencyTelemetry:
    type: str
    target: str
    name: str
    data: str
    start_time: datetime
    duration: timedelta
    result_code: Optional[str]
    success: bool

    @property
    def duration_ms(self) -> float:
        return self.duration.total_seconds() * 1000.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'target': self.target,
            'name': self.name,
            'data': self.data,
            'startTime': self.start_time.isoformat(),
            'durationMs': round(self.duration_ms, 3),
            'resultCode': self.result_code,
            'success': self.success,
        }
