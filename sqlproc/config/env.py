"""
Environment configuration loader.

Values are read from the process environment after ``load_dotenv`` has
merged any ``.env`` file found from the working directory.  Required
variables raise a ``ValueError`` when they are missing; optional ones
fall back to ``None`` or a default.

Supported variables:

* ``DATABASE_CONNECTION_STRING`` – connection string of the main database.
* ``DATABASE_READ_CONNECTION_STRING`` – optional read replica connection string.
* ``DATABASE_COMMAND_TIMEOUT`` – default stored procedure timeout in seconds (default ``30``).
* ``DATABASE_DEPENDENCY_TYPE`` – dependency type reported in telemetry (default ``'SQL'``).
* ``TELEMETRY_ENDPOINT`` – URL of an HTTP telemetry collector.
* ``TELEMETRY_KEY`` – API key for the telemetry collector.

The configuration is loaded on first use of ``get_config`` and cached.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

DEFAULT_COMMAND_TIMEOUT = 30
DEFAULT_DEPENDENCY_TYPE = "SQL"


@dataclass(frozen=True)
class Config:
    """Holds environment configuration for the application."""

    DATABASE_CONNECTION_STRING: str
    DATABASE_READ_CONNECTION_STRING: Optional[str] = None
    DATABASE_COMMAND_TIMEOUT: int = DEFAULT_COMMAND_TIMEOUT
    DATABASE_DEPENDENCY_TYPE: str = DEFAULT_DEPENDENCY_TYPE
    TELEMETRY_ENDPOINT: Optional[str] = None
    TELEMETRY_KEY: Optional[str] = None


def load_config() -> Config:
    """Load configuration from environment variables.

    Raises:
        ValueError: If a required environment variable is missing or empty,
            or ``DATABASE_COMMAND_TIMEOUT`` is not a positive integer.

    Returns:
        Config: A populated configuration dataclass.
    """
    load_dotenv()

    def _require(name: str) -> str:
        value = os.environ.get(name)
        if not value:
            raise ValueError(f"Environment variable {name} is required")
        return value

    raw_timeout = os.environ.get("DATABASE_COMMAND_TIMEOUT") or str(DEFAULT_COMMAND_TIMEOUT)
    try:
        command_timeout = int(raw_timeout)
    except ValueError:
        raise ValueError(f"DATABASE_COMMAND_TIMEOUT must be an integer, got {raw_timeout!r}") from None
    if command_timeout <= 0:
        raise ValueError(f"DATABASE_COMMAND_TIMEOUT must be positive, got {command_timeout}")

    return Config(
        DATABASE_CONNECTION_STRING=_require("DATABASE_CONNECTION_STRING"),
        DATABASE_READ_CONNECTION_STRING=os.environ.get("DATABASE_READ_CONNECTION_STRING") or None,
        DATABASE_COMMAND_TIMEOUT=command_timeout,
        DATABASE_DEPENDENCY_TYPE=os.environ.get("DATABASE_DEPENDENCY_TYPE") or DEFAULT_DEPENDENCY_TYPE,
        TELEMETRY_ENDPOINT=os.environ.get("TELEMETRY_ENDPOINT") or None,
        TELEMETRY_KEY=os.environ.get("TELEMETRY_KEY") or None,
    )


@lru_cache(maxsize=1)
def get_config() -> Config:
    return load_config()
