"""
Database connection factory.

Maps connection aliases to the configured connection strings and hands
out new, unopened connection handles.  ``main`` is always available;
``read`` exists when ``DATABASE_READ_CONNECTION_STRING`` is set.  See
``sqlproc.config.env.Config`` for the configuration variables.

``get_executor`` wires an alias, the configured default timeout and a
telemetry sink into a ready ``StoredProcedureExecutor``.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from ...config import get_config
from ...procedures import StoredProcedureExecutor
from ...telemetry import HttpTelemetrySink, LoggingTelemetrySink, TelemetrySink
from .dbapi import DbApiConnection
from .mssql import connect


def _read_connection_string() -> str:
    raw = get_config().DATABASE_READ_CONNECTION_STRING
    if not raw:
        raise KeyError("No connection defined for alias: read (set DATABASE_READ_CONNECTION_STRING)")
    return raw


# Registry mapping aliases to callables that return a connection string.
_registry: Dict[str, Callable[[], str]] = {
    'main': lambda: get_config().DATABASE_CONNECTION_STRING,
    'read': _read_connection_string,
}


def configured_aliases() -> List[str]:
    aliases = ['main']
    if get_config().DATABASE_READ_CONNECTION_STRING:
        aliases.append('read')
    return aliases


def get_connection(alias: str = 'main') -> DbApiConnection:
    """Obtain a new, unopened connection handle by alias.

    Args:
        alias: Either ``'main'`` or ``'read'``.

    Returns:
        A ``DbApiConnection`` for the configured database.

    Raises:
        KeyError: If the alias is not registered or not configured.
    """
    try:
        connection_string = _registry[alias]
    except KeyError:
        raise KeyError(f"No connection defined for alias: {alias}") from None
    return connect(connection_string())


def default_telemetry_sink() -> TelemetrySink:
    """Return the HTTP sink when a collector is configured, the logging sink otherwise."""
    config = get_config()
    if config.TELEMETRY_ENDPOINT and config.TELEMETRY_KEY:
        return HttpTelemetrySink(config.TELEMETRY_ENDPOINT, config.TELEMETRY_KEY)
    return LoggingTelemetrySink()


def get_executor(alias: str = 'main', telemetry: Optional[TelemetrySink] = None) -> StoredProcedureExecutor:
    if alias not in _registry:
        raise KeyError(f"No connection defined for alias: {alias}")
    config = get_config()
    return StoredProcedureExecutor(
        lambda: get_connection(alias),
        telemetry or default_telemetry_sink(),
        command_timeout=config.DATABASE_COMMAND_TIMEOUT,
        dependency_type=config.DATABASE_DEPENDENCY_TYPE,
    )
