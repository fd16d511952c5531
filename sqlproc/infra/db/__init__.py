"""
SQL Server connection handles.

``connect`` builds a ``DbApiConnection`` over ``pymssql`` from a
connection string; ``get_connection`` and ``get_executor`` resolve the
configured aliases.
"""

from .dbapi import DbApiConnection  # noqa: F401
from .mssql import ConnectionTarget, connect, parse_connection_string  # noqa: F401
from .connection_factory import (  # noqa: F401
    configured_aliases,
    default_telemetry_sink,
    get_connection,
    get_executor,
)
