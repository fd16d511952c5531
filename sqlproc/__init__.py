"""
Instrumented stored procedure calls for SQL Server.

Every call opens its own connection, runs one stored procedure, maps
the rows it returns with a caller supplied function, closes the
connection and records one dependency telemetry event (latency,
success flag, driver error code).  See ``sqlproc.procedures`` for the
executor and ``sqlproc.infra.db`` for the configured connections.
"""
