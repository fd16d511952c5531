"""
Stored procedure command construction.

A ``StoredProcedureCommand`` bundles a procedure name, a timeout in
seconds and an ordered list of ``Parameter`` objects, bound to an open
``Connection``.  Building a command never touches the database; the
cursor is only created when the command is executed.

Output parameters are bound through the driver and their values are
written back onto the same ``Parameter`` objects once the call
returns, so callers read them exactly where they declared them::

    total = Parameter('PTotalRecord', direction=ParameterDirection.OUTPUT, type=int)
    params = [total, Parameter('POffset', 0), Parameter('PPageSize', 50)]
    ...
    print(total.value)
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Sequence

from .data_reader import DataReader

# Maximum length of the command text attached to telemetry records.
MAX_COMMAND_TEXT = 1000


class ParameterDirection(enum.Enum):
    INPUT = "input"
    OUTPUT = "output"
    INPUT_OUTPUT = "input_output"


@dataclass
class Parameter:
    """A single stored procedure argument.

    ``type`` is only needed for output parameters, where the driver has to
    know which kind of value to allocate for the server to fill in.
    """

    name: str
    value: Any = None
    direction: ParameterDirection = ParameterDirection.INPUT
    type: Optional[type] = None

    @property
    def is_output(self) -> bool:
        return self.direction is not ParameterDirection.INPUT


class Connection(Protocol):
    """Connection handle consumed by the executor.

    Handles are created unopened by a connection factory.  All methods
    except ``is_database_error`` and ``error_code`` may block on I/O.
    """

    @property
    def target(self) -> str: ...

    def open(self) -> None: ...

    def close(self) -> None: ...

    def cursor(self) -> Any: ...

    def set_command_timeout(self, seconds: int) -> None: ...

    def call_procedure(self, cursor: Any, name: str, parameters: Sequence[Parameter]) -> int: ...

    def is_database_error(self, exc: BaseException) -> bool: ...

    def error_code(self, exc: BaseException) -> Optional[str]: ...


def validate_request(name: str, timeout: int, parameters: Optional[Sequence[Parameter]]) -> None:
    """Reject malformed invocation requests.

    Raises:
        ValueError: If ``name`` is empty, ``timeout`` is not a positive
            number of seconds or ``parameters`` is ``None``.
    """
    if not name or not name.strip():
        raise ValueError("Stored procedure name is required")
    if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
        raise ValueError(f"Command timeout must be a positive number of seconds, got {timeout!r}")
    if parameters is None:
        raise ValueError("Parameter list is required (use an empty list for none)")


def command_text(name: str, parameters: Sequence[Parameter]) -> str:
    """Render a call as T-SQL ``EXEC`` text, truncated for telemetry."""
    args = []
    for p in parameters:
        arg = p.name if p.name.startswith('@') else f"@{p.name}"
        if p.is_output:
            arg += " OUTPUT"
        args.append(arg)
    text = f"EXEC {name}"
    if args:
        text += " " + ", ".join(args)
    return text[:MAX_COMMAND_TEXT]


class StoredProcedureCommand:
    """A stored procedure call bound to an open connection."""

    def __init__(self, connection: Connection, name: str, timeout: int, parameters: List[Parameter]) -> None:
        self.connection = connection
        self.name = name
        self.timeout = timeout
        self.parameters = parameters
        self._cursor: Any = None
        self._closed = False

    @property
    def command_text(self) -> str:
        return command_text(self.name, self.parameters)

    def _execute(self) -> Any:
        if self._closed:
            raise RuntimeError(f"Command for {self.name} is closed")
        if self._cursor is not None:
            raise RuntimeError(f"Command for {self.name} was already executed")
        self._cursor = self.connection.cursor()
        self.connection.set_command_timeout(self.timeout)
        rowcount = self.connection.call_procedure(self._cursor, self.name, self.parameters)
        return rowcount

    def execute_non_query(self) -> int:
        """Run the procedure and return the affected row count (``-1`` if unknown)."""
        rowcount = self._execute()
        return rowcount if rowcount is not None else -1

    def execute_reader(self) -> DataReader:
        """Run the procedure and return a forward-only ``DataReader`` over its rows."""
        self._execute()
        return DataReader(self._cursor)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        cursor, self._cursor = self._cursor, None
        if cursor is not None:
            cursor.close()

    def __enter__(self) -> "StoredProcedureCommand":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
            return
        try:
            self.close()
        except Exception:
            logging.warning("[command] closing %s after a failure raised", self.name, exc_info=True)


def build_command(
    connection: Connection,
    name: str,
    timeout: int,
    parameters: Sequence[Parameter],
) -> StoredProcedureCommand:
    """Create a stored procedure command without executing it.

    Args:
        connection: The connection the command will run on.
        name: Name of the stored procedure, optionally schema qualified.
        timeout: Seconds to wait for the procedure to complete.
        parameters: Arguments in the order the procedure declares them.

    Returns:
        A ``StoredProcedureCommand`` ready to execute.

    Raises:
        ValueError: If the request is malformed.
    """
    validate_request(name, timeout, parameters)
    return StoredProcedureCommand(connection, name, timeout, list(parameters))
