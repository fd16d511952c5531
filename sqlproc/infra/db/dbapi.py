"""
Connection handle over a DB-API 2.0 driver module.

``DbApiConnection`` implements the ``Connection`` protocol used by the
stored procedure executor for any driver module that provides
``connect``, an ``Error`` base exception and cursors with ``callproc``.
Output parameters are bound with the driver's ``output(type, value)``
helper (``pymssql.output``); drivers without one only accept input
parameters.

The handle is created closed.  ``open`` calls ``driver.connect`` with
the keyword arguments given at construction time and ``close`` is safe
to call on a handle that never opened.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Sequence

from ...procedures.command import Parameter

TimeoutSetter = Callable[[Any, int], None]


class DbApiConnection:
    def __init__(
        self,
        driver: Any,
        target: str,
        connect_kwargs: Dict[str, Any],
        timeout_setter: Optional[TimeoutSetter] = None,
    ) -> None:
        self._driver = driver
        self._target = target
        self._connect_kwargs = dict(connect_kwargs)
        self._timeout_setter = timeout_setter
        self._conn: Any = None

    @property
    def target(self) -> str:
        return self._target

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def _require_open(self) -> Any:
        if self._conn is None:
            raise RuntimeError(f"Connection to {self._target} is not open")
        return self._conn

    def open(self) -> None:
        if self._conn is not None:
            raise RuntimeError(f"Connection to {self._target} is already open")
        self._conn = self._driver.connect(**self._connect_kwargs)

    def cursor(self) -> Any:
        return self._require_open().cursor()

    def set_command_timeout(self, seconds: int) -> None:
        conn = self._require_open()
        if self._timeout_setter is not None:
            self._timeout_setter(conn, seconds)

    def _bind(self, parameter: Parameter) -> Any:
        if not parameter.is_output:
            return parameter.value
        output = getattr(self._driver, 'output', None)
        if output is None:
            raise ValueError(
                f"Driver {getattr(self._driver, '__name__', self._driver)!r} cannot bind output parameter {parameter.name}"
            )
        param_type = parameter.type
        if param_type is None and parameter.value is not None:
            param_type = type(parameter.value)
        if param_type is None:
            raise ValueError(f"Output parameter {parameter.name} needs a type")
        return output(param_type, parameter.value)

    def call_procedure(self, cursor: Any, name: str, parameters: Sequence[Parameter]) -> int:
        """Call ``name`` on ``cursor`` and copy output values back onto ``parameters``."""
        args = tuple(self._bind(p) for p in parameters)
        returned = cursor.callproc(name, args)
        if returned is not None:
            for parameter, value in zip(parameters, returned):
                if parameter.is_output:
                    parameter.value = value
        rowcount = getattr(cursor, 'rowcount', -1)
        return -1 if rowcount is None else rowcount

    def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()

    def is_database_error(self, exc: BaseException) -> bool:
        return isinstance(exc, self._driver.Error)

    def error_code(self, exc: BaseException) -> Optional[str]:
        """Return the server or library error number carried by ``exc``.

        SQL Server drivers expose it as a ``number`` attribute or as the
        first element of the exception arguments, e.g. ``(547, b'...')``.
        """
        number = getattr(exc, 'number', None)
        if number is None:
            for arg in exc.args:
                if isinstance(arg, tuple) and arg:
                    arg = arg[0]
                if isinstance(arg, int) and not isinstance(arg, bool):
                    number = arg
                    break
        return None if number is None else str(number)
