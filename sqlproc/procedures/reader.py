"""
Result readers for the three stored procedure shapes.

Each reader builds a command on an already open connection, runs it and
collects what the procedure returns:

* ``read_no_result`` discards everything but the side effects;
* ``read_scalar`` maps the first row, or returns ``None`` when there is none;
* ``read_set`` maps every row, in the order the server sends them.

Blocking driver calls (execute, fetch, cursor close) go through a
``StepRunner`` supplied by the executor, so each one is a point where
the call can be suspended or cancelled.  The row mapper itself runs
inline.  Without a runner every call simply runs in the caller's thread.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, List, Optional, Protocol, Sequence, TypeVar

from .command import Connection, Parameter, StoredProcedureCommand, build_command
from .data_reader import DataReader

T = TypeVar('T')

RowMapper = Callable[[DataReader], T]


class StepRunner(Protocol):
    async def __call__(self, func: Callable[..., Any], *args: Any) -> Any: ...

    async def release(self, func: Callable[..., Any], *args: Any) -> None: ...


class InlineRunner:
    """Run every step directly in the calling thread."""

    async def __call__(self, func: Callable[..., Any], *args: Any) -> Any:
        return func(*args)

    async def release(self, func: Callable[..., Any], *args: Any) -> None:
        func(*args)


@asynccontextmanager
async def _command(
    connection: Connection,
    name: str,
    timeout: int,
    parameters: Sequence[Parameter],
    step: StepRunner,
) -> AsyncIterator[StoredProcedureCommand]:
    command = build_command(connection, name, timeout, parameters)
    try:
        yield command
    except BaseException:
        # The command is already failing; a close error must not replace it.
        try:
            await step.release(command.close)
        except Exception:
            logging.warning('[command] closing %s after a failure raised', name, exc_info=True)
        raise
    await step.release(command.close)


async def read_no_result(
    connection: Connection,
    name: str,
    timeout: int,
    parameters: Sequence[Parameter],
    step: Optional[StepRunner] = None,
) -> None:
    step = step or InlineRunner()
    async with _command(connection, name, timeout, parameters, step) as command:
        await step(command.execute_non_query)


async def read_scalar(
    connection: Connection,
    name: str,
    timeout: int,
    parameters: Sequence[Parameter],
    read_result: RowMapper[T],
    step: Optional[StepRunner] = None,
) -> Optional[T]:
    """Map the first row of the result, if any.

    Rows after the first are left unread; closing the command discards them.
    """
    step = step or InlineRunner()
    async with _command(connection, name, timeout, parameters, step) as command:
        reader: DataReader = await step(command.execute_reader)
        try:
            if await step(reader.read):
                return read_result(reader)
            return None
        finally:
            reader.close()


async def read_set(
    connection: Connection,
    name: str,
    timeout: int,
    parameters: Sequence[Parameter],
    read_record: RowMapper[T],
    step: Optional[StepRunner] = None,
) -> List[T]:
    step = step or InlineRunner()
    result: List[T] = []
    async with _command(connection, name, timeout, parameters, step) as command:
        reader: DataReader = await step(command.execute_reader)
        try:
            while await step(reader.read):
                result.append(read_record(reader))
        finally:
            reader.close()
    return result
