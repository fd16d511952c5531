"""
Instrumented stored procedure executor.

``StoredProcedureExecutor`` opens a fresh connection for every call,
runs one of the result readers on it, closes it and records exactly one
``DependencyTelemetry`` describing the call, whatever the outcome.

Example usage::

    executor = StoredProcedureExecutor(lambda: connect(raw), LoggingTelemetrySink())
    users = await executor.execute_set(
        'GetUsersPage',
        [Parameter('offset', 0), Parameter('pageSize', 2)],
        row_to_user,
        timeout=10,
    )

Driver calls block, so each of them (open, execute, fetch, close) runs
on a single worker thread owned by the invocation and is awaited.  A
call can be cancelled by cancelling the awaiting task or by setting the
``cancel_event`` passed in; either way ``asyncio.CancelledError``
reaches the caller and the telemetry record is marked as failed.

Cancellation returns control to the caller immediately.  A driver call
already running cannot be interrupted, so it is left to finish and the
cursor and connection are closed on the same worker thread right after
it, never concurrently with it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

from ..telemetry import DependencyTelemetry, TelemetrySink
from .command import Connection, Parameter, command_text, validate_request
from .reader import RowMapper, StepRunner, read_no_result, read_scalar, read_set

T = TypeVar('T')

DEFAULT_COMMAND_TIMEOUT = 30
DEFAULT_DEPENDENCY_TYPE = 'SQL'


class DriverWorker:
    """Run the blocking driver calls of one invocation on one thread.

    Calls are queued in submission order, so a cleanup call submitted
    after a cancelled step only starts once that step has returned.
    Once a step has been abandoned ``release`` stops waiting and lets
    the cleanup run in the background.
    """

    def __init__(self, cancel_event: Optional[asyncio.Event] = None) -> None:
        self.cancel_event = cancel_event
        self.abandoned = False
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix='sqlproc')

    async def __call__(self, func: Callable[..., Any], *args: Any) -> Any:
        if self.abandoned or (self.cancel_event is not None and self.cancel_event.is_set()):
            raise asyncio.CancelledError()
        work = asyncio.wrap_future(self._pool.submit(func, *args))
        if self.cancel_event is None:
            try:
                return await work
            except asyncio.CancelledError:
                self.abandoned = True
                raise
        waiter = asyncio.ensure_future(self.cancel_event.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            self._abandon(work)
            raise
        finally:
            waiter.cancel()
        if work in done:
            return work.result()
        self._abandon(work)
        raise asyncio.CancelledError()

    def _abandon(self, work: asyncio.Future) -> None:
        self.abandoned = True
        work.cancel()

    async def release(self, func: Callable[..., Any], *args: Any) -> None:
        """Run a cleanup call after every call submitted before it."""
        future = self._pool.submit(func, *args)
        if self.abandoned:
            future.add_done_callback(_report_release)
            return
        try:
            await asyncio.shield(asyncio.wrap_future(future))
        except asyncio.CancelledError:
            self.abandoned = True
            future.add_done_callback(_report_release)
            raise

    def shutdown(self) -> None:
        # Queued cleanup still runs; only new submissions are refused.
        self._pool.shutdown(wait=False)


def _report_release(future: Future) -> None:
    error = None if future.cancelled() else future.exception()
    if error is not None:
        logging.warning(
            '[executor] deferred release failed', exc_info=(type(error), error, error.__traceback__)
        )


class StoredProcedureExecutor:
    """Run stored procedures with dependency telemetry.

    Args:
        connection_factory: Callable returning a new, unopened ``Connection``.
        telemetry: Sink receiving one record per invocation.
        command_timeout: Default timeout in seconds when a call gives none.
        dependency_type: Value of the ``type`` field of telemetry records.
    """

    def __init__(
        self,
        connection_factory: Callable[[], Connection],
        telemetry: TelemetrySink,
        command_timeout: int = DEFAULT_COMMAND_TIMEOUT,
        dependency_type: str = DEFAULT_DEPENDENCY_TYPE,
    ) -> None:
        if isinstance(command_timeout, bool) or not isinstance(command_timeout, int) or command_timeout <= 0:
            raise ValueError(f"Default command timeout must be a positive number of seconds, got {command_timeout!r}")
        self.connection_factory = connection_factory
        self.telemetry = telemetry
        self.command_timeout = command_timeout
        self.dependency_type = dependency_type

    async def execute_no_result(
        self,
        name: str,
        parameters: Sequence[Parameter],
        *,
        timeout: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Execute a stored procedure that returns nothing."""
        timeout = self._timeout(timeout)
        validate_request(name, timeout, parameters)

        def call(connection: Connection, step: StepRunner) -> Awaitable[None]:
            return read_no_result(connection, name, timeout, parameters, step)

        await self._track(name, timeout, parameters, call, cancel_event)

    async def execute_scalar(
        self,
        name: str,
        parameters: Sequence[Parameter],
        read_result: RowMapper[T],
        *,
        timeout: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[T]:
        """Execute a stored procedure and map its first row.

        Returns:
            The mapped first row, or ``None`` when the procedure returned no rows.
        """
        timeout = self._timeout(timeout)
        validate_request(name, timeout, parameters)

        def call(connection: Connection, step: StepRunner) -> Awaitable[Optional[T]]:
            return read_scalar(connection, name, timeout, parameters, read_result, step)

        return await self._track(name, timeout, parameters, call, cancel_event)

    async def execute_set(
        self,
        name: str,
        parameters: Sequence[Parameter],
        read_record: RowMapper[T],
        *,
        timeout: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[T]:
        """Execute a stored procedure and map every row it returns, in order."""
        timeout = self._timeout(timeout)
        validate_request(name, timeout, parameters)

        def call(connection: Connection, step: StepRunner) -> Awaitable[List[T]]:
            return read_set(connection, name, timeout, parameters, read_record, step)

        return await self._track(name, timeout, parameters, call, cancel_event)

    def _timeout(self, timeout: Optional[int]) -> int:
        return self.command_timeout if timeout is None else timeout

    async def _track(
        self,
        name: str,
        timeout: int,
        parameters: Sequence[Parameter],
        call: Callable[[Connection, StepRunner], Awaitable[Any]],
        cancel_event: Optional[asyncio.Event],
    ) -> Any:
        connection = self.connection_factory()
        runner = DriverWorker(cancel_event)
        success = False
        result_code: Optional[str] = None
        closed = False
        start_time = datetime.now(timezone.utc)
        started = time.perf_counter()
        logging.debug('[executor] calling %s', name, extra={'target': connection.target, 'timeout': timeout})
        try:
            await runner(connection.open)
            result = await call(connection, runner)
            closed = True
            await runner.release(connection.close)
            success = True
            return result
        except Exception as exc:
            if connection.is_database_error(exc):
                result_code = connection.error_code(exc)
                logging.warning(
                    '[executor] %s failed on %s',
                    name,
                    connection.target,
                    extra={'resultCode': result_code, 'error': str(exc)},
                )
            raise
        finally:
            duration = timedelta(seconds=time.perf_counter() - started)
            try:
                if not closed:
                    await self._release(name, runner, connection)
            finally:
                runner.shutdown()
                await self._emit(DependencyTelemetry(
                    type=self.dependency_type,
                    target=connection.target,
                    name=name,
                    data=command_text(name, parameters),
                    start_time=start_time,
                    duration=duration,
                    result_code=result_code,
                    success=success,
                ))

    @staticmethod
    async def _release(name: str, runner: DriverWorker, connection: Connection) -> None:
        # Runs on a path that is already failing; the original error wins.
        try:
            await runner.release(connection.close)
        except Exception:
            logging.warning('[executor] closing connection after %s failed', name, exc_info=True)

    async def _emit(self, telemetry: DependencyTelemetry) -> None:
        # Shielded so a second cancellation cannot drop the record.
        await asyncio.shield(asyncio.to_thread(self._record, telemetry))

    def _record(self, telemetry: DependencyTelemetry) -> None:
        try:
            self.telemetry.record(telemetry)
        except Exception:
            logging.warning('[telemetry] sink failed to record %s', telemetry.name, exc_info=True)
