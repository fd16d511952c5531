"""
Pytest configuration and fakes shared by the sqlproc tests.

``FakeConnection`` implements the executor's ``Connection`` protocol
in memory and counts every open/close so tests can assert resources
are released exactly once.
"""
import asyncio
import threading
import time
from contextlib import contextmanager
from types import SimpleNamespace

import pytest

from sqlproc.procedures import StoredProcedureExecutor
from sqlproc.telemetry import InMemoryTelemetrySink


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: fast tests without a database")


class FakeDriverError(Exception):
    """Driver-level failure carrying a SQL Server style error number."""

    def __init__(self, number, message='driver failure'):
        super().__init__(number, message)
        self.number = number


class FakeOutput:
    """Stand-in for ``pymssql.output``."""

    def __init__(self, param_type, value=None):
        self.param_type = param_type
        self.value = value


class FakeCursor:
    def __init__(self, rows=(), columns=('id', 'name'), returned=None, error=None, block=None):
        self.rows = list(rows)
        self.description = [(c, None, None, None, None, None, None) for c in columns]
        self.returned = returned
        self.error = error
        self.block = block
        self.calls = []
        self.close_count = 0
        self.rowcount = -1

    def callproc(self, name, args):
        self.calls.append((name, tuple(args)))
        if self.block is not None:
            self.block()
        if self.error is not None:
            raise self.error
        return self.returned if self.returned is not None else tuple(args)

    def fetchone(self):
        if self.close_count:
            raise RuntimeError('cursor is closed')
        return self.rows.pop(0) if self.rows else None

    def close(self):
        self.close_count += 1


class FakeConnection:
    """In-memory ``Connection`` with switchable failure points.

    ``fail_on`` is one of ``open``, ``execute``, ``close`` and makes that
    step raise ``error`` (a ``FakeDriverError`` by default).
    """

    target = 'fake-server | fake-db'

    def __init__(self, rows=(), columns=('id', 'name'), outputs=None, fail_on=None, error=None, block=None):
        self.rows = rows
        self.columns = columns
        self.outputs = outputs or {}
        self.fail_on = fail_on
        self.error = error or FakeDriverError(547, 'constraint violation')
        self.block = block
        self.open_count = 0
        self.close_count = 0
        self.timeouts = []
        self.cursors = []

    def open(self):
        self.open_count += 1
        if self.fail_on == 'open':
            raise self.error

    def close(self):
        self.close_count += 1
        if self.fail_on == 'close':
            raise self.error

    def cursor(self):
        cursor = FakeCursor(
            self.rows,
            self.columns,
            error=self.error if self.fail_on == 'execute' else None,
            block=self.block,
        )
        self.cursors.append(cursor)
        return cursor

    def set_command_timeout(self, seconds):
        self.timeouts.append(seconds)

    def call_procedure(self, cursor, name, parameters):
        cursor.callproc(name, [p.value for p in parameters])
        for p in parameters:
            if p.is_output and p.name in self.outputs:
                p.value = self.outputs[p.name]
        return cursor.rowcount

    def is_database_error(self, exc):
        return isinstance(exc, FakeDriverError)

    def error_code(self, exc):
        return str(exc.number)


class Blocker:
    """Blocks a driver call in its worker thread until released."""

    def __init__(self):
        self.started = threading.Event()
        self.released = threading.Event()

    def __call__(self):
        self.started.set()
        self.released.wait(5)


async def eventually(predicate, timeout=2.0):
    """Poll ``predicate`` until it holds or ``timeout`` seconds pass."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            return False
        await asyncio.sleep(0.01)
    return True


class BlockingDriver:
    """DB-API driver module double whose connect and callproc can block.

    Tracks how many driver calls are running so tests can check that no
    cursor or connection is closed while one of them is still in flight.
    """

    Error = FakeDriverError
    output = FakeOutput

    def __init__(self, block_connect=None, block_call=None, rows=()):
        self.block_connect = block_connect
        self.block_call = block_call
        self.rows = rows
        self.in_flight = 0
        self.closed_while_busy = []
        self.connections = []

    @contextmanager
    def busy(self):
        self.in_flight += 1
        try:
            yield
        finally:
            self.in_flight -= 1

    def closing(self, what):
        if self.in_flight:
            self.closed_while_busy.append(what)

    def connect(self, **kwargs):
        with self.busy():
            if self.block_connect is not None:
                self.block_connect()
            raw = BlockingRawConnection(self)
        self.connections.append(raw)
        return raw


class BlockingRawConnection:
    def __init__(self, driver):
        self.driver = driver
        self.cursors = []
        self.close_count = 0

    def cursor(self):
        cursor = BlockingRawCursor(self.driver)
        self.cursors.append(cursor)
        return cursor

    def close(self):
        self.driver.closing('connection')
        self.close_count += 1


class BlockingRawCursor:
    rowcount = -1
    description = [('id', None, None, None, None, None, None), ('name', None, None, None, None, None, None)]

    def __init__(self, driver):
        self.driver = driver
        self.rows = list(driver.rows)
        self.close_count = 0

    def callproc(self, name, args):
        with self.driver.busy():
            if self.driver.block_call is not None:
                self.driver.block_call()
        return args

    def fetchone(self):
        with self.driver.busy():
            return self.rows.pop(0) if self.rows else None

    def close(self):
        self.driver.closing('cursor')
        self.close_count += 1


@pytest.fixture
def sink():
    return InMemoryTelemetrySink()


@pytest.fixture
def fake_driver():
    """A DB-API driver module double for ``DbApiConnection``."""
    return SimpleNamespace(
        __name__='fake_driver',
        connect=None,
        Error=FakeDriverError,
        output=FakeOutput,
    )


@pytest.fixture
def make_executor(sink):
    def _make(connection, command_timeout=30):
        return StoredProcedureExecutor(lambda: connection, sink, command_timeout=command_timeout)
    return _make
