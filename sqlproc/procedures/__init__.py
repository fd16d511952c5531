"""
Stored procedure invocation with dependency telemetry.

``StoredProcedureExecutor`` is the entry point; ``Parameter`` describes
arguments and ``DataReader`` is what row mappers receive.
"""

from .command import (  # noqa: F401
    Connection,
    Parameter,
    ParameterDirection,
    StoredProcedureCommand,
    build_command,
)
from .data_reader import DataReader, row_to_dict  # noqa: F401
from .executor import DriverWorker, StoredProcedureExecutor  # noqa: F401
from .reader import InlineRunner, read_no_result, read_scalar, read_set  # noqa: F401
