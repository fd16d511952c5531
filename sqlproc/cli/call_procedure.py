"""
Call a stored procedure from the command line.

Examples::

    python -m sqlproc.cli.call_procedure dbo.GetUsersPage --param offset=0 --param pageSize=2
    python -m sqlproc.cli.call_procedure CustomerGetAll --out PTotalRecord:int --param POffset=0 ...
    python -m sqlproc.cli.call_procedure dbo.PurgeSessions --mode none --alias main

Parameter values are read as JSON when they parse (``10``, ``true``,
``null``, ``"text"``) and as plain strings otherwise.  Parameters are
passed in the order they are given on the command line.  The result and
any output parameter values are printed as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from ..infra.db import get_executor
from ..procedures import Parameter, ParameterDirection, row_to_dict

OUTPUT_TYPES = {
    'int': int,
    'float': float,
    'str': str,
    'bool': bool,
}


def _parse_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return raw


class _ParameterAction(argparse.Action):
    """Collect ``--param`` and ``--out`` into one ordered list."""

    def __call__(self, parser, namespace, values, option_string=None):
        parameters: List[Parameter] = getattr(namespace, 'parameters', None) or []
        if option_string == '--out':
            name, _, type_name = values.partition(':')
            param_type = OUTPUT_TYPES.get(type_name or 'int')
            if not name or param_type is None:
                parser.error(f"--out expects NAME[:{'|'.join(OUTPUT_TYPES)}], got {values!r}")
            parameters.append(Parameter(name, direction=ParameterDirection.OUTPUT, type=param_type))
        else:
            name, sep, raw = values.partition('=')
            if not name or not sep:
                parser.error(f"--param expects NAME=VALUE, got {values!r}")
            parameters.append(Parameter(name, _parse_value(raw)))
        namespace.parameters = parameters


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Call a stored procedure and print its result')
    parser.add_argument('name', help='Stored procedure name, optionally schema qualified')
    parser.add_argument('--param', action=_ParameterAction, metavar='NAME=VALUE', help='Input parameter (repeatable)')
    parser.add_argument('--out', action=_ParameterAction, metavar='NAME[:TYPE]', help='Output parameter (repeatable)')
    parser.add_argument('--mode', choices=['none', 'scalar', 'set'], default='set', help='Shape of the result')
    parser.add_argument('--timeout', type=int, default=None, help='Command timeout in seconds')
    parser.add_argument('--alias', default='main', help='Connection alias: main or read')
    parser.set_defaults(parameters=[])
    return parser.parse_args(argv)


async def call(args: argparse.Namespace) -> Dict[str, Any]:
    executor = get_executor(args.alias)
    parameters: List[Parameter] = args.parameters
    if args.mode == 'none':
        await executor.execute_no_result(args.name, parameters, timeout=args.timeout)
        result: Any = None
    elif args.mode == 'scalar':
        result = await executor.execute_scalar(args.name, parameters, row_to_dict, timeout=args.timeout)
    else:
        result = await executor.execute_set(args.name, parameters, row_to_dict, timeout=args.timeout)
    output = {p.name: p.value for p in parameters if p.is_output}
    return {'result': result, 'output': output}


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    logging.info('[cli/call_procedure] Parsed arguments', extra={'procedure': args.name, 'mode': args.mode})
    payload = asyncio.run(call(args))
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


if __name__ == '__main__':
    try:
        main()
    except Exception as err:
        logging.error('Error executing cli/call_procedure', exc_info=err)
        sys.exit(2)
