"""
Forward-only access to the rows produced by a stored procedure.

``DataReader`` is what a row mapper receives: it is positioned on one
row at a time and lets the mapper pick values by ordinal or by column
name.  The underlying cursor belongs to the command that created the
reader; closing the reader only stops further reads.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Union


class DataReader:
    """Wrap a DB-API cursor with ``read()`` and indexed access to the current row."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor
        self._row: Optional[Sequence[Any]] = None
        self._columns: Optional[List[str]] = None
        self._closed = False

    @property
    def columns(self) -> List[str]:
        if self._columns is None:
            description = getattr(self._cursor, 'description', None) or []
            self._columns = [col[0] for col in description]
        return self._columns

    @property
    def closed(self) -> bool:
        return self._closed

    def read(self) -> bool:
        """Advance to the next row.  Returns ``False`` once the rows are exhausted."""
        if self._closed:
            return False
        row = self._cursor.fetchone()
        if row is None:
            self._row = None
            return False
        self._row = row
        return True

    @property
    def row(self) -> Sequence[Any]:
        if self._row is None:
            raise LookupError('No current row; call read() first')
        return self._row

    def __getitem__(self, key: Union[int, str]) -> Any:
        row = self.row
        # pymssql can hand back dict rows when the connection uses as_dict
        if isinstance(row, dict):
            if isinstance(key, int):
                return row[self.columns[key]]
            return row[key]
        if isinstance(key, str):
            try:
                key = self.columns.index(key)
            except ValueError:
                raise KeyError(f"No column named {key!r}") from None
        return row[key]

    def get(self, key: Union[int, str], default: Any = None) -> Any:
        try:
            value = self[key]
        except (KeyError, IndexError):
            return default
        return default if value is None else value

    def close(self) -> None:
        self._closed = True
        self._row = None


def row_to_dict(reader: DataReader) -> Dict[str, Any]:
    """Row mapper returning the current row as ``{column: value}``."""
    row = reader.row
    if isinstance(row, dict):
        return dict(row)
    return dict(zip(reader.columns, row))
