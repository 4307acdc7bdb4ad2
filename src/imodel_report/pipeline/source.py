"""
Snapshot data source.

The exporter only needs a forward-only cursor: column count, column name,
value at an index, and a step signal. QueryCursor describes that contract;
DataSource/DuckDBCursor provide it over a local DuckDB snapshot file.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol

import duckdb

from ..config import Config
from ..types import DataSourceError

logger = logging.getLogger(__name__)


class QueryCursor(Protocol):
    """Forward-only cursor over a prepared query."""

    def column_count(self) -> int: ...

    def column_name(self, index: int) -> str: ...

    def value(self, index: int) -> Any: ...

    def step(self) -> bool: ...


class DuckDBCursor:
    """QueryCursor over a DuckDB result, fetching one row per step."""

    def __init__(self, cursor: duckdb.DuckDBPyConnection, sql: str):
        self._cursor = cursor
        self._sql = sql
        self._row: Optional[tuple] = None
        description = cursor.description or []
        self._columns = [column[0] for column in description]

    def column_count(self) -> int:
        return len(self._columns)

    def column_name(self, index: int) -> str:
        return self._columns[index]

    def value(self, index: int) -> Any:
        if self._row is None:
            raise DataSourceError("No current row; call step() first")
        return self._row[index]

    def step(self) -> bool:
        """Advance to the next row. Returns False once the result is exhausted."""
        try:
            self._row = self._cursor.fetchone()
        except duckdb.Error as e:
            raise DataSourceError(f"Failed to read next row of query: {e}") from e
        return self._row is not None


class DataSource:
    """
    Read-only handle on an iModel snapshot stored as a DuckDB database.

    Example:
        with DataSource.open(Path("model.duckdb"), config) as source:
            with source.prepare("SELECT id, name FROM elements") as cursor:
                while cursor.step():
                    ...
    """

    def __init__(self, connection: duckdb.DuckDBPyConnection, location: str):
        self._connection = connection
        self.location = location

    @classmethod
    def open(cls, path: Path, config: Optional[Config] = None, read_only: bool = True) -> 'DataSource':
        """Open a snapshot file. Raises DataSourceError if it is missing or unreadable."""
        path = Path(path)
        if not path.exists():
            raise DataSourceError(f"Could not find the iModel at location '{path}'")

        settings = config.get_duckdb_settings() if config else {}
        try:
            connection = duckdb.connect(database=str(path), read_only=read_only, config=settings)
        except duckdb.Error as e:
            raise DataSourceError(f"Failed to open iModel '{path}': {e}") from e

        logger.info(f"Opened iModel {path} ({'read-only' if read_only else 'read-write'})")
        return cls(connection, str(path))

    def cursor(self) -> duckdb.DuckDBPyConnection:
        """Independent cursor on the same database, for side lookups."""
        return self._connection.cursor()

    @contextmanager
    def prepare(self, sql: str) -> Iterator[DuckDBCursor]:
        """Execute ``sql`` and yield a cursor over its rows; the cursor is closed afterwards."""
        cursor = self._connection.cursor()
        try:
            try:
                cursor.execute(sql)
            except duckdb.Error as e:
                raise DataSourceError(f"Failed to prepare query: {e}") from e
            yield DuckDBCursor(cursor, sql)
        finally:
            cursor.close()

    def close(self) -> None:
        self._connection.close()
        logger.debug(f"Closed iModel {self.location}")

    def __enter__(self) -> 'DataSource':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
