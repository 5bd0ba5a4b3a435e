"""Database collaborators consumed by the backup and deletion paths.

The protocols describe the only operations the core performs against a
database. :class:`SqliteConnectionCatalog` implements all of them over a set
of named SQLite files so the package is usable without extra drivers.
"""

from __future__ import annotations

from contextlib import closing
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Protocol, Sequence
from urllib.parse import quote

from ..core.types import ColumnSet, DatabaseConnectionError, SchemaIntrospectionError

logger = logging.getLogger(__name__)


class SchemaInspector(Protocol):
    def has_table(self, table: str) -> bool:
        """Return whether ``table`` exists on this connection."""

    def list_columns(self, table: str) -> ColumnSet:
        """Return the ordered column set of ``table``."""

    def list_tables(self) -> List[str]:
        """Return every user table on this connection."""


class SqlExecutor(Protocol):
    def select_page(
        self,
        table: str,
        column: str,
        values: Sequence[Any],
        *,
        order_by: str,
        offset: int,
        limit: int,
    ) -> List[Dict[str, Any]]:
        """Return one page of rows where ``column IN (values)``."""

    def delete_where_in(self, table: str, column: str, values: Sequence[Any]) -> int:
        """Delete rows where ``column IN (values)`` and return the count."""


class ConnectionCatalog(Protocol):
    def list_connections(self) -> List[str]:
        """Return connection names in processing order."""

    def inspector(self, name: str) -> SchemaInspector:
        ...

    def executor(self, name: str) -> SqlExecutor:
        ...


def quote_identifier(name: str) -> str:
    """Quote an SQL identifier, doubling embedded quotes."""

    if not name or "\0" in name:
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return '"' + name.replace('"', '""') + '"'


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class SqliteDatabase:
    """Schema inspector and SQL executor bound to one SQLite connection."""

    def __init__(self, name: str, connection: sqlite3.Connection) -> None:
        self.name = name
        self._conn = connection
        self._conn.row_factory = sqlite3.Row

    def _execute(self, query: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with closing(self._conn.execute(query, tuple(params))) as cursor:
            return cursor.fetchall()

    def list_tables(self) -> List[str]:
        query = "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
        try:
            rows = self._execute(query)
        except sqlite3.Error as exc:
            raise SchemaIntrospectionError(self.name, None, str(exc)) from exc
        return [row[0] for row in rows if not row[0].startswith("sqlite_")]

    def has_table(self, table: str) -> bool:
        query = "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?"
        try:
            return bool(self._execute(query, (table,)))
        except sqlite3.Error as exc:
            raise SchemaIntrospectionError(self.name, table, str(exc)) from exc

    def list_columns(self, table: str) -> ColumnSet:
        try:
            rows = self._execute(f"PRAGMA table_info({quote_identifier(table)})")
        except sqlite3.Error as exc:
            raise SchemaIntrospectionError(self.name, table, str(exc)) from exc
        if not rows:
            raise SchemaIntrospectionError(self.name, table, "no columns reported")
        return ColumnSet.from_pairs((row[1], row[2]) for row in rows)

    def _has_rowid(self, table: str) -> bool:
        rows = self._execute(
            "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
        )
        if not rows or not rows[0][0]:
            return True
        return "WITHOUT ROWID" not in str(rows[0][0]).upper()

    def select_page(
        self,
        table: str,
        column: str,
        values: Sequence[Any],
        *,
        order_by: str,
        offset: int,
        limit: int,
    ) -> List[Dict[str, Any]]:
        if not values:
            return []
        order_clause = quote_identifier(order_by)
        query_table = quote_identifier(table)
        where = f"{quote_identifier(column)} IN ({_placeholders(len(values))})"
        try:
            # rowid breaks ties between rows sharing the filter value.
            if self._has_rowid(table):
                order_clause += ", rowid"
            rows = self._execute(
                f"SELECT * FROM {query_table} WHERE {where}"
                f" ORDER BY {order_clause} LIMIT ? OFFSET ?",
                [*values, int(limit), int(offset)],
            )
        except sqlite3.Error as exc:
            raise DatabaseConnectionError(
                self.name, f"reading {table} failed: {exc}"
            ) from exc
        return [{key: row[key] for key in row.keys()} for row in rows]

    def delete_where_in(self, table: str, column: str, values: Sequence[Any]) -> int:
        if not values:
            return 0
        query = (
            f"DELETE FROM {quote_identifier(table)}"
            f" WHERE {quote_identifier(column)} IN ({_placeholders(len(values))})"
        )
        with self._conn:
            with closing(self._conn.execute(query, tuple(values))) as cursor:
                return int(cursor.rowcount)

    def close(self) -> None:
        self._conn.close()


class SqliteConnectionCatalog:
    """Named SQLite databases opened lazily and closed together.

    >>> catalog = SqliteConnectionCatalog({})
    >>> catalog.list_connections()
    []
    """

    def __init__(self, paths: Mapping[str, Path | str]) -> None:
        self._paths: Dict[str, Path] = {str(name): Path(path) for name, path in paths.items()}
        self._open: Dict[str, SqliteDatabase] = {}

    @classmethod
    def from_connections(cls, connections: Iterable[tuple[str, Path | str]]) -> "SqliteConnectionCatalog":
        return cls({name: path for name, path in connections})

    def list_connections(self) -> List[str]:
        return list(self._paths)

    def database(self, name: str) -> SqliteDatabase:
        existing = self._open.get(name)
        if existing is not None:
            return existing
        path = self._paths.get(name)
        if path is None:
            raise DatabaseConnectionError(name, "connection is not configured")
        if not path.exists():
            raise DatabaseConnectionError(name, f"database not found: {path}")
        try:
            # mode=rw refuses to create a missing database file.
            connection = sqlite3.connect(f"file:{quote(path.as_posix())}?mode=rw", uri=True)
        except sqlite3.Error as exc:
            raise DatabaseConnectionError(name, str(exc)) from exc
        logger.debug("Opened SQLite connection %s at %s", name, path)
        database = SqliteDatabase(name, connection)
        self._open[name] = database
        return database

    def inspector(self, name: str) -> SqliteDatabase:
        return self.database(name)

    def executor(self, name: str) -> SqliteDatabase:
        return self.database(name)

    def close(self) -> None:
        while self._open:
            _, database = self._open.popitem()
            database.close()

    def __enter__(self) -> "SqliteConnectionCatalog":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "ConnectionCatalog",
    "SchemaInspector",
    "SqlExecutor",
    "SqliteConnectionCatalog",
    "SqliteDatabase",
    "quote_identifier",
]
