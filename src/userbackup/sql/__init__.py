"""Database collaborators and row streaming helpers.

The namespace exposes the protocols the backup and deletion engines rely on
plus the bundled SQLite implementation.
"""

from .catalog import (
    ConnectionCatalog,
    SchemaInspector,
    SqlExecutor,
    SqliteConnectionCatalog,
    SqliteDatabase,
    quote_identifier,
)
from .discovery import ScopedTable, iter_scoped_tables
from .streaming import DEFAULT_PAGE_SIZE, RowStreamer, stream_rows

__all__ = [
    "ConnectionCatalog",
    "DEFAULT_PAGE_SIZE",
    "RowStreamer",
    "SchemaInspector",
    "ScopedTable",
    "SqlExecutor",
    "SqliteConnectionCatalog",
    "SqliteDatabase",
    "iter_scoped_tables",
    "quote_identifier",
    "stream_rows",
]
