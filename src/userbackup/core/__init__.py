"""Core filter resolution and shared types for userbackup."""

from .filters import (
    DEFAULT_OVERRIDES,
    FILTER_PRIORITY,
    build_values,
    prepare_values,
    resolve_filter,
    resolve_filter_spec,
)
from .types import (
    AggregatorStateError,
    BackupEncodingError,
    BackupFormatError,
    BackupIOError,
    ColumnInfo,
    ColumnSet,
    DatabaseConnectionError,
    DecryptionError,
    FilterSpec,
    SchemaIntrospectionError,
    StreamConsumedError,
    TableOverride,
    UserBackupError,
    UserScope,
)

__all__ = [
    "AggregatorStateError",
    "BackupEncodingError",
    "BackupFormatError",
    "BackupIOError",
    "ColumnInfo",
    "ColumnSet",
    "DEFAULT_OVERRIDES",
    "DatabaseConnectionError",
    "DecryptionError",
    "FILTER_PRIORITY",
    "FilterSpec",
    "SchemaIntrospectionError",
    "StreamConsumedError",
    "TableOverride",
    "UserBackupError",
    "UserScope",
    "build_values",
    "prepare_values",
    "resolve_filter",
    "resolve_filter_spec",
]
