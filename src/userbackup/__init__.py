"""userbackup core package.

Locates every row belonging to a user across several databases, exports the
rows as one streamed (optionally encrypted) JSON artifact, and erases the
same rows with identical scoping rules.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

from .backup import (
    BackupAggregator,
    BackupArtifact,
    ChunkEncryptor,
    FernetCipher,
    RowStream,
    read_backup,
    save_document,
    write_document,
)
from .core import (
    ColumnSet,
    FilterSpec,
    TableOverride,
    UserBackupError,
    UserScope,
    build_values,
    prepare_values,
    resolve_filter,
    resolve_filter_spec,
)
from .deletion import DeletionBatchError, DeletionEngine, DeletionReport
from .service import UserBackupService
from .sql import RowStreamer, SqliteConnectionCatalog

if TYPE_CHECKING:  # pragma: no cover - import only for type hints
    from . import config as config_module

__all__ = [
    "BackupAggregator",
    "BackupArtifact",
    "ChunkEncryptor",
    "ColumnSet",
    "DeletionBatchError",
    "DeletionEngine",
    "DeletionReport",
    "FernetCipher",
    "FilterSpec",
    "RowStream",
    "RowStreamer",
    "SqliteConnectionCatalog",
    "TableOverride",
    "UserBackupError",
    "UserBackupService",
    "UserScope",
    "build_values",
    "config",
    "prepare_values",
    "read_backup",
    "resolve_filter",
    "resolve_filter_spec",
    "save_document",
    "write_document",
]


def __getattr__(name: str):
    """Lazily import the configuration loader."""

    if name == "config":
        module = importlib.import_module(".config", __name__)
        globals()[name] = module
        return module
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
