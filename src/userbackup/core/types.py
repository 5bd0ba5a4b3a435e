"""Shared data structures and error types for the userbackup core.

Example
-------
>>> columns = ColumnSet.from_pairs([("id", "INTEGER"), ("user_id", "VARCHAR(32)")])
>>> columns.names
('id', 'user_id')
>>> columns.is_textual("user_id")
True
>>> scope = UserScope(user_id=7, account_ids=(70, 71))
>>> scope.ids_for("account")
[70, 71]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping, Sequence, Tuple

TEXT_TYPE = "text"
OTHER_TYPE = "other"

_TEXTUAL_MARKERS = ("CHAR", "CLOB", "TEXT", "STRING")

IDENTITY_SOURCES = ("user", "account", "active")


class UserBackupError(Exception):
    """Base class for every error raised by the userbackup package."""


class DatabaseConnectionError(UserBackupError):
    """Raised when a named database connection cannot be opened."""

    def __init__(self, connection: str, reason: str) -> None:
        self.connection = connection
        self.reason = reason
        super().__init__(f"{connection}: {reason}")


class SchemaIntrospectionError(UserBackupError):
    """Raised when the columns or tables of a connection cannot be listed."""

    def __init__(self, connection: str, table: str | None, reason: str) -> None:
        self.connection = connection
        self.table = table
        self.reason = reason
        location = f"{connection}.{table}" if table else connection
        super().__init__(f"{location}: {reason}")


class BackupEncodingError(UserBackupError):
    """Raised when a row cannot be represented as JSON."""


class BackupIOError(UserBackupError):
    """Represents a filesystem failure while writing or reading an artifact."""

    def __init__(self, path: Any, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class DecryptionError(UserBackupError):
    """Raised when an encrypted unit fails authentication."""


class BackupFormatError(UserBackupError):
    """Raised when decrypted or raw artifact bytes are not a JSON object."""


class AggregatorStateError(UserBackupError):
    """Raised when an aggregator session is reused without ``clear()``."""


class StreamConsumedError(UserBackupError):
    """Raised when a row stream is iterated a second time."""


def normalise_type(declared: str | None) -> str:
    """Collapse a declared SQL column type into ``text`` or ``other``."""

    if not declared:
        return OTHER_TYPE
    upper = declared.upper()
    if any(marker in upper for marker in _TEXTUAL_MARKERS):
        return TEXT_TYPE
    return OTHER_TYPE


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    type_tag: str = OTHER_TYPE


@dataclass(frozen=True)
class ColumnSet:
    """Ordered, immutable set of columns for one table."""

    columns: Tuple[ColumnInfo, ...] = ()

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str | None]]) -> "ColumnSet":
        seen: set[str] = set()
        columns: list[ColumnInfo] = []
        for name, declared in pairs:
            if not name or name in seen:
                continue
            seen.add(name)
            columns.append(ColumnInfo(name=name, type_tag=normalise_type(declared)))
        return cls(columns=tuple(columns))

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "ColumnSet":
        return cls.from_pairs((name, None) for name in names)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    def type_of(self, name: str) -> str | None:
        for column in self.columns:
            if column.name == name:
                return column.type_tag
        return None

    def is_textual(self, name: str) -> bool:
        return self.type_of(name) == TEXT_TYPE

    def __contains__(self, name: object) -> bool:
        return any(column.name == name for column in self.columns)

    def __iter__(self) -> Iterator[ColumnInfo]:
        return iter(self.columns)

    def __len__(self) -> int:
        return len(self.columns)


@dataclass(frozen=True)
class UserScope:
    """Identifiers describing whose rows are located.

    ``namespace`` is the deployment prefix applied to textual ``user_id``
    columns; it is always passed in explicitly.
    """

    user_id: int | str
    account_ids: Sequence[int | str] = field(default_factory=tuple)
    active_ids: Sequence[int | str] = field(default_factory=tuple)
    namespace: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "account_ids", tuple(self.account_ids or ()))
        object.__setattr__(self, "active_ids", tuple(self.active_ids or ()))
        if self.namespace is not None and not str(self.namespace).strip():
            object.__setattr__(self, "namespace", None)

    def ids_for(self, source: str) -> list[int | str]:
        if source == "user":
            return [self.user_id]
        if source == "account":
            return list(self.account_ids)
        if source == "active":
            return list(self.active_ids)
        raise ValueError(f"Unknown identity source: {source!r}")


@dataclass(frozen=True)
class TableOverride:
    """Pins a table to one column fed from a named identity source."""

    column: str
    source: str

    def __post_init__(self) -> None:
        if not self.column:
            raise ValueError("TableOverride requires a column")
        if self.source not in IDENTITY_SOURCES:
            raise ValueError(
                f"TableOverride source must be one of {', '.join(IDENTITY_SOURCES)}"
            )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TableOverride":
        return cls(
            column=str(payload.get("column") or "").strip(),
            source=str(payload.get("source") or "").strip().lower(),
        )


@dataclass(frozen=True)
class FilterSpec:
    """Resolved filter for one table: ``column IN (values)``."""

    table: str
    column: str
    values: Tuple[Any, ...]

    def to_dict(self) -> Mapping[str, Any]:
        return {
            "table": self.table,
            "column": self.column,
            "values": list(self.values),
        }


__all__ = [
    "AggregatorStateError",
    "BackupEncodingError",
    "BackupFormatError",
    "BackupIOError",
    "ColumnInfo",
    "ColumnSet",
    "DatabaseConnectionError",
    "DecryptionError",
    "FilterSpec",
    "IDENTITY_SOURCES",
    "OTHER_TYPE",
    "SchemaIntrospectionError",
    "StreamConsumedError",
    "TEXT_TYPE",
    "TableOverride",
    "UserBackupError",
    "UserScope",
    "normalise_type",
]
