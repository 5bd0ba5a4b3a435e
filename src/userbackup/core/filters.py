"""Name-based resolution of the column that identifies a user's rows.

Both the backup and the deletion paths call :func:`resolve_filter_spec`, so a
table is scoped identically whether it is being read or erased.

Examples
--------
>>> from userbackup.core.types import ColumnSet, UserScope
>>> columns = ColumnSet.from_names(["id", "account_id", "active_id"])
>>> resolve_filter("transactions", columns)
'account_id'
>>> resolve_filter("users", ColumnSet.from_names(["id", "user_id"]))
'id'
>>> scope = UserScope(user_id=1, account_ids=[1001], active_ids=[501])
>>> resolve_filter_spec("transactions", columns, scope).values
(1001,)
>>> resolve_filter_spec("logs", ColumnSet.from_names(["id", "message"]), scope) is None
True
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Sequence

from .types import ColumnSet, FilterSpec, TableOverride, UserScope

logger = logging.getLogger(__name__)

DEFAULT_OVERRIDES: Mapping[str, TableOverride] = {
    "users": TableOverride(column="id", source="user"),
    "user_subaccounts": TableOverride(column="id", source="account"),
}

FILTER_PRIORITY: tuple[str, ...] = (
    "user_id",
    "account_id",
    "from_account_id",
    "to_account_id",
    "active_id",
)

_COLUMN_SOURCES: Mapping[str, str] = {
    "user_id": "user",
    "account_id": "account",
    "from_account_id": "account",
    "to_account_id": "account",
    "subaccount_id": "account",
    "active_id": "active",
}

# Only the user identity column carries the deployment prefix.
_NAMESPACED_COLUMNS = frozenset({"user_id"})


def resolve_filter(
    table: str,
    columns: ColumnSet,
    overrides: Mapping[str, TableOverride] | None = None,
) -> Optional[str]:
    """Return the filter column for ``table`` or ``None`` when out of scope."""

    active_overrides = DEFAULT_OVERRIDES if overrides is None else overrides
    override = active_overrides.get(table)
    if override is not None:
        if override.column in columns:
            return override.column
        # SQLite reads an unknown quoted identifier as a string literal.
        logger.warning(
            "Override column %s is missing from table %s; skipping table",
            override.column,
            table,
        )
        return None
    for candidate in FILTER_PRIORITY:
        if candidate in columns:
            return candidate
    return None


def build_values(
    table: str,
    column: str,
    scope: UserScope,
    overrides: Mapping[str, TableOverride] | None = None,
) -> List[Any]:
    """Map a resolved column to the identifier list it is filtered by.

    An empty list means "skip this table": callers must never fall back to an
    unscoped statement.
    """

    active_overrides = DEFAULT_OVERRIDES if overrides is None else overrides
    override = active_overrides.get(table)
    if override is not None and override.column == column:
        return scope.ids_for(override.source)
    source = _COLUMN_SOURCES.get(column)
    if source is None:
        return []
    return scope.ids_for(source)


def prepare_values(
    column: str,
    columns: ColumnSet,
    values: Sequence[Any],
    namespace: str | None,
) -> List[Any]:
    """Prefix identity values with ``namespace`` for textual ``user_id`` columns."""

    if not namespace or column not in _NAMESPACED_COLUMNS:
        return list(values)
    if not columns.is_textual(column):
        return list(values)
    return [f"{namespace}-{value}" for value in values]


def resolve_filter_spec(
    table: str,
    columns: ColumnSet,
    scope: UserScope,
    overrides: Mapping[str, TableOverride] | None = None,
) -> Optional[FilterSpec]:
    column = resolve_filter(table, columns, overrides)
    if column is None:
        return None
    values = build_values(table, column, scope, overrides)
    if not values:
        return None
    prepared = prepare_values(column, columns, values, scope.namespace)
    return FilterSpec(table=table, column=column, values=tuple(prepared))


__all__ = [
    "DEFAULT_OVERRIDES",
    "FILTER_PRIORITY",
    "build_values",
    "prepare_values",
    "resolve_filter",
    "resolve_filter_spec",
]
