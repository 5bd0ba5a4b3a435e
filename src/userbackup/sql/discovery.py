"""Walk every connection and table, yielding the ones scoped to a user."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, Iterator, Mapping

from ..core.filters import resolve_filter_spec
from ..core.types import FilterSpec, SchemaIntrospectionError, TableOverride, UserScope
from .catalog import ConnectionCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopedTable:
    connection: str
    spec: FilterSpec

    @property
    def table(self) -> str:
        return self.spec.table


def iter_scoped_tables(
    catalog: ConnectionCatalog,
    scope: UserScope,
    *,
    ignored_tables: Iterable[str] = (),
    overrides: Mapping[str, TableOverride] | None = None,
) -> Iterator[ScopedTable]:
    """Yield a :class:`ScopedTable` for every table with a resolvable filter.

    Tables that are ignored, missing, unresolvable or whose value set is
    empty are skipped. Introspection failures skip only the affected table;
    connection failures propagate.
    """

    ignored = frozenset(ignored_tables)
    for connection in catalog.list_connections():
        inspector = catalog.inspector(connection)
        try:
            tables = inspector.list_tables()
        except SchemaIntrospectionError as exc:
            logger.warning("Skipping connection %s: %s", connection, exc)
            continue

        for table in tables:
            if table in ignored:
                logger.debug("Skipping ignored table %s.%s", connection, table)
                continue
            try:
                if not inspector.has_table(table):
                    continue
                columns = inspector.list_columns(table)
            except SchemaIntrospectionError as exc:
                logger.warning("Skipping table %s.%s: %s", connection, table, exc)
                continue

            spec = resolve_filter_spec(table, columns, scope, overrides)
            if spec is None:
                logger.debug("No filter values for %s.%s; skipping", connection, table)
                continue
            yield ScopedTable(connection=connection, spec=spec)


__all__ = ["ScopedTable", "iter_scoped_tables"]
