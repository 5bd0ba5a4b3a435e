"""Batched erasure of a user's rows across every configured connection.

Tables are scoped with exactly the same resolution as the backup path, so a
deletion never touches a table the backup would not have exported. Tables
without a value set receive no statements at all.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Iterable, List, Mapping, Sequence

from .core.types import TableOverride, UserBackupError, UserScope
from .sql.catalog import ConnectionCatalog
from .sql.discovery import iter_scoped_tables

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


@dataclass(frozen=True)
class PlannedDeletion:
    connection: str
    table: str
    column: str
    values: tuple[Any, ...]

    def to_dict(self) -> Mapping[str, Any]:
        return {
            "connection": self.connection,
            "table": self.table,
            "column": self.column,
            "value_count": len(self.values),
        }


@dataclass(frozen=True)
class TableDeletion:
    connection: str
    table: str
    column: str
    batches: int
    deleted: int


@dataclass
class DeletionReport:
    tables: List[TableDeletion] = field(default_factory=list)

    @property
    def total_deleted(self) -> int:
        return sum(entry.deleted for entry in self.tables)

    @property
    def total_batches(self) -> int:
        return sum(entry.batches for entry in self.tables)


class DeletionBatchError(UserBackupError):
    """Raised when a delete batch fails; later tables are not processed."""

    def __init__(
        self,
        connection: str,
        table: str,
        batch_index: int,
        report: DeletionReport,
        reason: str,
    ) -> None:
        self.connection = connection
        self.table = table
        self.batch_index = batch_index
        self.report = report
        self.reason = reason
        super().__init__(
            f"{connection}.{table}: batch {batch_index} failed after "
            f"{report.total_deleted} deleted row(s): {reason}"
        )


def iter_batches(values: Sequence[Any], batch_size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(values), batch_size):
        yield values[start:start + batch_size]


class DeletionEngine:
    def __init__(
        self,
        catalog: ConnectionCatalog,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        overrides: Mapping[str, TableOverride] | None = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be a positive integer")
        self.catalog = catalog
        self.batch_size = batch_size
        self.overrides = overrides

    def plan(self, scope: UserScope, ignored_tables: Iterable[str] = ()) -> List[PlannedDeletion]:
        """Resolve which tables would be deleted from, without writing."""

        return [
            PlannedDeletion(
                connection=scoped.connection,
                table=scoped.spec.table,
                column=scoped.spec.column,
                values=scoped.spec.values,
            )
            for scoped in iter_scoped_tables(
                self.catalog,
                scope,
                ignored_tables=ignored_tables,
                overrides=self.overrides,
            )
        ]

    def delete_user_data(self, scope: UserScope, ignored_tables: Iterable[str] = ()) -> DeletionReport:
        report = DeletionReport()
        for scoped in iter_scoped_tables(
            self.catalog,
            scope,
            ignored_tables=ignored_tables,
            overrides=self.overrides,
        ):
            spec = scoped.spec
            executor = self.catalog.executor(scoped.connection)
            deleted = 0
            batches = 0
            for index, batch in enumerate(iter_batches(spec.values, self.batch_size)):
                try:
                    deleted += executor.delete_where_in(spec.table, spec.column, list(batch))
                except UserBackupError:
                    raise
                except Exception as exc:
                    report.tables.append(
                        TableDeletion(
                            connection=scoped.connection,
                            table=spec.table,
                            column=spec.column,
                            batches=batches,
                            deleted=deleted,
                        )
                    )
                    raise DeletionBatchError(
                        scoped.connection, spec.table, index, report, str(exc)
                    ) from exc
                batches += 1

            report.tables.append(
                TableDeletion(
                    connection=scoped.connection,
                    table=spec.table,
                    column=spec.column,
                    batches=batches,
                    deleted=deleted,
                )
            )
            logger.info(
                "Deleted %s row(s) from %s.%s in %s batch(es)",
                deleted,
                scoped.connection,
                spec.table,
                batches,
            )
        return report


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DeletionBatchError",
    "DeletionEngine",
    "DeletionReport",
    "PlannedDeletion",
    "TableDeletion",
    "iter_batches",
]
