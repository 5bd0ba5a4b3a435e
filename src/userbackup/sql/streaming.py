"""Paginated row streaming for a single table."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Sequence

from .catalog import SchemaInspector, SqlExecutor

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


def _validate_page_size(page_size: int) -> int:
    if page_size <= 0:
        raise ValueError("page_size must be a positive integer")
    return page_size


class RowStreamer:
    """Stream the rows of one table matching ``column IN (values)``.

    Every call to :meth:`stream` returns an independent generator, so a
    stream can be restarted by calling it again. At most one page of rows is
    held in memory at a time.
    """

    def __init__(
        self,
        inspector: SchemaInspector,
        executor: SqlExecutor,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.inspector = inspector
        self.executor = executor
        self.page_size = _validate_page_size(page_size)

    def stream(
        self,
        table: str,
        column: str | None,
        values: Sequence[Any],
    ) -> Iterator[Dict[str, Any]]:
        if not column or not values:
            return
        if not self.inspector.has_table(table):
            return

        page_values = list(values)
        offset = 0
        while True:
            page = self.executor.select_page(
                table,
                column,
                page_values,
                order_by=column,
                offset=offset,
                limit=self.page_size,
            )
            logger.debug(
                "Fetched %s row(s) from %s at offset %s", len(page), table, offset
            )
            yield from page
            if len(page) < self.page_size:
                return
            offset += self.page_size


def stream_rows(
    inspector: SchemaInspector,
    executor: SqlExecutor,
    table: str,
    column: str | None,
    values: Sequence[Any],
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Iterator[Dict[str, Any]]:
    """Convenience wrapper around :meth:`RowStreamer.stream`."""

    return RowStreamer(inspector, executor, page_size=page_size).stream(table, column, values)


__all__ = ["DEFAULT_PAGE_SIZE", "RowStreamer", "stream_rows"]
