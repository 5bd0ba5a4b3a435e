"""Session object collecting unconsumed row streams per table."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Tuple

from ..core.types import AggregatorStateError, StreamConsumedError


class RowStream:
    """Single-pass wrapper around a lazy row iterable.

    The wrapped source is referenced, not copied. Iterating a second time
    raises :class:`StreamConsumedError` because the source cursor may not be
    re-readable.
    """

    def __init__(self, source: Iterable[Any], *, connection: str | None = None) -> None:
        self._source = source
        self.connection = connection
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    def __iter__(self) -> Iterator[Any]:
        if self._consumed:
            raise StreamConsumedError(
                f"row stream from {self.connection or 'unknown connection'} was already consumed"
            )
        self._consumed = True
        return iter(self._source)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"RowStream(connection={self.connection!r}, consumed={self._consumed!r})"


class BackupAggregator:
    """Records, per table, the row streams contributed by each connection."""

    def __init__(self) -> None:
        self._tables: Dict[str, List[RowStream]] = {}

    def _ensure_fresh(self) -> None:
        for streams in self._tables.values():
            if any(stream.consumed for stream in streams):
                raise AggregatorStateError(
                    "aggregator holds a drained session; call clear() before reuse"
                )

    def append(self, table: str, stream: Iterable[Any] | RowStream) -> RowStream:
        if not table:
            raise ValueError("table name must be non-empty")
        self._ensure_fresh()
        wrapped = stream if isinstance(stream, RowStream) else RowStream(stream)
        self._tables.setdefault(table, []).append(wrapped)
        return wrapped

    def snapshot(self) -> Dict[str, Tuple[RowStream, ...]]:
        return {table: tuple(streams) for table, streams in self._tables.items()}

    def clear(self) -> None:
        self._tables = {}

    @property
    def tables(self) -> Tuple[str, ...]:
        return tuple(self._tables)

    def __len__(self) -> int:
        return len(self._tables)


BackupDocument = Mapping[str, Iterable[Iterable[Any]]]


__all__ = ["BackupAggregator", "BackupDocument", "RowStream"]
