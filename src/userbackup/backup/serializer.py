"""Incremental JSON writer for backup documents.

The document is written as ``{"table":[row,...],...}`` one row at a time, so
peak memory stays at a single encoded row regardless of the export size.

>>> import io
>>> sink = io.BytesIO()
>>> write_document(sink, {"users": [[{"id": 1, "name": "Alice"}]], "logs": [[]]})
{'users': 1, 'logs': 0}
>>> sink.getvalue()
b'{"users":[{"id":1,"name":"Alice"}],"logs":[]}'
"""

from __future__ import annotations

import base64
from dataclasses import asdict, is_dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
import json
from typing import Any, BinaryIO, Dict, Iterable, Iterator, Mapping

from ..core.types import BackupEncodingError

_SEPARATORS = (",", ":")


def _normalise_value(value: Any) -> Any:
    if isinstance(value, memoryview):
        value = value.tobytes()
    if isinstance(value, (bytes, bytearray)):
        return {
            "type": "base64",
            "value": base64.b64encode(bytes(value)).decode("ascii"),
        }
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).isoformat()
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_normalise_value(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalise_value(val) for key, val in value.items()}
    return value


def normalise_row(row: Any) -> Dict[str, Any]:
    """Convert a row object into a plain ordered mapping of JSON values."""

    if isinstance(row, Mapping):
        items = row.items()
    elif hasattr(row, "keys") and callable(row.keys):
        # sqlite3.Row and similar cursor records.
        items = ((key, row[key]) for key in row.keys())
    elif hasattr(row, "_asdict"):
        items = row._asdict().items()
    elif is_dataclass(row) and not isinstance(row, type):
        items = asdict(row).items()
    else:
        raise BackupEncodingError(
            f"Cannot represent row of type {type(row).__name__} as a JSON object"
        )
    return {str(key): _normalise_value(value) for key, value in items}


def _encode(value: Any) -> bytes:
    try:
        text = json.dumps(value, ensure_ascii=False, separators=_SEPARATORS, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise BackupEncodingError(f"Failed to encode backup value: {exc}") from exc
    return text.encode("utf-8")


def _iter_table_rows(streams: Iterable[Iterable[Any]]) -> Iterator[Dict[str, Any]]:
    for stream in streams:
        for row in stream:
            yield normalise_row(row)


def write_document(sink: BinaryIO, document: Mapping[str, Iterable[Iterable[Any]]]) -> Dict[str, int]:
    """Drain ``document`` into ``sink`` and return the row count per table."""

    counts: Dict[str, int] = {}
    sink.write(b"{")
    for table_index, (table, streams) in enumerate(document.items()):
        if table_index:
            sink.write(b",")
        sink.write(_encode(str(table)))
        sink.write(b":[")
        count = 0
        for row in _iter_table_rows(streams):
            if count:
                sink.write(b",")
            sink.write(_encode(row))
            count += 1
        sink.write(b"]")
        counts[str(table)] = count
    sink.write(b"}")
    return counts


__all__ = ["normalise_row", "write_document"]
