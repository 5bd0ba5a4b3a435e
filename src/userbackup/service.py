"""Facade coordinating user data discovery, streaming and artifact storage.

Typical use::

    with SqliteConnectionCatalog({"main": "main.sqlite"}) as catalog:
        service = UserBackupService(catalog, UserScope(user_id=1, account_ids=[1001]))
        service.fetch_all_user_data()
        artifact = service.save_backup_to_file(Path("backups"), cipher=cipher)
"""

from __future__ import annotations

from datetime import datetime
import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping, Tuple

from .backup.aggregator import BackupAggregator, RowStream
from .backup.encryption import DEFAULT_CHUNK_SIZE, CipherProvider
from .backup.storage import BackupArtifact, save_document
from .core.types import TableOverride, UserBackupError, UserScope
from .sql.catalog import ConnectionCatalog
from .sql.discovery import iter_scoped_tables
from .sql.streaming import DEFAULT_PAGE_SIZE, RowStreamer

logger = logging.getLogger(__name__)


def backup_path(base_dir: Path, user_id: object, *, now: datetime | None = None) -> Path:
    """Return ``base_dir/<user_id>/<YYYY-MM-DD>/<HH-MM-SS>.json``."""

    stamp = now or datetime.now()
    return (
        Path(base_dir)
        / str(user_id)
        / stamp.strftime("%Y-%m-%d")
        / f"{stamp.strftime('%H-%M-%S')}.json"
    )


class UserBackupService:
    def __init__(
        self,
        catalog: ConnectionCatalog,
        scope: UserScope,
        *,
        ignored_tables: Iterable[str] = (),
        overrides: Mapping[str, TableOverride] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        aggregator: BackupAggregator | None = None,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be a positive integer")
        self.catalog = catalog
        self.scope = scope
        self.ignored_tables = tuple(ignored_tables)
        self.overrides = overrides
        self.page_size = page_size
        self.aggregator = aggregator or BackupAggregator()
        self._document: Dict[str, Tuple[RowStream, ...]] | None = None

    def fetch_all_user_data(self) -> Dict[str, Tuple[RowStream, ...]]:
        """Register one lazy row stream per scoped table and connection.

        No rows are read here; the streams are drained when the document is
        serialized.
        """

        self.aggregator.clear()
        streamers: Dict[str, RowStreamer] = {}
        for scoped in iter_scoped_tables(
            self.catalog,
            self.scope,
            ignored_tables=self.ignored_tables,
            overrides=self.overrides,
        ):
            streamer = streamers.get(scoped.connection)
            if streamer is None:
                streamer = RowStreamer(
                    self.catalog.inspector(scoped.connection),
                    self.catalog.executor(scoped.connection),
                    page_size=self.page_size,
                )
                streamers[scoped.connection] = streamer
            spec = scoped.spec
            rows = streamer.stream(spec.table, spec.column, spec.values)
            self.aggregator.append(spec.table, RowStream(rows, connection=scoped.connection))
            logger.info(
                "Registered %s.%s filtered on %s (%s value(s))",
                scoped.connection,
                spec.table,
                spec.column,
                len(spec.values),
            )

        self._document = self.aggregator.snapshot()
        return self._document

    def save_backup_to_file(
        self,
        base_dir: Path | str,
        *,
        cipher: CipherProvider | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        now: datetime | None = None,
    ) -> BackupArtifact:
        if self._document is None:
            raise UserBackupError("fetch_all_user_data() must run before saving a backup")
        document, self._document = self._document, None
        destination = backup_path(Path(base_dir), self.scope.user_id, now=now)
        return save_document(destination, document, cipher=cipher, chunk_size=chunk_size)


__all__ = ["UserBackupService", "backup_path"]
