"""Aggregation, serialization, encryption and storage of backup artifacts."""

from .aggregator import BackupAggregator, BackupDocument, RowStream
from .encryption import (
    DEFAULT_CHUNK_SIZE,
    ChunkEncryptor,
    CipherProvider,
    FernetCipher,
    load_keyset,
    parse_document,
    write_keyset,
)
from .serializer import normalise_row, write_document
from .storage import ENCRYPTED_SUFFIX, BackupArtifact, read_backup, save_document

__all__ = [
    "BackupAggregator",
    "BackupArtifact",
    "BackupDocument",
    "ChunkEncryptor",
    "CipherProvider",
    "DEFAULT_CHUNK_SIZE",
    "ENCRYPTED_SUFFIX",
    "FernetCipher",
    "RowStream",
    "load_keyset",
    "normalise_row",
    "parse_document",
    "read_backup",
    "save_document",
    "write_document",
    "write_keyset",
]
