"""Durable writing and reading of backup artifacts.

Artifacts are produced in a temporary file next to their destination and
only moved into place once serialization (and encryption) finished, so a
failure never leaves a partial file at the final path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from hashlib import sha256
import logging
import os
from pathlib import Path
import tempfile
from typing import Any, Dict, Iterable, Mapping

from ..core.types import BackupIOError
from .encryption import DEFAULT_CHUNK_SIZE, ChunkEncryptor, CipherProvider, parse_document
from .serializer import write_document

logger = logging.getLogger(__name__)

ENCRYPTED_SUFFIX = ".enc"


@dataclass(frozen=True)
class BackupArtifact:
    path: Path
    encrypted: bool
    row_counts: Mapping[str, int] = field(default_factory=dict)
    chunk_count: int = 0
    sha256: str = ""

    @property
    def total_rows(self) -> int:
        return sum(self.row_counts.values())

    def to_dict(self) -> Mapping[str, Any]:
        return {
            "path": str(self.path),
            "encrypted": self.encrypted,
            "row_counts": dict(self.row_counts),
            "chunk_count": self.chunk_count,
            "sha256": self.sha256,
        }


def _hash_file(path: Path) -> str:
    digest = sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _ensure_directory(directory: Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BackupIOError(directory, f"unable to create directory: {exc}") from exc


def _temp_path(directory: Path, name: str) -> Path:
    try:
        handle, raw = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=directory)
    except OSError as exc:
        raise BackupIOError(directory, f"unable to create temporary file: {exc}") from exc
    os.close(handle)
    return Path(raw)


def _discard(path: Path | None) -> None:
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("Unable to remove temporary file %s", path)


def save_document(
    path: Path | str,
    document: Mapping[str, Iterable[Iterable[Any]]],
    *,
    cipher: CipherProvider | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> BackupArtifact:
    """Serialize ``document`` to ``path`` (``path.enc`` when ``cipher`` is given)."""

    base = Path(path)
    encrypted = cipher is not None
    final_path = base.with_name(base.name + ENCRYPTED_SUFFIX) if encrypted else base
    directory = final_path.parent
    _ensure_directory(directory)

    plain_tmp: Path | None = None
    cipher_tmp: Path | None = None
    chunk_count = 0
    try:
        plain_tmp = _temp_path(directory, base.name)
        try:
            with plain_tmp.open("wb") as sink:
                row_counts = write_document(sink, document)
        except OSError as exc:
            raise BackupIOError(plain_tmp, f"unable to write backup: {exc}") from exc

        ready = plain_tmp
        if cipher is not None:
            encryptor = ChunkEncryptor(cipher, chunk_size=chunk_size)
            cipher_tmp = _temp_path(directory, final_path.name)
            try:
                with plain_tmp.open("rb") as source, cipher_tmp.open("wb") as sink:
                    chunk_count = encryptor.encrypt(sink, source)
            except OSError as exc:
                raise BackupIOError(cipher_tmp, f"unable to encrypt backup: {exc}") from exc
            ready = cipher_tmp

        try:
            os.replace(ready, final_path)
        except OSError as exc:
            raise BackupIOError(final_path, f"unable to finalise artifact: {exc}") from exc
    finally:
        _discard(plain_tmp)
        _discard(cipher_tmp)

    artifact = BackupArtifact(
        path=final_path,
        encrypted=encrypted,
        row_counts=row_counts,
        chunk_count=chunk_count,
        sha256=_hash_file(final_path),
    )
    logger.info(
        "Wrote backup %s (encrypted=%s, rows=%s, sha256=%s)",
        final_path,
        encrypted,
        artifact.total_rows,
        artifact.sha256,
    )
    return artifact


def read_backup(path: Path | str, *, cipher: CipherProvider | None = None) -> Dict[str, Any]:
    """Load a backup artifact, decrypting ``.enc`` files with ``cipher``."""

    resolved = Path(path)
    try:
        raw = resolved.read_bytes()
    except OSError as exc:
        raise BackupIOError(resolved, f"unable to read backup: {exc}") from exc

    if resolved.suffix == ENCRYPTED_SUFFIX:
        if cipher is None:
            raise ValueError(f"{resolved} is encrypted; a cipher is required")
        return ChunkEncryptor(cipher).decrypt_document(raw)
    return parse_document(raw)


__all__ = [
    "BackupArtifact",
    "ENCRYPTED_SUFFIX",
    "read_backup",
    "save_document",
]
