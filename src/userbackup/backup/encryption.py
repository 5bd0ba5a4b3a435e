"""Chunked, independently decryptable encryption for backup artifacts.

An encrypted artifact holds one Fernet token per line. Each token carries its
own IV and HMAC, so every line can be authenticated and decrypted on its own.
Artifacts written before chunking existed hold a single token with no line
break; :meth:`ChunkEncryptor.decrypt` accepts both shapes.
"""

from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterator, Mapping, Protocol

from cryptography.fernet import Fernet, InvalidToken

from ..core.types import BackupFormatError, DecryptionError

DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024  # 5 MiB per encrypted unit.
KEYSET_SCHEMA = "https://userbackup.dev/keyset/v1"


class CipherProvider(Protocol):
    def encrypt_block(self, data: bytes) -> bytes:
        """Return a self-contained ciphertext unit without line breaks."""

    def decrypt_unit(self, unit: bytes) -> bytes:
        """Authenticate and decrypt one ciphertext unit."""


class FernetCipher:
    """:class:`CipherProvider` backed by :class:`cryptography.fernet.Fernet`."""

    def __init__(self, key: bytes | str) -> None:
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError, binascii.Error) as exc:
            raise ValueError(f"Invalid Fernet key: {exc}") from exc

    @classmethod
    def generate(cls) -> "FernetCipher":
        return cls(Fernet.generate_key())

    @classmethod
    def from_keyset(cls, path: Path | str) -> "FernetCipher":
        return cls(load_keyset(path))

    def encrypt_block(self, data: bytes) -> bytes:
        return self._fernet.encrypt(data)

    def decrypt_unit(self, unit: bytes) -> bytes:
        try:
            return self._fernet.decrypt(unit)
        except InvalidToken as exc:
            raise DecryptionError("encrypted unit failed authentication") from exc


def load_keyset(path: Path | str) -> bytes:
    """Read the urlsafe base64 Fernet key stored in a keyset file."""

    path = Path(path)
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, Mapping):
        raise ValueError(f"Keyset {path} must be a JSON object")
    key_payload = payload.get("key")
    if not isinstance(key_payload, Mapping):
        raise ValueError(f"Keyset {path} requires a 'key' object")
    encoding = str(key_payload.get("encoding", "base64")).lower()
    data = key_payload.get("data")
    if encoding != "base64" or not data:
        raise ValueError(f"Keyset {path} must hold base64 key data")
    try:
        raw = base64.urlsafe_b64decode(str(data).encode("ascii"))
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Keyset {path} key is not valid base64") from exc
    if len(raw) != 32:
        raise ValueError(f"Keyset {path} key must decode to 32 bytes")
    return str(data).encode("ascii")


def write_keyset(path: Path | str, key: bytes | None = None) -> Path:
    """Write a new keyset file; refuses to overwrite an existing one."""

    path = Path(path)
    if path.exists():
        raise FileExistsError(f"Keyset already exists: {path}")
    key = key or Fernet.generate_key()
    payload: Dict[str, Any] = {
        "schema": KEYSET_SCHEMA,
        "algorithm": "fernet",
        "key": {"encoding": "base64", "data": key.decode("ascii")},
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def _iter_units(data: bytes) -> Iterator[bytes]:
    if b"\n" not in data and b"\r" not in data:
        unit = data.strip()
        if unit:
            yield unit
        return
    for line in data.splitlines():
        unit = line.strip()
        if unit:
            yield unit


class ChunkEncryptor:
    """Encrypt byte streams in fixed-size blocks, one unit per output line."""

    def __init__(self, cipher: CipherProvider, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer")
        self.cipher = cipher
        self.chunk_size = chunk_size

    def encrypt(self, sink: BinaryIO, source: BinaryIO) -> int:
        chunks = 0
        while True:
            block = source.read(self.chunk_size)
            if not block:
                break
            sink.write(self.cipher.encrypt_block(block))
            sink.write(b"\n")
            chunks += 1
        return chunks

    def decrypt(self, data: bytes) -> bytes:
        return b"".join(self.cipher.decrypt_unit(unit) for unit in _iter_units(data))

    def decrypt_document(self, data: bytes) -> Dict[str, Any]:
        return parse_document(self.decrypt(data))


def parse_document(data: bytes) -> Dict[str, Any]:
    """Decode artifact bytes into the table mapping they describe."""

    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise BackupFormatError(f"Backup payload is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise BackupFormatError("Backup payload must be a JSON object")
    return payload


__all__ = [
    "ChunkEncryptor",
    "CipherProvider",
    "DEFAULT_CHUNK_SIZE",
    "FernetCipher",
    "KEYSET_SCHEMA",
    "load_keyset",
    "parse_document",
    "write_keyset",
]
