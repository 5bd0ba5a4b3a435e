"""JSON configuration for backup and deletion runs.

```
>>> from userbackup import config
>>> cfg = config.load_config(path_to_config)
>>> catalog = cfg.build_catalog()
```

Relative paths inside the file are resolved against the directory holding
the configuration, after expanding ``~`` and environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import os
from pathlib import Path
from typing import Any, Mapping, Sequence, Tuple

from .backup.encryption import DEFAULT_CHUNK_SIZE, FernetCipher
from .core.filters import DEFAULT_OVERRIDES
from .core.types import TableOverride
from .deletion import DEFAULT_BATCH_SIZE
from .sql.catalog import SqliteConnectionCatalog
from .sql.streaming import DEFAULT_PAGE_SIZE

CONFIG_SCHEMA = "https://userbackup.dev/config/v1"


class ConfigError(ValueError):
    """Raised when a configuration payload is malformed."""


def _expand_path(text: str, base_dir: Path | None) -> Path:
    expanded = Path(os.path.expanduser(os.path.expandvars(text)))
    if not expanded.is_absolute() and base_dir is not None:
        expanded = base_dir / expanded
    return expanded


def _positive_int(value: Any, *, name: str, default: int) -> int:
    if value is None:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer") from exc
    if number <= 0:
        raise ConfigError(f"{name} must be positive")
    return number


def _string_tuple(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Sequence):
        return tuple(str(item).strip() for item in value if str(item).strip())
    raise ConfigError("expected a string or a list of strings")


def _parse_connections(payload: Any, base_dir: Path | None) -> Tuple[Tuple[str, Path], ...]:
    if not payload:
        raise ConfigError("Config requires at least one connection.")
    entries: list[tuple[str, Path]] = []
    if isinstance(payload, Mapping):
        items = [(name, path) for name, path in payload.items()]
    elif isinstance(payload, Sequence) and not isinstance(payload, str):
        items = []
        for entry in payload:
            if not isinstance(entry, Mapping):
                raise ConfigError("Connection entries must be objects with 'name' and 'path'.")
            items.append((entry.get("name"), entry.get("path")))
    else:
        raise ConfigError("'connections' must be an object or a list.")

    seen: set[str] = set()
    for name, path in items:
        name_text = str(name or "").strip()
        path_text = str(path or "").strip()
        if not name_text or not path_text:
            raise ConfigError("Every connection requires a non-empty name and path.")
        if name_text in seen:
            raise ConfigError(f"Duplicate connection name: {name_text}")
        seen.add(name_text)
        entries.append((name_text, _expand_path(path_text, base_dir)))
    return tuple(entries)


@dataclass(frozen=True)
class ScopeSettings:
    namespace: str | None = None
    ignored_tables: Tuple[str, ...] = ()
    overrides: Mapping[str, TableOverride] = field(default_factory=lambda: dict(DEFAULT_OVERRIDES))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "ScopeSettings":
        if not payload:
            return cls()
        if not isinstance(payload, Mapping):
            raise ConfigError("'scope' must be an object if provided.")

        namespace = payload.get("namespace")
        if namespace is not None and not str(namespace).strip():
            namespace = None

        overrides_payload = payload.get("overrides")
        if overrides_payload is None:
            overrides: Mapping[str, TableOverride] = dict(DEFAULT_OVERRIDES)
        elif isinstance(overrides_payload, Mapping):
            overrides = {}
            for table, entry in overrides_payload.items():
                if not isinstance(entry, Mapping):
                    raise ConfigError(f"Override for {table!r} must be an object.")
                try:
                    overrides[str(table)] = TableOverride.from_dict(entry)
                except ValueError as exc:
                    raise ConfigError(f"Override for {table!r}: {exc}") from exc
        else:
            raise ConfigError("'scope.overrides' must be an object.")

        try:
            ignored = _string_tuple(payload.get("ignored_tables"))
        except ConfigError as exc:
            raise ConfigError(f"scope.ignored_tables: {exc}") from exc

        return cls(
            namespace=str(namespace) if namespace else None,
            ignored_tables=ignored,
            overrides=overrides,
        )


@dataclass(frozen=True)
class BackupSettings:
    output_directory: Path = Path("backups")
    encrypt: bool = True
    keyset_path: Path | None = None
    chunk_size: int = DEFAULT_CHUNK_SIZE
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None, base_dir: Path | None = None) -> "BackupSettings":
        if not payload:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ConfigError("'backup' must be an object if provided.")

        directory = payload.get("output_directory") or "backups"
        keyset = payload.get("keyset_path")
        encrypt = payload.get("encrypt", True)
        if not isinstance(encrypt, bool):
            raise ConfigError("backup.encrypt must be true or false.")
        if encrypt and not keyset:
            raise ConfigError("backup.encrypt requires backup.keyset_path.")

        return cls(
            output_directory=_expand_path(str(directory), base_dir),
            encrypt=encrypt,
            keyset_path=_expand_path(str(keyset), base_dir) if keyset else None,
            chunk_size=_positive_int(payload.get("chunk_size"), name="backup.chunk_size", default=DEFAULT_CHUNK_SIZE),
            page_size=_positive_int(payload.get("page_size"), name="backup.page_size", default=DEFAULT_PAGE_SIZE),
        )

    def load_cipher(self) -> FernetCipher | None:
        if self.keyset_path is None:
            return None
        return FernetCipher.from_keyset(self.keyset_path)


@dataclass(frozen=True)
class DeletionSettings:
    batch_size: int = DEFAULT_BATCH_SIZE

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "DeletionSettings":
        if not payload:
            return cls()
        if not isinstance(payload, Mapping):
            raise ConfigError("'deletion' must be an object if provided.")
        return cls(
            batch_size=_positive_int(payload.get("batch_size"), name="deletion.batch_size", default=DEFAULT_BATCH_SIZE),
        )


@dataclass(frozen=True)
class UserBackupConfig:
    connections: Tuple[Tuple[str, Path], ...]
    scope: ScopeSettings
    backup: BackupSettings
    deletion: DeletionSettings
    schema: str = CONFIG_SCHEMA

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, base_dir: Path | None = None) -> "UserBackupConfig":
        if not isinstance(payload, Mapping):
            raise ConfigError("Config payload must be a mapping.")

        schema = str(payload.get("schema", CONFIG_SCHEMA))
        if schema != CONFIG_SCHEMA:
            raise ConfigError(f"Unsupported config schema: {schema}")

        return cls(
            connections=_parse_connections(payload.get("connections"), base_dir),
            scope=ScopeSettings.from_dict(payload.get("scope")),
            backup=BackupSettings.from_dict(payload.get("backup"), base_dir),
            deletion=DeletionSettings.from_dict(payload.get("deletion")),
            schema=schema,
        )

    def build_catalog(self) -> SqliteConnectionCatalog:
        return SqliteConnectionCatalog.from_connections(self.connections)


def load_config(path: Path | str) -> UserBackupConfig:
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path}: invalid JSON ({exc})") from exc
    return UserBackupConfig.from_dict(payload, base_dir=path.resolve().parent)


__all__ = [
    "BackupSettings",
    "CONFIG_SCHEMA",
    "ConfigError",
    "DeletionSettings",
    "ScopeSettings",
    "UserBackupConfig",
    "load_config",
]
