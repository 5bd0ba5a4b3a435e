from __future__ import annotations

import json
from pathlib import Path

import pytest

from userbackup.backup.encryption import DEFAULT_CHUNK_SIZE, write_keyset
from userbackup.config import (
    CONFIG_SCHEMA,
    ConfigError,
    UserBackupConfig,
    load_config,
)
from userbackup.core.filters import DEFAULT_OVERRIDES
from userbackup.core.types import TableOverride


def _write_config(path: Path, payload: dict) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_config_resolves_relative_paths(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "userbackup.json",
        {
            "schema": CONFIG_SCHEMA,
            "connections": {"main": "data/main.sqlite", "archive": "/srv/archive.sqlite"},
            "scope": {"namespace": "prod", "ignored_tables": ["migrations", " "]},
            "backup": {"output_directory": "out", "keyset_path": "keys/keyset.json", "page_size": 250},
            "deletion": {"batch_size": 100},
        },
    )

    config = load_config(config_path)

    assert config.connections == (
        ("main", tmp_path / "data" / "main.sqlite"),
        ("archive", Path("/srv/archive.sqlite")),
    )
    assert config.scope.namespace == "prod"
    assert config.scope.ignored_tables == ("migrations",)
    assert config.scope.overrides == dict(DEFAULT_OVERRIDES)
    assert config.backup.output_directory == tmp_path / "out"
    assert config.backup.keyset_path == tmp_path / "keys" / "keyset.json"
    assert config.backup.encrypt is True
    assert config.backup.page_size == 250
    assert config.backup.chunk_size == DEFAULT_CHUNK_SIZE
    assert config.deletion.batch_size == 100


def test_connections_accept_a_list(tmp_path: Path) -> None:
    config = UserBackupConfig.from_dict(
        {
            "connections": [{"name": "A", "path": "a.sqlite"}, {"name": "B", "path": "b.sqlite"}],
            "backup": {"encrypt": False},
        },
        base_dir=tmp_path,
    )

    assert [name for name, _ in config.connections] == ["A", "B"]
    assert config.backup.keyset_path is None
    assert config.backup.load_cipher() is None
    assert config.build_catalog().list_connections() == ["A", "B"]


def test_overrides_replace_the_defaults() -> None:
    config = UserBackupConfig.from_dict(
        {
            "connections": {"A": "a.sqlite"},
            "scope": {"overrides": {"members": {"column": "member_id", "source": "User"}}},
            "backup": {"encrypt": False},
        }
    )

    assert config.scope.overrides == {"members": TableOverride(column="member_id", source="user")}


@pytest.mark.parametrize(
    "payload",
    [
        {"connections": {}},
        {"connections": {"A": ""}, "backup": {"encrypt": False}},
        {"connections": [{"name": "A", "path": "a"}, {"name": "A", "path": "b"}], "backup": {"encrypt": False}},
        {"connections": {"A": "a.sqlite"}},
        {"connections": {"A": "a.sqlite"}, "backup": {"encrypt": "false", "keyset_path": "k.json"}},
        {"connections": {"A": "a.sqlite"}, "backup": {"encrypt": 0}},
        {"connections": {"A": "a.sqlite"}, "backup": {"encrypt": False, "page_size": 0}},
        {"connections": {"A": "a.sqlite"}, "backup": {"encrypt": False}, "deletion": {"batch_size": "x"}},
        {"connections": {"A": "a.sqlite"}, "backup": {"encrypt": False}, "schema": "other"},
        {
            "connections": {"A": "a.sqlite"},
            "backup": {"encrypt": False},
            "scope": {"overrides": {"users": {"column": "id", "source": "tenant"}}},
        },
    ],
)
def test_invalid_payloads_raise_config_error(payload: dict) -> None:
    with pytest.raises(ConfigError):
        UserBackupConfig.from_dict(payload)


def test_invalid_json_raises_config_error(tmp_path: Path) -> None:
    config_path = tmp_path / "broken.json"
    config_path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_load_cipher_reads_keyset(tmp_path: Path) -> None:
    write_keyset(tmp_path / "keyset.json")
    config = UserBackupConfig.from_dict(
        {"connections": {"A": "a.sqlite"}, "backup": {"keyset_path": "keyset.json"}},
        base_dir=tmp_path,
    )

    cipher = config.backup.load_cipher()

    assert cipher is not None
    assert cipher.decrypt_unit(cipher.encrypt_block(b"ok")) == b"ok"
