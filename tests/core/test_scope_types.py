from __future__ import annotations

import pytest

from userbackup.core.types import (
    OTHER_TYPE,
    TEXT_TYPE,
    ColumnSet,
    DatabaseConnectionError,
    SchemaIntrospectionError,
    TableOverride,
    UserBackupError,
    UserScope,
    normalise_type,
)


@pytest.mark.parametrize(
    ("declared", "expected"),
    [
        ("VARCHAR(255)", TEXT_TYPE),
        ("text", TEXT_TYPE),
        ("NCHAR", TEXT_TYPE),
        ("CLOB", TEXT_TYPE),
        ("INTEGER", OTHER_TYPE),
        ("DECIMAL(10,2)", OTHER_TYPE),
        ("", OTHER_TYPE),
        (None, OTHER_TYPE),
    ],
)
def test_normalise_type(declared: str | None, expected: str) -> None:
    assert normalise_type(declared) == expected


def test_column_set_preserves_order_and_drops_duplicates() -> None:
    columns = ColumnSet.from_pairs([("b", "TEXT"), ("a", "INTEGER"), ("b", "INTEGER"), ("", "TEXT")])

    assert columns.names == ("b", "a")
    assert "a" in columns
    assert "z" not in columns
    assert len(columns) == 2
    assert columns.type_of("b") == TEXT_TYPE
    assert columns.type_of("missing") is None


def test_user_scope_normalises_sequences() -> None:
    scope = UserScope(user_id=3, account_ids=[1, 2], active_ids=None, namespace="  ")  # type: ignore[arg-type]

    assert scope.account_ids == (1, 2)
    assert scope.active_ids == ()
    assert scope.namespace is None
    assert scope.ids_for("user") == [3]
    with pytest.raises(ValueError):
        scope.ids_for("tenant")


def test_table_override_validates_source() -> None:
    with pytest.raises(ValueError):
        TableOverride(column="id", source="tenant")
    with pytest.raises(ValueError):
        TableOverride.from_dict({"column": "", "source": "user"})

    override = TableOverride.from_dict({"column": "id", "source": "Account"})
    assert override == TableOverride(column="id", source="account")


def test_error_messages_include_location() -> None:
    connection_error = DatabaseConnectionError("main", "database not found")
    schema_error = SchemaIntrospectionError("main", "users", "locked")

    assert str(connection_error) == "main: database not found"
    assert str(schema_error) == "main.users: locked"
    assert isinstance(schema_error, UserBackupError)
