from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from userbackup.core.types import DatabaseConnectionError, SchemaIntrospectionError, TEXT_TYPE
from userbackup.sql import SqliteConnectionCatalog, quote_identifier


def _create_sample_database(path: Path) -> Path:
    connection = sqlite3.connect(path)
    try:
        cursor = connection.cursor()
        cursor.execute("CREATE TABLE accounts (id INTEGER PRIMARY KEY, user_id TEXT, balance REAL)")
        cursor.execute('CREATE TABLE "odd ""name""" (id INTEGER PRIMARY KEY, account_id INTEGER)')
        cursor.executemany(
            "INSERT INTO accounts (user_id, balance) VALUES (?, ?)",
            [("u-1", 42.5), ("u-2", 13.75), ("u-1", 1.0)],
        )
        cursor.execute('INSERT INTO "odd ""name""" (account_id) VALUES (7)')
        connection.commit()
    finally:
        connection.close()
    return path


def test_quote_identifier_escapes_quotes() -> None:
    assert quote_identifier("users") == '"users"'
    assert quote_identifier('we"ird') == '"we""ird"'
    with pytest.raises(ValueError):
        quote_identifier("")


def test_inspector_lists_tables_and_columns(tmp_path: Path) -> None:
    db_path = _create_sample_database(tmp_path / "sample.sqlite")

    with SqliteConnectionCatalog({"main": db_path}) as catalog:
        inspector = catalog.inspector("main")
        tables = inspector.list_tables()
        columns = inspector.list_columns("accounts")

        assert tables == ["accounts", 'odd "name"']
        assert inspector.has_table("accounts") is True
        assert inspector.has_table("missing") is False
        assert columns.names == ("id", "user_id", "balance")
        assert columns.type_of("user_id") == TEXT_TYPE


def test_list_columns_of_missing_table_raises(tmp_path: Path) -> None:
    db_path = _create_sample_database(tmp_path / "sample.sqlite")

    with SqliteConnectionCatalog({"main": db_path}) as catalog:
        with pytest.raises(SchemaIntrospectionError):
            catalog.inspector("main").list_columns("missing")


def test_select_page_orders_and_limits(tmp_path: Path) -> None:
    db_path = _create_sample_database(tmp_path / "sample.sqlite")

    with SqliteConnectionCatalog({"main": db_path}) as catalog:
        executor = catalog.executor("main")
        first = executor.select_page("accounts", "user_id", ["u-1", "u-2"], order_by="user_id", offset=0, limit=2)
        second = executor.select_page("accounts", "user_id", ["u-1", "u-2"], order_by="user_id", offset=2, limit=2)

    assert [row["id"] for row in first] == [1, 3]
    assert [row["id"] for row in second] == [2]
    assert first[0] == {"id": 1, "user_id": "u-1", "balance": 42.5}


def test_select_page_handles_quoted_table_names(tmp_path: Path) -> None:
    db_path = _create_sample_database(tmp_path / "sample.sqlite")

    with SqliteConnectionCatalog({"main": db_path}) as catalog:
        rows = catalog.executor("main").select_page(
            'odd "name"', "account_id", [7], order_by="account_id", offset=0, limit=10
        )

    assert rows == [{"id": 1, "account_id": 7}]


def test_delete_where_in_commits(tmp_path: Path) -> None:
    db_path = _create_sample_database(tmp_path / "sample.sqlite")

    with SqliteConnectionCatalog({"main": db_path}) as catalog:
        deleted = catalog.executor("main").delete_where_in("accounts", "user_id", ["u-1"])

    assert deleted == 2
    connection = sqlite3.connect(db_path)
    try:
        remaining = connection.execute("SELECT user_id FROM accounts").fetchall()
    finally:
        connection.close()
    assert remaining == [("u-2",)]


def test_missing_database_raises_connection_error(tmp_path: Path) -> None:
    missing = tmp_path / "missing.sqlite"
    catalog = SqliteConnectionCatalog({"main": missing})

    with pytest.raises(DatabaseConnectionError):
        catalog.inspector("main")
    with pytest.raises(DatabaseConnectionError):
        catalog.executor("other")
    assert not missing.exists()


def test_catalog_reuses_and_closes_connections(tmp_path: Path) -> None:
    db_path = _create_sample_database(tmp_path / "sample.sqlite")
    catalog = SqliteConnectionCatalog.from_connections([("b", db_path), ("a", db_path)])

    assert catalog.list_connections() == ["b", "a"]
    assert catalog.inspector("a") is catalog.executor("a")

    database = catalog.database("a")
    catalog.close()
    with pytest.raises(SchemaIntrospectionError):
        database.has_table("accounts")


def test_select_page_wraps_sqlite_errors(tmp_path: Path) -> None:
    db_path = _create_sample_database(tmp_path / "sample.sqlite")
    catalog = SqliteConnectionCatalog({"main": db_path})
    database = catalog.database("main")
    catalog.close()

    with pytest.raises(DatabaseConnectionError) as excinfo:
        database.select_page("accounts", "user_id", ["u-1"], order_by="user_id", offset=0, limit=10)

    assert excinfo.value.connection == "main"
    assert "reading accounts failed" in str(excinfo.value)
