from __future__ import annotations

import pytest

from userbackup.core.filters import (
    DEFAULT_OVERRIDES,
    FILTER_PRIORITY,
    build_values,
    prepare_values,
    resolve_filter,
    resolve_filter_spec,
)
from userbackup.core.types import ColumnSet, FilterSpec, TableOverride, UserScope


def _scope(**overrides: object) -> UserScope:
    payload: dict[str, object] = {
        "user_id": 1,
        "account_ids": [1001, 1002],
        "active_ids": [501],
    }
    payload.update(overrides)
    return UserScope(**payload)  # type: ignore[arg-type]


def test_users_table_override_wins_over_user_id_column() -> None:
    columns = ColumnSet.from_names(["id", "user_id", "account_id"])

    assert resolve_filter("users", columns) == "id"


def test_subaccount_override_uses_account_ids() -> None:
    columns = ColumnSet.from_names(["id", "user_id"])
    scope = _scope()

    spec = resolve_filter_spec("user_subaccounts", columns, scope)

    assert spec == FilterSpec(table="user_subaccounts", column="id", values=(1001, 1002))


def test_override_with_missing_column_leaves_table_unresolved(caplog: pytest.LogCaptureFixture) -> None:
    columns = ColumnSet.from_names(["uid", "user_id", "name"])
    overrides = {"members": TableOverride(column="member_key", source="user")}

    with caplog.at_level("WARNING"):
        assert resolve_filter("users", columns) is None
        assert resolve_filter_spec("members", columns, _scope(), overrides) is None

    assert "Override column id is missing from table users" in caplog.text
    assert "member_key" in caplog.text


@pytest.mark.parametrize(
    ("names", "expected"),
    [
        (["id", "active_id", "to_account_id", "from_account_id", "account_id", "user_id"], "user_id"),
        (["id", "active_id", "to_account_id", "from_account_id", "account_id"], "account_id"),
        (["id", "active_id", "to_account_id", "from_account_id"], "from_account_id"),
        (["id", "active_id", "to_account_id"], "to_account_id"),
        (["id", "active_id"], "active_id"),
        (["id", "name"], None),
    ],
)
def test_priority_scan_order(names: list[str], expected: str | None) -> None:
    assert resolve_filter("ledger", ColumnSet.from_names(names)) == expected


def test_priority_constant_matches_documented_order() -> None:
    assert FILTER_PRIORITY == (
        "user_id",
        "account_id",
        "from_account_id",
        "to_account_id",
        "active_id",
    )


def test_build_values_maps_columns_to_identity_lists() -> None:
    scope = _scope()

    assert build_values("positions", "user_id", scope) == [1]
    assert build_values("transactions", "account_id", scope) == [1001, 1002]
    assert build_values("transfers", "from_account_id", scope) == [1001, 1002]
    assert build_values("transfers", "to_account_id", scope) == [1001, 1002]
    assert build_values("holdings", "subaccount_id", scope) == [1001, 1002]
    assert build_values("quotes", "active_id", scope) == [501]
    assert build_values("users", "id", scope) == [1]
    assert build_values("misc", "id", scope) == []


def test_empty_value_set_skips_table() -> None:
    columns = ColumnSet.from_names(["id", "active_id"])
    scope = _scope(active_ids=[])

    assert resolve_filter_spec("quotes", columns, scope) is None


def test_unresolved_table_has_no_spec() -> None:
    columns = ColumnSet.from_names(["id", "payload"])

    assert resolve_filter_spec("audit", columns, _scope()) is None


def test_prepare_values_prefixes_textual_user_id() -> None:
    columns = ColumnSet.from_pairs([("id", "INTEGER"), ("user_id", "VARCHAR(64)")])

    prepared = prepare_values("user_id", columns, [1, 2], "prod")

    assert prepared == ["prod-1", "prod-2"]


def test_prepare_values_leaves_numeric_user_id_alone() -> None:
    columns = ColumnSet.from_pairs([("user_id", "INTEGER")])

    assert prepare_values("user_id", columns, [1], "prod") == [1]


def test_prepare_values_only_touches_user_id() -> None:
    columns = ColumnSet.from_pairs([("account_id", "TEXT")])

    assert prepare_values("account_id", columns, [1001], "prod") == [1001]


def test_prepare_values_without_namespace_is_identity() -> None:
    columns = ColumnSet.from_pairs([("user_id", "TEXT")])

    assert prepare_values("user_id", columns, [5], None) == [5]


def test_resolve_filter_spec_threads_namespace() -> None:
    columns = ColumnSet.from_pairs([("id", "INTEGER"), ("user_id", "TEXT")])
    scope = _scope(namespace="eu")

    spec = resolve_filter_spec("sessions", columns, scope)

    assert spec is not None
    assert spec.column == "user_id"
    assert spec.values == ("eu-1",)


def test_custom_overrides_replace_defaults() -> None:
    overrides = {"members": TableOverride(column="member_id", source="account")}
    columns = ColumnSet.from_names(["member_id", "user_id"])

    assert resolve_filter("members", columns, overrides) == "member_id"
    assert resolve_filter("users", ColumnSet.from_names(["id", "user_id"]), overrides) == "user_id"
    spec = resolve_filter_spec("members", columns, _scope(), overrides)
    assert spec is not None
    assert spec.values == (1001, 1002)


def test_default_overrides_are_users_and_subaccounts() -> None:
    assert set(DEFAULT_OVERRIDES) == {"users", "user_subaccounts"}
    assert DEFAULT_OVERRIDES["users"].source == "user"
    assert DEFAULT_OVERRIDES["user_subaccounts"].source == "account"
