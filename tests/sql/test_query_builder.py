# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for sql.query - QueryBuilder statement compilation."""

from __future__ import annotations

import pytest

from sqlrecord.sql.adapters import SqliteAdapter
from sqlrecord.sql.codec import ValueCodec
from sqlrecord.sql.query import QueryBuilder


@pytest.fixture
def qb() -> QueryBuilder:
    return QueryBuilder(ValueCodec(SqliteAdapter(":memory:"), None), "app_")


class TestWhereClause:
    """Tests for filter compilation."""

    def test_empty(self, qb: QueryBuilder):
        assert qb.where_clause(None) == ""
        assert qb.where_clause({}) == ""

    def test_typed_equality(self, qb: QueryBuilder):
        """ints, floats and text render with their own literal form, ANDed."""
        sql = qb.where_clause({"age": 3, "ratio": 0.5, "name": "Ann"})
        assert sql == "\"age\" = 3 AND \"ratio\" = 0.5 AND \"name\" = 'Ann'"

    def test_numeric_string_stays_text(self, qb: QueryBuilder):
        """A str value is always compared as text."""
        assert qb.where_clause({"code": "007"}) == "\"code\" = '007'"

    def test_bool_renders_as_integer(self, qb: QueryBuilder):
        assert qb.where_clause({"deleted": False}) == '"deleted" = 0'

    def test_none_is_null_check(self, qb: QueryBuilder):
        assert qb.where_clause({"id": None}) == '"id" IS NULL'

    def test_sequence_is_in_list(self, qb: QueryBuilder):
        assert qb.where_clause({"id": [1, 2, 3]}) == '"id" IN (1, 2, 3)'
        assert qb.where_clause({"name": ("a", "b")}) == "\"name\" IN ('a', 'b')"

    def test_empty_sequence_matches_nothing(self, qb: QueryBuilder):
        assert qb.where_clause({"id": []}) == "1 = 0"

    def test_like(self, qb: QueryBuilder):
        """$like compiles each entry to a LIKE predicate with an escaped pattern."""
        sql = qb.where_clause({"age": 3, "$like": {"name": "O'B%"}})
        assert sql == "\"age\" = 3 AND \"name\" LIKE 'O''B%'"

    def test_like_requires_mapping(self, qb: QueryBuilder):
        with pytest.raises(ValueError, match=r"\$like"):
            qb.where_clause({"$like": "A%"})

    def test_injection_is_escaped(self, qb: QueryBuilder):
        """Hostile text stays inside the literal."""
        sql = qb.where_clause({"name": "' OR '1'='1"})
        assert sql == "\"name\" = ''' OR ''1''=''1'"

    def test_column_quotes_escaped(self, qb: QueryBuilder):
        assert qb.where_clause({'we"ird': 1}) == '"we""ird" = 1'


class TestOrderAndLimit:
    """Tests for ORDER BY and LIMIT compilation."""

    def test_order_mapping(self, qb: QueryBuilder):
        assert qb.order_clause({"name": "asc", "id": "DESC"}) == '"name" ASC, "id" DESC'

    def test_order_single_column(self, qb: QueryBuilder):
        assert qb.order_clause("name") == '"name" ASC'

    def test_order_invalid_direction(self, qb: QueryBuilder):
        with pytest.raises(ValueError, match="Invalid sort direction"):
            qb.order_clause({"name": "sideways"})

    def test_limit_amount(self, qb: QueryBuilder):
        assert qb.limit_clause(10) == "LIMIT 10"

    def test_limit_window(self, qb: QueryBuilder):
        assert qb.limit_clause((20, 10)) == "LIMIT 10 OFFSET 20"

    def test_limit_none_is_unlimited(self, qb: QueryBuilder):
        assert qb.limit_clause(None) == ""

    def test_limit_zero_amount_keeps_window(self, qb: QueryBuilder):
        """An explicit zero amount selects nothing instead of everything."""
        assert qb.limit_clause(0) == "LIMIT 0"
        assert qb.limit_clause((5, 0)) == "LIMIT 0 OFFSET 5"

    def test_limit_bad_tuple(self, qb: QueryBuilder):
        with pytest.raises(ValueError, match="skip, amount"):
            qb.limit_clause((1, 2, 3))


class TestStatements:
    """Tests for full statements."""

    def test_select_all(self, qb: QueryBuilder):
        assert qb.select("users") == 'SELECT * FROM "app_users"'

    def test_select_full(self, qb: QueryBuilder):
        sql = qb.select("users", ["id", "name"], {"age": 3}, {"name": "desc"}, (5, 10))
        assert sql == (
            'SELECT "id", "name" FROM "app_users" WHERE "age" = 3 '
            'ORDER BY "name" DESC LIMIT 10 OFFSET 5'
        )

    def test_insert_modes(self, qb: QueryBuilder):
        """Plain, ignore and replace inserts use the SQLite verbs."""
        values = {"name": "Ann", "age": 3}
        assert qb.insert("users", values) == (
            "INSERT INTO \"app_users\" (\"name\", \"age\") VALUES ('Ann', 3)"
        )
        assert qb.insert("users", values, ignore_duplicate=True).startswith(
            'INSERT OR IGNORE INTO "app_users"'
        )
        assert qb.insert("users", values, replace=True).startswith('REPLACE INTO "app_users"')

    def test_insert_empty_raises(self, qb: QueryBuilder):
        with pytest.raises(ValueError, match="at least one value"):
            qb.insert("users", {})

    def test_update(self, qb: QueryBuilder):
        sql = qb.update("users", {"name": "Bob", "age": None}, {"id": 1})
        assert sql == "UPDATE \"app_users\" SET \"name\" = 'Bob', \"age\" = NULL WHERE \"id\" = 1"

    def test_update_empty_raises(self, qb: QueryBuilder):
        with pytest.raises(ValueError, match="at least one value"):
            qb.update("users", {}, {"id": 1})

    def test_delete(self, qb: QueryBuilder):
        assert qb.delete("users", {"id": 1}) == 'DELETE FROM "app_users" WHERE "id" = 1'

    def test_count(self, qb: QueryBuilder):
        assert qb.count("users", {"age": 3}) == (
            'SELECT COUNT(*) AS cnt FROM "app_users" WHERE "age" = 3'
        )
