# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQL statement compiler for flat filter/sort/limit queries.

QueryBuilder turns plain Python structures into complete statements with
inline literals rendered by ValueCodec:

    where:  {"name": "Ann", "age": 3}         → "name" = 'Ann' AND "age" = 3
            {"deleted": None}                 → "deleted" IS NULL
            {"id": [1, 2]}                    → "id" IN (1, 2)
            {"$like": {"name": "A%"}}         → "name" LIKE 'A%'
    sort:   {"name": "asc", "id": "desc"}     → ORDER BY "name" ASC, "id" DESC
    limit:  10 or (20, 10)                    → LIMIT 10 [OFFSET 20]
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .codec import ValueCodec

LIKE_KEY = "$like"

Where = Mapping[str, Any]
Sort = Mapping[str, str] | str
Limit = int | tuple[int, int]


class QueryBuilder:
    """Compile SELECT/INSERT/UPDATE/DELETE statements for one connection.

    Args:
        codec: ValueCodec bound to the active connection.
        table_prefix: Prefix prepended to every table name.
    """

    def __init__(self, codec: ValueCodec, table_prefix: str = "") -> None:
        self.codec = codec
        self.adapter = codec.adapter
        self.table_prefix = table_prefix or ""

    def table_name(self, table: str) -> str:
        return self.adapter._sql_name(self.table_prefix + table)

    def _name(self, column: str) -> str:
        return self.adapter._sql_name(column)

    # -------------------------------------------------------------------------
    # Clauses
    # -------------------------------------------------------------------------

    def where_clause(self, where: Where | None) -> str:
        """Return the WHERE body (without keyword), empty string for no filter."""
        if not where:
            return ""
        parts: list[str] = []
        for column, value in where.items():
            if column == LIKE_KEY:
                parts.extend(self._like_predicates(value))
            else:
                parts.append(self._predicate(column, value))
        return " AND ".join(parts)

    def _predicate(self, column: str, value: Any) -> str:
        name = self._name(column)
        if value is None:
            return f"{name} IS NULL"
        if isinstance(value, (list, tuple, set, frozenset)):
            if not value:
                return "1 = 0"
            items = ", ".join(self.codec.literal(v) for v in value)
            return f"{name} IN ({items})"
        return f"{name} = {self.codec.literal(value)}"

    def _like_predicates(self, patterns: Any) -> list[str]:
        if not isinstance(patterns, Mapping) or not patterns:
            raise ValueError(f"'{LIKE_KEY}' expects a non-empty mapping column → pattern")
        return [
            f"{self._name(column)} LIKE {self.codec.to_sql(pattern)}"
            for column, pattern in patterns.items()
        ]

    def order_clause(self, sort: Sort | None) -> str:
        """Return the ORDER BY body, empty string for no sort."""
        if not sort:
            return ""
        if isinstance(sort, str):
            sort = {sort: "ASC"}
        parts = []
        for column, direction in sort.items():
            direction = (direction or "ASC").upper()
            if direction not in ("ASC", "DESC"):
                raise ValueError(f"Invalid sort direction for '{column}': {direction!r}")
            parts.append(f"{self._name(column)} {direction}")
        return ", ".join(parts)

    def limit_clause(self, limit: Limit | None) -> str:
        """Return LIMIT/OFFSET for an amount or a (skip, amount) pair.

        Only None means unlimited; an amount of 0 selects no rows.
        """
        if limit is None:
            return ""
        if isinstance(limit, Sequence):
            if len(limit) != 2:
                raise ValueError(f"limit must be (skip, amount), got {limit!r}")
            skip, amount = limit
        else:
            skip, amount = 0, limit
        return self.adapter.limit_clause(max(int(skip), 0), max(int(amount), 0))

    def assignments(self, values: Mapping[str, Any]) -> str:
        return ", ".join(f"{self._name(k)} = {self.codec.literal(v)}" for k, v in values.items())

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def select(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        where: Where | None = None,
        sort: Sort | None = None,
        limit: Limit | None = None,
    ) -> str:
        cols_sql = ", ".join(self._name(c) for c in columns) if columns else "*"
        query = f"SELECT {cols_sql} FROM {self.table_name(table)}"
        where_sql = self.where_clause(where)
        if where_sql:
            query += f" WHERE {where_sql}"
        order_sql = self.order_clause(sort)
        if order_sql:
            query += f" ORDER BY {order_sql}"
        limit_sql = self.limit_clause(limit)
        if limit_sql:
            query += f" {limit_sql}"
        return query

    def count(self, table: str, where: Where | None = None) -> str:
        query = f"SELECT COUNT(*) AS cnt FROM {self.table_name(table)}"
        where_sql = self.where_clause(where)
        if where_sql:
            query += f" WHERE {where_sql}"
        return query

    def insert(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        replace: bool = False,
        ignore_duplicate: bool = False,
        pk_col: str | None = "id",
    ) -> str:
        if not values:
            raise ValueError("insert requires at least one value")
        columns = list(values.keys())
        literals = [self.codec.literal(values[c]) for c in columns]
        return self.adapter.insert_statement(
            self.table_name(table),
            columns,
            literals,
            replace=replace,
            ignore_duplicate=ignore_duplicate,
            pk_col=pk_col,
        )

    def update(self, table: str, values: Mapping[str, Any], where: Where | None) -> str:
        if not values:
            raise ValueError("update requires at least one value")
        query = f"UPDATE {self.table_name(table)} SET {self.assignments(values)}"
        where_sql = self.where_clause(where)
        if where_sql:
            query += f" WHERE {where_sql}"
        return query

    def delete(self, table: str, where: Where | None) -> str:
        query = f"DELETE FROM {self.table_name(table)}"
        where_sql = self.where_clause(where)
        if where_sql:
            query += f" WHERE {where_sql}"
        return query


__all__ = ["LIKE_KEY", "QueryBuilder"]
