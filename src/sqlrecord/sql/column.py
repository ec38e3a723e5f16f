# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Column definitions for Table schemas.

A table declares its columns once, in ``Table.configure()``::

    def configure(self) -> None:
        c = self.columns
        c.column("id", Integer, insert=False, update=False)
        c.column("name", String, mandatory=True, unique=True)
        c.column("age", Integer, default=0)

Only two column families exist: integers and text. Any other type name is
an authoring error reported as SchemaError when the column is declared.
"""

from __future__ import annotations

from typing import Any

Integer = "INTEGER"
String = "TEXT"

INTEGER_TYPES = frozenset({"INTEGER", "INT", "SMALLINT", "BIGINT"})
TEXT_TYPES = frozenset({"TEXT", "VARCHAR", "CHAR", "LONGTEXT"})


class SchemaError(Exception):
    """Raised for schema authoring errors (unsupported type, missing pkey)."""


def normalize_type(type_: str) -> str:
    """Return the canonical column type (Integer or String) for a type name.

    Raises:
        SchemaError: If the type belongs to neither the integer nor the text family.
    """
    upper = str(type_).strip().upper()
    if upper in INTEGER_TYPES:
        return Integer
    if upper in TEXT_TYPES:
        return String
    raise SchemaError(f"Unsupported column type: {type_!r}")


class Column:
    """A single column of a table schema.

    Attributes:
        name: Column name.
        type_: Canonical type, Integer or String.
        insert: Column may be set on insert.
        update: Column may be changed on update.
        select: Column is visible to callers (public).
        mandatory: A non-empty value is required on insert.
        unique: Values must be unique across the table.
        default: Value used on insert when the caller supplies none.
        description: Free text for documentation and CLI listings.
    """

    def __init__(
        self,
        name: str,
        type_: str = String,
        *,
        insert: bool = True,
        update: bool = True,
        select: bool = True,
        mandatory: bool = False,
        unique: bool = False,
        default: Any = "",
        description: str | None = None,
    ) -> None:
        self.name = name
        self.type_ = normalize_type(type_)
        self.insert = insert
        self.update = update
        self.select = select
        self.mandatory = mandatory
        self.unique = unique
        self.default = default
        self.description = description

    @property
    def is_integer(self) -> bool:
        return self.type_ == Integer

    def to_sql(self, primary_key: bool = False) -> str:
        """Return the column definition for CREATE TABLE."""
        sql = '"' + self.name.replace('"', '""') + '" ' + self.type_
        if primary_key:
            return sql + " PRIMARY KEY"
        if self.mandatory:
            sql += " NOT NULL"
        if self.unique:
            sql += " UNIQUE"
        return sql

    def __repr__(self) -> str:
        return f"Column({self.name!r}, {self.type_!r})"


class Columns(dict):
    """Ordered mapping name → Column, in declaration order."""

    def column(self, name: str, type_: str = String, **kwargs: Any) -> Column:
        """Declare a column and return it.

        Raises:
            SchemaError: If the column is already declared or its type is unsupported.
        """
        if name in self:
            raise SchemaError(f"Column '{name}' declared twice")
        col = Column(name, type_, **kwargs)
        self[name] = col
        return col

    def insertable(self) -> list[str]:
        return [c.name for c in self.values() if c.insert]

    def updatable(self) -> list[str]:
        return [c.name for c in self.values() if c.update]

    def selectable(self) -> list[str]:
        return [c.name for c in self.values() if c.select]

    def unique_columns(self) -> list[str]:
        return [c.name for c in self.values() if c.unique]
