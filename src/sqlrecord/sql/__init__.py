# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQL layer: gateway, statement compiler, value codec and adapters.

Components:
    SqlDb: Gateway owning per-request connections and units of work.
    QueryBuilder: Compiles filter/sort/limit structures into statements.
    ValueCodec: Renders Python values as escaped SQL literals.
    UnitOfWork: Reentrant transaction counter for nested operations.
    Column, Columns: Schema declarations consumed by model tables.
"""

from .codec import ValueCodec, typecast_value
from .column import Column, Columns, Integer, SchemaError, String
from .query import QueryBuilder
from .sqldb import SqlDb, SqlDbError
from .transaction import UnitOfWork

__all__ = [
    "Column",
    "Columns",
    "Integer",
    "QueryBuilder",
    "SchemaError",
    "SqlDb",
    "SqlDbError",
    "String",
    "UnitOfWork",
    "ValueCodec",
    "typecast_value",
]
