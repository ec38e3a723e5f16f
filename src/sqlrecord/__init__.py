# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""sqlrecord: async record lifecycle engine over a small SQL gateway.

Components:
    Table, Record: schema declaration, validation and insert/update/delete.
    SqlDb: gateway with per-request connections and units of work.
    QueryBuilder, ValueCodec: statement compilation and literal escaping.
    RecordApp, SqlRecordConfig: configuration and table discovery.
"""

__version__ = "0.1.0"

from .app import RecordApp
from .cache import CacheBackend, InMemoryCache
from .config import SqlRecordConfig, config_from_env
from .model import Record, RecordError, Table
from .sql import Columns, Integer, SchemaError, SqlDb, SqlDbError, String

__all__ = [
    "CacheBackend",
    "Columns",
    "InMemoryCache",
    "Integer",
    "Record",
    "RecordApp",
    "RecordError",
    "SchemaError",
    "SqlDb",
    "SqlDbError",
    "SqlRecordConfig",
    "String",
    "Table",
    "__version__",
    "config_from_env",
]
