# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQLite backend on aiosqlite."""

from __future__ import annotations

import os
from typing import Any

import aiosqlite

from .base import DbAdapter

_VERBS = {
    (False, False): "INSERT INTO",
    (False, True): "INSERT OR IGNORE INTO",
    (True, False): "REPLACE INTO",
    (True, True): "REPLACE INTO",
}


class SqliteAdapter(DbAdapter):
    """SQLite file (or in-memory) database.

    There is no pool: every acquire() opens its own connection and release()
    closes it. Writes run inside the implicit transaction the sqlite3 module
    begins on the first DML statement, ended by commit() or rollback().
    """

    name = "sqlite"

    def __init__(self, db_path: str):
        self.db_path = db_path or ":memory:"

    def identity(self) -> str:
        """``sqlite:<absolute path>``, or ``sqlite::memory:``."""
        target = self.db_path if self.db_path == ":memory:" else os.path.abspath(self.db_path)
        return f"sqlite:{target}"

    @property
    def driver_errors(self) -> tuple[type[BaseException], ...]:
        return (aiosqlite.Error,)

    def error_code(self, exc: BaseException) -> int | str:
        # extended result code, available on Python 3.11+
        return getattr(exc, "sqlite_errorcode", -1)

    def escape_string(self, conn: Any, value: str) -> str:
        """Double single quotes and wrap in quotes.

        Raises:
            ValueError: On NUL characters, which SQLite would truncate.
        """
        if "\x00" in value:
            raise ValueError("SQLite text literals cannot contain NUL characters")
        escaped = value.replace("'", "''")
        return f"'{escaped}'"

    def insert_statement(
        self,
        table: str,
        columns: list[str],
        literals: list[str],
        *,
        replace: bool = False,
        ignore_duplicate: bool = False,
        pk_col: str | None = "id",
    ) -> str:
        verb = _VERBS[(bool(replace), bool(ignore_duplicate))]
        names = ", ".join(map(self._sql_name, columns))
        values = ", ".join(literals)
        return f"{verb} {table} ({names}) VALUES ({values})"

    async def acquire(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(self.db_path)
        conn.row_factory = aiosqlite.Row
        return conn

    async def release(self, conn: aiosqlite.Connection) -> None:
        await conn.close()

    async def shutdown(self) -> None:
        return None

    async def commit(self, conn: aiosqlite.Connection) -> None:
        await conn.commit()

    async def rollback(self, conn: aiosqlite.Connection) -> None:
        await conn.rollback()

    async def execute(
        self, conn: aiosqlite.Connection, query: str, params: dict[str, Any] | None = None
    ) -> int:
        cursor = await conn.execute(query, params or {})
        return cursor.rowcount

    async def fetch_one(
        self, conn: aiosqlite.Connection, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        async with conn.execute(query, params or {}) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row is not None else None

    async def fetch_all(
        self, conn: aiosqlite.Connection, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        async with conn.execute(query, params or {}) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def execute_script(self, conn: aiosqlite.Connection, script: str) -> None:
        await conn.executescript(script)

    async def execute_insert(
        self, conn: aiosqlite.Connection, query: str, pk_col: str | None = "id"
    ) -> int:
        """Return the new rowid, or 0 when OR IGNORE skipped the row."""
        cursor = await conn.execute(query)
        if not cursor.rowcount:
            return 0
        return cursor.lastrowid or 0
