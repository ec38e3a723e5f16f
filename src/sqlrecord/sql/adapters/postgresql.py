# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""PostgreSQL backend on psycopg 3 with an AsyncConnectionPool.

The pool is opened lazily by the first acquire(); every ``db.connection()``
block borrows one connection and hands it back on exit.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any

from .base import DbAdapter

# :name -> %(name)s, leaving ::casts alone
_NAMED_PARAM = re.compile(r"(?<!:):([A-Za-z_]\w*)")


def _bind(query: str, params: dict[str, Any] | None) -> tuple[str, dict[str, Any] | None]:
    if not params:
        return query, None
    return _NAMED_PARAM.sub(r"%(\1)s", query), params


class PostgresAdapter(DbAdapter):
    """Pooled PostgreSQL connections.

    Args:
        dsn: libpq connection string or URL.
        pool_size: Upper bound of pooled connections.
        connect_timeout: Seconds allowed for the pool to open.
    """

    name = "postgresql"
    zero_datetime = "1970-01-01 00:00:00"

    def __init__(self, dsn: str, pool_size: int = 10, connect_timeout: float = 10.0):
        try:
            import psycopg  # noqa: F401
        except ImportError as e:
            raise ImportError(
                "PostgreSQL support requires psycopg: pip install sqlrecord[postgresql]"
            ) from e
        self.dsn = dsn
        self.pool_size = pool_size
        self.connect_timeout = connect_timeout
        self._pool: Any = None

    def identity(self) -> str:
        """``postgresql:host:port/dbname``; user and password are left out."""
        from psycopg.conninfo import conninfo_to_dict

        info = conninfo_to_dict(self.dsn)
        host = info.get("host") or "localhost"
        port = info.get("port") or "5432"
        return f"postgresql:{host}:{port}/{info.get('dbname', '')}"

    # -------------------------------------------------------------------------
    # Dialect and errors
    # -------------------------------------------------------------------------

    def pk_column(self, name: str) -> str:
        return f"{self._sql_name(name)} SERIAL PRIMARY KEY"

    def escape_string(self, conn: Any, value: str) -> str:
        from psycopg import sql

        return sql.Literal(value).as_string(conn)

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
        q = self._sql_name
        parts = [f"INSERT INTO {table} ({', '.join(map(q, columns))}) VALUES ({', '.join(literals)})"]
        if replace and pk_col:
            assignments = [f"{q(c)} = EXCLUDED.{q(c)}" for c in columns if c != pk_col]
            if assignments:
                parts.append(f"ON CONFLICT ({q(pk_col)}) DO UPDATE SET {', '.join(assignments)}")
            else:
                parts.append(f"ON CONFLICT ({q(pk_col)}) DO NOTHING")
        elif replace or ignore_duplicate:
            parts.append("ON CONFLICT DO NOTHING")
        if pk_col:
            parts.append(f"RETURNING {q(pk_col)}")
        return " ".join(parts)

    @property
    def driver_errors(self) -> tuple[type[BaseException], ...]:
        import psycopg

        return (psycopg.Error,)

    def error_code(self, exc: BaseException) -> int | str:
        """SQLSTATE of the failure ("" when the driver gave none)."""
        return getattr(exc, "sqlstate", None) or ""

    # -------------------------------------------------------------------------
    # Pool
    # -------------------------------------------------------------------------

    async def _open_pool(self) -> Any:
        from psycopg_pool import AsyncConnectionPool

        async def set_search_path(conn: Any) -> None:
            await conn.execute("SET search_path TO public")
            await conn.commit()

        pool = AsyncConnectionPool(
            self.dsn,
            min_size=1,
            max_size=self.pool_size,
            open=False,
            configure=set_search_path,
        )
        try:
            await asyncio.wait_for(
                pool.open(wait=True, timeout=self.connect_timeout),
                timeout=self.connect_timeout + 1,
            )
        except asyncio.TimeoutError:
            await pool.close()
            raise TimeoutError(
                f"PostgreSQL did not answer within {self.connect_timeout}s"
            ) from None
        except Exception as e:
            await pool.close()
            raise ConnectionError(f"PostgreSQL connection failed: {e}") from e
        return pool

    async def acquire(self) -> Any:
        if self._pool is None:
            self._pool = await self._open_pool()
        return await self._pool.getconn()

    async def release(self, conn: Any) -> None:
        if self._pool is not None:
            await self._pool.putconn(conn)

    async def shutdown(self) -> None:
        pool, self._pool = self._pool, None
        if pool is not None:
            await pool.close()

    async def commit(self, conn: Any) -> None:
        await conn.commit()

    async def rollback(self, conn: Any) -> None:
        await conn.rollback()

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(self, conn: Any, query: str, params: dict[str, Any] | None = None) -> int:
        async with conn.cursor() as cur:
            await cur.execute(*_bind(query, params))
            return cur.rowcount

    async def fetch_one(
        self, conn: Any, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        from psycopg.rows import dict_row

        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(*_bind(query, params))
            return await cur.fetchone()

    async def fetch_all(
        self, conn: Any, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        from psycopg.rows import dict_row

        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(*_bind(query, params))
            return await cur.fetchall()

    async def execute_script(self, conn: Any, script: str) -> None:
        async with conn.cursor() as cur:
            await cur.execute(script)

    async def execute_insert(self, conn: Any, query: str, pk_col: str | None = "id") -> int:
        """Run INSERT ... RETURNING; 0 when ON CONFLICT skipped the row."""
        async with conn.cursor() as cur:
            await cur.execute(query)
            row = await cur.fetchone() if pk_col else None
        return int(row[0]) if row else 0
