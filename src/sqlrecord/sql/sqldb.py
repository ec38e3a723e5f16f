# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SqlDb: the async gateway every table and record goes through.

A connection (and its UnitOfWork) lives in ContextVars for the duration of
an ``async with db.connection()`` block, so concurrent tasks never share one.
"""

from __future__ import annotations

import hashlib
import importlib
import json
import logging
import pkgutil
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from .adapters import DbAdapter, get_adapter
from .codec import ValueCodec
from .query import QueryBuilder
from .transaction import UnitOfWork

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator, Mapping, Sequence

    from ..cache import CacheBackend
    from ..model.table import Table
    from .query import Limit, Sort, Where

logger = logging.getLogger(__name__)

_current_conn: ContextVar[Any] = ContextVar("sqlrecord_conn", default=None)
_current_uow: ContextVar[UnitOfWork | None] = ContextVar("sqlrecord_uow", default=None)

_NO_CONNECTION = "No active connection. Use 'async with db.connection():'"


class SqlDbError(Exception):
    """The engine rejected a statement.

    Attributes:
        code: SQLite extended result code or PostgreSQL SQLSTATE.
        query: Failing statement, None for commit/rollback.
    """

    def __init__(self, message: str, code: int | str = -1, query: str | None = None):
        self.code = code
        self.query = query
        super().__init__(message)


class SqlDb:
    """Async gateway over one database.

    Statements are built by QueryBuilder with inline literals and run on the
    connection of the current context. select() results can be cached by
    attaching a CacheBackend; tables are registered with add_table() or
    found by discover().

    Example:
        db = SqlDb("/data/app.db", table_prefix="app_", use_cache=True)
        async with db.connection():
            db.discover("myapp.entities")
            await db.check_structure()
            new_id = await db.insert("users", {"name": "Ann"})
        await db.shutdown()

    Leaving the block commits; an exception rolls back and propagates.
    """

    def __init__(
        self,
        connection_string: str,
        *,
        table_prefix: str = "",
        use_cache: bool = False,
        cache: CacheBackend | None = None,
    ):
        """Bind the gateway to a database; no connection is opened yet.

        Args:
            connection_string: See sqlrecord.sql.adapters for accepted forms.
            table_prefix: Prepended to every table name.
            use_cache: Default for the per-call use_cache of select().
            cache: Backend for select() results and last-update markers.
        """
        self.connection_string = connection_string
        self.adapter: DbAdapter = get_adapter(connection_string)
        self.table_prefix = table_prefix
        self.use_cache = use_cache
        self.cache = cache
        self.tables: dict[str, Table] = {}

    @property
    def conn(self) -> Any:
        """Driver connection of the current context.

        Raises:
            RuntimeError: Outside a connection() block.
        """
        current = _current_conn.get()
        if current is None:
            raise RuntimeError(_NO_CONNECTION)
        return current

    @property
    def unit_of_work(self) -> UnitOfWork:
        uow = _current_uow.get()
        if uow is None:
            raise RuntimeError(_NO_CONNECTION)
        return uow

    # -------------------------------------------------------------------------
    # Connection scope
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[SqlDb]:
        """Open a connection and a UnitOfWork for the enclosed block."""
        conn = await self.adapter.acquire()
        conn_token = _current_conn.set(conn)
        uow_token = _current_uow.set(UnitOfWork(self))
        try:
            yield self
        except Exception:
            await self.adapter.rollback(conn)
            raise
        else:
            await self.adapter.commit(conn)
        finally:
            _current_uow.reset(uow_token)
            _current_conn.reset(conn_token)
            await self.adapter.release(conn)

    async def shutdown(self) -> None:
        """Release engine resources (the PostgreSQL pool)."""
        await self.adapter.shutdown()

    def codec(self) -> ValueCodec:
        return ValueCodec(self.adapter, self.conn)

    def query_builder(self, table_prefix: str | None = None) -> QueryBuilder:
        prefix = self.table_prefix if table_prefix is None else table_prefix
        return QueryBuilder(self.codec(), prefix)

    # -------------------------------------------------------------------------
    # Table registry
    # -------------------------------------------------------------------------

    def add_table(self, table_class: type[Table]) -> Table:
        """Instantiate table_class on this gateway and register it by name."""
        if not getattr(table_class, "name", None):
            raise ValueError(f"Table class {table_class.__name__} must define 'name'")
        table = table_class(self)
        self.tables[table.name] = table
        return table

    def discover(self, *packages: str) -> list[Table]:
        """Register the Table classes found in entity packages.

        Every sub-package ``<package>.<entity>`` may hold a ``table`` module;
        named Table subclasses defined there are collected. A subclass wins
        over its base when both declare the same table name, including a
        class already registered.

        Returns:
            Tables registered or replaced by this call.
        """
        chosen: dict[str, type[Table]] = {}
        for package_path in packages:
            for candidate in self._find_table_classes(package_path):
                current = chosen.get(candidate.name)
                if current is None or issubclass(candidate, current):
                    chosen[candidate.name] = candidate

        registered: list[Table] = []
        for name, table_class in chosen.items():
            known = self.tables.get(name)
            if known is None:
                registered.append(self.add_table(table_class))
                continue
            known_class = type(known)
            if table_class is not known_class and issubclass(table_class, known_class):
                registered.append(self.add_table(table_class))
        return registered

    def table(self, name: str) -> Table:
        """Registered table by name.

        Raises:
            ValueError: If no table with that name was registered.
        """
        try:
            return self.tables[name]
        except KeyError:
            raise ValueError(f"Table '{name}' not registered. Use add_table() first.") from None

    async def check_structure(self) -> None:
        """Create every registered table missing from the database."""
        for table in self.tables.values():
            await table.create_schema()

    # -------------------------------------------------------------------------
    # Raw statements on the current connection
    # -------------------------------------------------------------------------

    @contextmanager
    def _engine_errors(self, query: str | None) -> Iterator[None]:
        try:
            yield
        except self.adapter.driver_errors as e:
            code = self.adapter.error_code(e)
            logger.debug("SQL error %s: %s", code, e)
            raise SqlDbError(str(e), code, query) from e

    async def execute(self, query: str, params: dict[str, Any] | None = None) -> int:
        """Run a statement; returns the affected row count."""
        logger.debug("SQL: %s", query)
        with self._engine_errors(query):
            return await self.adapter.execute(self.conn, query, params)

    async def fetch_one(
        self, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        logger.debug("SQL: %s", query)
        with self._engine_errors(query):
            return await self.adapter.fetch_one(self.conn, query, params)

    async def fetch_all(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        logger.debug("SQL: %s", query)
        with self._engine_errors(query):
            return await self.adapter.fetch_all(self.conn, query, params)

    async def execute_script(self, script: str) -> None:
        with self._engine_errors(script):
            await self.adapter.execute_script(self.conn, script)

    async def commit(self) -> None:
        with self._engine_errors(None):
            await self.adapter.commit(self.conn)

    async def rollback(self) -> None:
        with self._engine_errors(None):
            await self.adapter.rollback(self.conn)
    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def cache_key(self, operation: str, *args: Any, table_prefix: str | None = None) -> str:
        """Return a deterministic cache key for an operation and its arguments.

        The key covers the database identity and the table prefix, so two
        gateways on different databases never share entries.
        """
        prefix = self.table_prefix if table_prefix is None else table_prefix
        payload = json.dumps(
            [operation, self.adapter.identity(), prefix, list(args)],
            default=str,
            separators=(",", ":"),
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    # -------------------------------------------------------------------------
    # Structured statements
    # -------------------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        where: Where | None = None,
        sort: Sort | None = None,
        limit: Limit | None = None,
        *,
        use_cache: bool | None = None,
        table_prefix: str | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows, return list of dicts.

        Args:
            table: Table name (without prefix).
            columns: Columns to fetch, all when None.
            where: Filter mapping (see QueryBuilder).
            sort: Mapping column → "asc"/"desc", or a single column name.
            limit: Amount, or (skip, amount).
            use_cache: Override the gateway-wide use_cache for this call.
            table_prefix: Override the gateway table prefix for this call.
        """
        cached = self.use_cache if use_cache is None else use_cache
        key = None
        if cached and self.cache is not None:
            key = self.cache_key(
                "select",
                table,
                list(columns) if columns else None,
                where,
                sort,
                limit,
                table_prefix=table_prefix,
            )
            hit = self.cache.get(key)
            if hit is not None:
                logger.debug("cache hit for select on %s", table)
                return [dict(row) for row in hit]

        query = self.query_builder(table_prefix).select(table, columns, where, sort, limit)
        rows = await self.fetch_all(query)
        if key is not None:
            self.cache.set(key, [dict(row) for row in rows])
        return rows

    async def select_one(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        where: Where | None = None,
        **kwargs: Any,
    ) -> dict[str, Any] | None:
        """Select single row, return dict or None."""
        rows = await self.select(table, columns, where, limit=1, **kwargs)
        return rows[0] if rows else None

    async def count(
        self, table: str, where: Where | None = None, *, table_prefix: str | None = None
    ) -> int:
        """Count rows in table."""
        result = await self.fetch_one(self.query_builder(table_prefix).count(table, where))
        return int(result["cnt"]) if result else 0

    async def exists(
        self, table: str, where: Where | None = None, *, table_prefix: str | None = None
    ) -> bool:
        """Check if at least one row matches."""
        row = await self.select_one(table, None, where, table_prefix=table_prefix)
        return row is not None

    async def insert(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        replace: bool = False,
        ignore_duplicate: bool = False,
        table_prefix: str | None = None,
        pk_col: str | None = "id",
    ) -> int:
        """Insert a row and return the generated primary key.

        Args:
            table: Table name (without prefix).
            values: Column → value. Must not be empty.
            replace: Overwrite the row holding the same key.
            ignore_duplicate: Skip silently on key conflicts (returns 0).
            table_prefix: Override the gateway table prefix for this call.
            pk_col: Autoincrement column whose value is returned.

        Raises:
            ValueError: If values is empty.
            SqlDbError: If the engine rejects the statement.
        """
        query = self.query_builder(table_prefix).insert(
            table, values, replace=replace, ignore_duplicate=ignore_duplicate, pk_col=pk_col
        )
        logger.debug("SQL: %s", query)
        with self._engine_errors(query):
            return await self.adapter.execute_insert(self.conn, query, pk_col)

    async def replace(self, table: str, values: Mapping[str, Any], **kwargs: Any) -> int:
        """Insert or overwrite a row, return its primary key."""
        return await self.insert(table, values, replace=True, **kwargs)

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        where: Where | None,
        *,
        all_rows: bool = False,
        table_prefix: str | None = None,
    ) -> int:
        """Update rows, return affected row count.

        Raises:
            ValueError: If values is empty, or where is empty without all_rows=True.
        """
        if not where and not all_rows:
            raise ValueError("update requires a where filter (or all_rows=True)")
        query = self.query_builder(table_prefix).update(table, values, where)
        return await self.execute(query)

    async def delete(
        self,
        table: str,
        where: Where | None,
        *,
        all_rows: bool = False,
        table_prefix: str | None = None,
    ) -> int:
        """Delete rows, return affected row count.

        Raises:
            ValueError: If where is empty without all_rows=True.
        """
        if not where and not all_rows:
            raise ValueError("delete requires a where filter (or all_rows=True)")
        query = self.query_builder(table_prefix).delete(table, where)
        return await self.execute(query)

    # -------------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------------

    def _find_table_classes(self, package_path: str) -> list[type[Table]]:
        from ..model.table import Table

        try:
            package = importlib.import_module(package_path)
        except ImportError:
            logger.warning("Entity package '%s' not importable", package_path)
            return []

        found: list[type[Table]] = []
        for entity in pkgutil.iter_modules(getattr(package, "__path__", None) or []):
            if not entity.ispkg:
                continue
            module_name = f"{package_path}.{entity.name}.table"
            try:
                module = importlib.import_module(module_name)
            except ModuleNotFoundError as e:
                # entity without a table module; errors from inside it propagate
                if e.name != module_name:
                    raise
                continue
            found.extend(
                obj
                for attr, obj in vars(module).items()
                if not attr.startswith("_")
                and isinstance(obj, type)
                and issubclass(obj, Table)
                and obj is not Table
                and getattr(obj, "name", None)
            )
        return found


__all__ = ["SqlDb", "SqlDbError"]
