# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Engine adapter contract shared by the SQLite and PostgreSQL backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class DbAdapter(ABC):
    """One database engine: connections, statement execution and dialect rules.

    SqlDb owns the connection lifecycle (one connection per
    ``async with db.connection()`` block) and passes the connection back to
    every call. Adapters only know how to talk to their engine:

    - connections: acquire(), release(), shutdown()
    - transactions: commit(), rollback()
    - execution: execute(), fetch_one(), fetch_all(), execute_script(),
      execute_insert()
    - dialect: escape_string(), insert_statement(), pk_column(),
      limit_clause(), zero_datetime
    - errors: driver_errors, error_code()

    Attributes:
        name: Engine name, also the default identity() for cache keys.
        zero_datetime: Literal stored for "no timestamp" bookkeeping values.
    """

    name: str = ""
    zero_datetime: str = "0000-00-00 00:00:00"

    def identity(self) -> str:
        """Identify the target database without credentials."""
        return self.name

    # -------------------------------------------------------------------------
    # Dialect
    # -------------------------------------------------------------------------

    def _sql_name(self, name: str) -> str:
        """Quote an identifier, doubling embedded quotes."""
        return '"' + name.replace('"', '""') + '"'

    def pk_column(self, name: str) -> str:
        """Column definition of an autoincrement integer primary key."""
        return f"{self._sql_name(name)} INTEGER PRIMARY KEY"

    def limit_clause(self, skip: int, amount: int) -> str:
        clause = f"LIMIT {int(amount)}"
        return f"{clause} OFFSET {int(skip)}" if skip else clause

    @abstractmethod
    def escape_string(self, conn: Any, value: str) -> str:
        """Return value as a quoted string literal, escaped for conn."""

    @abstractmethod
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
        """Build an INSERT statement.

        Args:
            table: Table name, already quoted and prefixed.
            columns: Column names, unquoted.
            literals: Rendered SQL literals in the same order as columns.
            replace: Overwrite the row holding the same key.
            ignore_duplicate: Write nothing when a key already exists.
            pk_col: Generated key column (conflict target, returned id).
        """

    # -------------------------------------------------------------------------
    # Errors
    # -------------------------------------------------------------------------

    @property
    @abstractmethod
    def driver_errors(self) -> tuple[type[BaseException], ...]:
        """Exception classes the driver raises for failed statements."""

    @abstractmethod
    def error_code(self, exc: BaseException) -> int | str:
        """Engine error code carried by a driver exception."""

    # -------------------------------------------------------------------------
    # Connections and transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def acquire(self) -> Any:
        """Return a connection reserved for the caller (pooled or freshly opened)."""

    @abstractmethod
    async def release(self, conn: Any) -> None:
        """Give a connection back (to the pool, or close it)."""

    @abstractmethod
    async def shutdown(self) -> None:
        """Free engine-wide resources at application exit."""

    @abstractmethod
    async def commit(self, conn: Any) -> None: ...

    @abstractmethod
    async def rollback(self, conn: Any) -> None: ...

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    @abstractmethod
    async def execute(self, conn: Any, query: str, params: dict[str, Any] | None = None) -> int:
        """Run a statement and return the affected row count."""

    @abstractmethod
    async def fetch_one(
        self, conn: Any, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Run a query and return its first row, None when empty."""

    @abstractmethod
    async def fetch_all(
        self, conn: Any, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Run a query and return every row as a dict."""

    @abstractmethod
    async def execute_script(self, conn: Any, script: str) -> None:
        """Run several semicolon-separated statements."""

    @abstractmethod
    async def execute_insert(self, conn: Any, query: str, pk_col: str | None = "id") -> int:
        """Run a statement from insert_statement() and return the generated id.

        Returns 0 when no row was written.
        """
