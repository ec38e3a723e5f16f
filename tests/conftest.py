# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Shared fixtures: SQLite databases in tmp_path and sample tables.

Connection model:
- Fixtures create the schema inside their own `async with db.connection()`
  block and yield the SqlDb with no connection open.
- Tests open `async with db.connection():` themselves, so the connection
  and its UnitOfWork live in the test's own context.
"""

from __future__ import annotations

import sys
from collections.abc import AsyncGenerator, Iterator

import pytest
import pytest_asyncio

from sqlrecord import InMemoryCache, Integer, SqlDb, String, Table
from sqlrecord.sql.adapters import SqliteAdapter


class PeopleTable(Table):
    """id (generated), name (mandatory, unique), age (default 0)."""

    name = "people"
    pkey = "id"

    def configure(self) -> None:
        c = self.columns
        c.column("id", Integer, insert=False, update=False)
        c.column("name", "varchar", mandatory=True, unique=True)
        c.column("age", Integer, default=0)


class MembersTable(Table):
    """Table with a composite unique index, bookkeeping and hidden columns."""

    name = "members"
    pkey = "id"
    unique_indexes = (("first_name", "last_name"),)
    transients = {"score": float}

    def configure(self) -> None:
        c = self.columns
        c.column("id", Integer, insert=False, update=False)
        c.column("first_name", String)
        c.column("last_name", String)
        c.column("email", String, unique=True)
        c.column("note", String, update=False)
        c.column("internal", String, insert=False, update=False, select=False)
        c.column("insert_ts", String, insert=False, update=False)
        c.column("update_ts", String, insert=False, update=False)
        c.column("deleted", Integer, insert=False)
        c.column("delete_ts", String, insert=False, update=False)


class CountingSqliteAdapter(SqliteAdapter):
    """SqliteAdapter recording commit/rollback calls."""

    def __init__(self, db_path: str):
        super().__init__(db_path)
        self.commits = 0
        self.rollbacks = 0

    async def commit(self, conn) -> None:
        self.commits += 1
        await super().commit(conn)

    async def rollback(self, conn) -> None:
        self.rollbacks += 1
        await super().rollback(conn)


@pytest.fixture
def db_path(tmp_path) -> str:
    """Absolute path of a fresh SQLite file."""
    return str(tmp_path / "test.db")


@pytest_asyncio.fixture
async def db(db_path: str) -> AsyncGenerator[SqlDb, None]:
    """SqlDb with people and members tables created, cache attached but off."""
    sqldb = SqlDb(db_path, cache=InMemoryCache())
    sqldb.adapter = CountingSqliteAdapter(db_path)
    sqldb.add_table(PeopleTable)
    sqldb.add_table(MembersTable)
    async with sqldb.connection():
        await sqldb.check_structure()
    yield sqldb
    await sqldb.shutdown()


NOTES_TABLE_MODULE = '''
from sqlrecord import Integer, String, Table


class NotesTable(Table):
    name = "notes"

    def configure(self):
        c = self.columns
        c.column("id", Integer, insert=False, update=False)
        c.column("title", String, mandatory=True, unique=True)
        c.column("body", String)
'''


@pytest.fixture
def entity_package(tmp_path, monkeypatch) -> Iterator[str]:
    """Importable package 'demo_entities' with a notes/table.py entity module."""
    root = tmp_path / "pkgs"
    pkg = root / "demo_entities"
    (pkg / "notes").mkdir(parents=True)
    (pkg / "__init__.py").write_text("")
    (pkg / "notes" / "__init__.py").write_text("")
    (pkg / "notes" / "table.py").write_text(NOTES_TABLE_MODULE)
    monkeypatch.syspath_prepend(str(root))
    yield "demo_entities"
    for name in [m for m in sys.modules if m.split(".")[0] == "demo_entities"]:
        del sys.modules[name]
