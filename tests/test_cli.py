# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for the sqlrecord command-line interface."""

from __future__ import annotations

import json
import logging

import click
import pytest
from click.testing import CliRunner

from sqlrecord import __version__
from sqlrecord.cli import _parse_sort, _print_result, main


@pytest.fixture(autouse=True)
def restore_root_logging():
    """The CLI configures root logging; keep it from leaking into other tests."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def cli(db_path: str, entity_package: str, monkeypatch):
    """Invoke the CLI against a fresh database with the notes entity registered."""
    for var in ("SQLRECORD_DB", "SQLRECORD_TABLE_PREFIX", "SQLRECORD_ENTITIES"):
        monkeypatch.delenv(var, raising=False)
    runner = CliRunner()

    def invoke(*args: str):
        return runner.invoke(main, ["--db", db_path, "--entities", entity_package, *args])

    assert invoke("init").exit_code == 0
    return invoke


class TestHelpers:
    """Tests for option parsing and output helpers."""

    def test_parse_sort(self):
        assert _parse_sort(()) is None
        assert _parse_sort(("name", "age:desc")) == {"name": "ASC", "age": "DESC"}

    def test_parse_sort_invalid(self):
        with pytest.raises(click.BadParameter):
            _parse_sort(("name:sideways",))

    def test_print_empty_list(self, capsys):
        _print_result([])
        assert "No rows." in capsys.readouterr().out


class TestCommands:
    """End-to-end command runs on a SQLite file."""

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init_reports_tables(self, db_path: str, entity_package: str):
        result = CliRunner().invoke(main, ["--db", db_path, "--entities", entity_package, "init"])
        assert result.exit_code == 0
        assert "Checked 1 table(s)" in result.output
        assert "notes" in result.output

    def test_init_without_entities(self, db_path: str, monkeypatch):
        monkeypatch.delenv("SQLRECORD_ENTITIES", raising=False)
        result = CliRunner().invoke(main, ["--db", db_path, "init"])
        assert result.exit_code == 0
        assert "No tables registered" in result.output

    def test_insert_and_select_json(self, cli):
        assert "Inserted id 1" in cli("insert", "notes", "--set", '{"title": "a"}').output
        cli("insert", "notes", "--set", '{"title": "b", "body": "x"}')
        result = cli("select", "notes", "-c", "title", "--sort", "title:desc", "--json")
        assert result.exit_code == 0
        assert json.loads(result.stdout) == [{"title": "b"}, {"title": "a"}]

    def test_select_with_where_and_limit(self, cli):
        for title in ("a", "b", "c"):
            cli("insert", "notes", "--set", json.dumps({"title": title}))
        result = cli("select", "notes", "--sort", "id", "--limit", "1", "--skip", "1", "--json")
        assert [r["title"] for r in json.loads(result.stdout)] == ["b"]
        result = cli("select", "notes", "--where", '{"title": "c"}', "--json")
        assert [r["id"] for r in json.loads(result.stdout)] == [3]

    def test_select_table_output(self, cli):
        cli("insert", "notes", "--set", '{"title": "hello"}')
        result = cli("select", "notes")
        assert result.exit_code == 0
        assert "hello" in result.output

    def test_insert_ignore_duplicate(self, cli):
        cli("insert", "notes", "--set", '{"title": "a"}')
        result = cli("insert", "notes", "--set", '{"title": "a"}', "--ignore-duplicate")
        assert result.exit_code == 0
        assert "No row inserted" in result.output

    def test_engine_error(self, cli):
        cli("insert", "notes", "--set", '{"title": "a"}')
        result = cli("insert", "notes", "--set", '{"title": "a"}')
        assert result.exit_code == 1
        assert "database error" in result.output

    def test_update_and_delete(self, cli):
        cli("insert", "notes", "--set", '{"title": "a"}')
        result = cli("update", "notes", "--set", '{"body": "x"}', "--where", '{"id": 1}')
        assert "1 row(s) updated" in result.output
        result = cli("delete", "notes", "--all")
        assert "1 row(s) deleted" in result.output

    def test_delete_requires_filter(self, cli):
        result = cli("delete", "notes")
        assert result.exit_code == 2
        assert "--where or --all" in result.output

    def test_invalid_json(self, cli):
        result = cli("insert", "notes", "--set", "{not json")
        assert result.exit_code == 2
        assert "invalid JSON" in result.output

    def test_create_validates(self, cli):
        """create goes through the record lifecycle and reports error codes."""
        result = cli("create", "notes", "--set", '{"title": "a"}')
        assert result.exit_code == 0
        assert "title" in result.output
        result = cli("create", "notes", "--set", '{"title": "a"}')
        assert result.exit_code == 1
        assert "[-11]" in result.output
        result = cli("create", "notes", "--set", '{"body": "no title"}')
        assert "[-10]" in result.output

    def test_create_unknown_table(self, cli):
        result = cli("create", "ghosts", "--set", "{}")
        assert result.exit_code == 1
        assert "not registered" in result.output

    def test_tables_listing(self, cli):
        result = cli("tables")
        assert result.exit_code == 0
        assert "notes" in result.output
        assert "title" in result.output

    def test_db_from_environment(self, db_path: str, entity_package: str, monkeypatch):
        monkeypatch.setenv("SQLRECORD_DB", db_path)
        monkeypatch.setenv("SQLRECORD_ENTITIES", entity_package)
        runner = CliRunner()
        assert runner.invoke(main, ["init"]).exit_code == 0
        runner.invoke(main, ["insert", "notes", "--set", '{"title": "env"}'])
        result = runner.invoke(main, ["select", "notes", "-c", "title", "--json"])
        assert json.loads(result.stdout) == [{"title": "env"}]
