# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for Table bulk helpers: list conversion, sorting and indexing."""

from __future__ import annotations

import logging

import pytest
from conftest import PeopleTable

from sqlrecord import Record, SqlDb


class BadgedPerson(Record):
    """Record whose deep form embeds a computed badge."""

    async def to_dict_deep(self, hide_internals=False, fields=None):
        data = await super().to_dict_deep(hide_internals, fields)
        data["badge"] = f"#{self.id}"
        return data


class BadgedPeople(PeopleTable):
    record_class = BadgedPerson


@pytest.fixture
def people(db: SqlDb):
    table = db.table("people")
    rows = [
        {"id": 1, "name": "bob", "age": 30},
        {"id": 2, "name": "Ann", "age": 25},
        {"id": 3, "name": "carl", "age": 30},
        {"id": 4, "name": None, "age": 40},
    ]
    return table, [table.compose(r) for r in rows]


class TestRecordsToList:
    """Tests for records_to_list()."""

    async def test_converts_records(self, people):
        table, records = people
        assert await table.records_to_list(records[:2], fields=["name"]) == [
            {"name": "bob"},
            {"name": "Ann"},
        ]

    async def test_uses_deep_representation(self, db: SqlDb):
        """A record subclass overriding to_dict_deep() shapes the output."""
        table = db.add_table(BadgedPeople)
        records = [table.compose({"id": 7, "name": "Ann", "age": 3})]
        assert await table.records_to_list(records, hide_internals=True) == [
            {"id": 7, "name": "Ann", "age": 3, "badge": "#7"}
        ]

    async def test_skips_foreign_elements(self, db: SqlDb, people, caplog):
        """Non-records and records of other tables are skipped with a warning."""
        table, records = people
        foreign = db.table("members").compose({"id": 9})
        with caplog.at_level(logging.WARNING, logger="sqlrecord.model.table"):
            result = await table.records_to_list([records[0], {"id": 5}, foreign])
        assert [r["id"] for r in result] == [1]
        assert len(caplog.records) == 2


class TestSortRecords:
    """Tests for sort_records()."""

    def test_case_insensitive_with_none_first(self, people):
        table, records = people
        ordered = table.sort_records(records, key=lambda r: r.get("name"))
        assert [r.id for r in ordered] == [4, 2, 1, 3]

    def test_descending(self, people):
        table, records = people
        ordered = table.sort_records(records, key=lambda r: r.get("name"), descending=True)
        assert [r.id for r in ordered] == [3, 1, 2, 4]

    def test_stable(self, people):
        """Records with equal keys keep their input order."""
        table, records = people
        ordered = table.sort_records(records, key=lambda r: r.get("age"))
        assert [r.id for r in ordered] == [2, 1, 3, 4]

    def test_input_untouched(self, people):
        table, records = people
        table.sort_records(records, key=lambda r: r.get("age"))
        assert [r.id for r in records] == [1, 2, 3, 4]


class TestIndexing:
    """Tests for id_list(), field_values() and index_by()."""

    def test_id_list_and_field_values(self, people):
        table, records = people
        assert table.id_list(records) == [1, 2, 3, 4]
        assert table.field_values(records, "age") == [30, 25, 30, 40]

    def test_index_by_first_wins(self, people):
        table, records = people
        index = table.index_by(records, "age")
        assert sorted(index) == [25, 30, 40]
        assert index[30].id == 1

    def test_index_by_strict(self, people):
        table, records = people
        with pytest.raises(ValueError, match="Duplicate value"):
            table.index_by(records, "age", strict=True)
        assert len(table.index_by(records, "id", strict=True)) == 4

    def test_foreign_elements_skipped(self, db: SqlDb, people, caplog):
        table, records = people
        mixed = [records[1], db.table("members").compose({"id": 9}), "stray"]
        with caplog.at_level(logging.WARNING, logger="sqlrecord.model.table"):
            assert table.id_list(mixed) == [2]
            assert table.field_values(mixed, "name") == ["Ann"]
            assert list(table.index_by(mixed, "age")) == [25]
        assert len(caplog.records) == 6
        assert "id_list" in caplog.records[0].getMessage()
