# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for config loading and RecordApp wiring."""

from __future__ import annotations

import pytest

from sqlrecord import RecordApp, SqlRecordConfig, config_from_env

ENV_VARS = (
    "SQLRECORD_DB",
    "SQLRECORD_TABLE_PREFIX",
    "SQLRECORD_USE_CACHE",
    "SQLRECORD_CACHE_MAX_SIZE",
    "SQLRECORD_CACHE_TTL",
    "SQLRECORD_ENTITIES",
    "SQLRECORD_LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


class TestConfigFromEnv:
    """Tests for config_from_env()."""

    def test_defaults(self, clean_env):
        config = config_from_env()
        assert config == SqlRecordConfig()
        assert config.db_path == "./sqlrecord.db"
        assert config.use_cache is False
        assert config.entity_packages == []

    def test_values(self, clean_env):
        clean_env.setenv("SQLRECORD_DB", "/data/app.db")
        clean_env.setenv("SQLRECORD_TABLE_PREFIX", "app_")
        clean_env.setenv("SQLRECORD_USE_CACHE", "TRUE")
        clean_env.setenv("SQLRECORD_CACHE_MAX_SIZE", "50")
        clean_env.setenv("SQLRECORD_CACHE_TTL", "5")
        clean_env.setenv("SQLRECORD_ENTITIES", "a.entities, b.entities,")
        clean_env.setenv("SQLRECORD_LOG_LEVEL", "debug")
        config = config_from_env()
        assert config.db_path == "/data/app.db"
        assert config.table_prefix == "app_"
        assert config.use_cache is True
        assert config.cache_max_size == 50
        assert config.cache_ttl_seconds == 5
        assert config.entity_packages == ["a.entities", "b.entities"]
        assert config.log_level == "DEBUG"


class TestRecordApp:
    """Tests for RecordApp."""

    def test_wiring(self, db_path: str):
        config = SqlRecordConfig(db_path=db_path, table_prefix="t_", use_cache=True)
        app = RecordApp(config)
        assert app.db.cache is app.cache
        assert app.db.table_prefix == "t_"
        assert app.db.use_cache is True
        assert app.db.tables == {}

    async def test_discover_and_init(self, db_path: str, entity_package: str):
        app = RecordApp(
            SqlRecordConfig(db_path=db_path, table_prefix="t_", entity_packages=[entity_package])
        )
        assert list(app.db.tables) == ["notes"]
        await app.init()
        async with app.db.connection():
            note = await app.db.table("notes").create({"title": "first"})
            assert note.id == 1
            assert await app.db.count("notes") == 1
            row = await app.db.fetch_one('SELECT COUNT(*) AS n FROM "t_notes"')
            assert row == {"n": 1}
        await app.shutdown()

    async def test_missing_entity_package_is_skipped(self, db_path: str, caplog):
        app = RecordApp(SqlRecordConfig(db_path=db_path, entity_packages=["not_a_real_pkg"]))
        assert app.db.tables == {}
        assert "not importable" in caplog.text
