# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration dataclass and environment loader.

Configuration via environment variables:
    SQLRECORD_DB: Database path (SQLite file or PostgreSQL URL)
    SQLRECORD_TABLE_PREFIX: Prefix prepended to every table name
    SQLRECORD_USE_CACHE: Cache select() results (default: false)
    SQLRECORD_CACHE_MAX_SIZE: Maximum cached entries (default: 1000)
    SQLRECORD_CACHE_TTL: Cache entry lifetime in seconds (default: 300)
    SQLRECORD_ENTITIES: Comma-separated entity packages to discover
    SQLRECORD_LOG_LEVEL: Logging level for the CLI (default: WARNING)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

_TRUE = ("1", "true", "yes")


@dataclass
class SqlRecordConfig:
    """Settings for a RecordApp.

    Attributes:
        db_path: SQLite path or PostgreSQL URL.
        table_prefix: Prefix prepended to every table name.
        use_cache: Consult the result cache on every select().
        cache_max_size: Maximum entries of the in-memory cache.
        cache_ttl_seconds: Lifetime of cached query results.
        entity_packages: Packages scanned for ``<entity>/table.py`` modules.
        log_level: Logging level name used by the CLI.
    """

    db_path: str = "./sqlrecord.db"
    table_prefix: str = ""
    use_cache: bool = False
    cache_max_size: int = 1000
    cache_ttl_seconds: int = 300
    entity_packages: list[str] = field(default_factory=list)
    log_level: str = "WARNING"


def config_from_env() -> SqlRecordConfig:
    """Build SqlRecordConfig from SQLRECORD_* environment variables."""
    entities = os.environ.get("SQLRECORD_ENTITIES", "")
    return SqlRecordConfig(
        db_path=os.environ.get("SQLRECORD_DB", "./sqlrecord.db"),
        table_prefix=os.environ.get("SQLRECORD_TABLE_PREFIX", ""),
        use_cache=os.environ.get("SQLRECORD_USE_CACHE", "").lower() in _TRUE,
        cache_max_size=int(os.environ.get("SQLRECORD_CACHE_MAX_SIZE", "1000")),
        cache_ttl_seconds=int(os.environ.get("SQLRECORD_CACHE_TTL", "300")),
        entity_packages=[p.strip() for p in entities.split(",") if p.strip()],
        log_level=os.environ.get("SQLRECORD_LOG_LEVEL", "WARNING").upper(),
    )


__all__ = ["SqlRecordConfig", "config_from_env"]
