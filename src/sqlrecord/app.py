# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Application wiring: config → cache → SqlDb → discovered tables.

Usage:
    # From environment:
    app = RecordApp(config_from_env())

    # Explicit configuration:
    app = RecordApp(SqlRecordConfig(db_path="/data/app.db", entity_packages=["myapp.entities"]))
    await app.init()

    async with app.db.connection():
        user = await app.db.table("users").create({"name": "Ann"})

    await app.shutdown()
"""

from __future__ import annotations

import logging

from .cache import InMemoryCache
from .config import SqlRecordConfig
from .sql import SqlDb

logger = logging.getLogger(__name__)


class RecordApp:
    """Holds the configuration, the result cache and the database.

    Attributes:
        config: SqlRecordConfig instance.
        cache: InMemoryCache shared by query results and last-update markers.
        db: SqlDb with the tables discovered from config.entity_packages.
    """

    def __init__(self, config: SqlRecordConfig | None = None):
        self.config = config or SqlRecordConfig()
        self.cache = InMemoryCache(
            max_size=self.config.cache_max_size,
            default_ttl_seconds=self.config.cache_ttl_seconds,
        )
        self.db = SqlDb(
            self.config.db_path,
            table_prefix=self.config.table_prefix,
            use_cache=self.config.use_cache,
            cache=self.cache,
        )
        if self.config.entity_packages:
            registered = self.db.discover(*self.config.entity_packages)
            logger.debug("registered tables: %s", [t.name for t in registered])

    async def init(self) -> None:
        """Create the registered tables inside one transaction."""
        async with self.db.connection():
            await self.db.check_structure()

    async def shutdown(self) -> None:
        """Close database pool/connection."""
        await self.db.shutdown()


__all__ = ["RecordApp"]
