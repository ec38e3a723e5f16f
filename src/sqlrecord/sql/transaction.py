# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Reentrant unit of work shared by nested record operations.

Each ``async with db.connection()`` block owns one UnitOfWork (carried in
a contextvar next to the connection). Record operations bracket their
writes with begin()/commit(); nested operations only move the depth
counter. The outermost begin() opens a savepoint, so a rollback at any
depth undoes the whole nest and nothing written before it in the block.
The connection is committed when the outermost operation completes.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .sqldb import SqlDb

logger = logging.getLogger(__name__)

SAVEPOINT = "sqlrecord_uow"


class UnitOfWork:
    """Depth counter bound to the connection of the current context.

    Attributes:
        db: Database whose current connection is committed/rolled back.
        depth: Number of begin() calls not yet matched by commit().
    """

    def __init__(self, db: SqlDb) -> None:
        self.db = db
        self.depth = 0

    @property
    def active(self) -> bool:
        return self.depth > 0

    async def begin(self) -> None:
        """Enter one nesting level; the outermost one sets the savepoint."""
        if self.depth == 0:
            await self.db.execute(f"SAVEPOINT {SAVEPOINT}")
        self.depth += 1
        logger.debug("unit of work begin (depth=%d)", self.depth)

    async def commit(self, before_commit: Callable[[], Awaitable[None]] | None = None) -> bool:
        """Leave one nesting level, committing when the outermost level completes.

        Args:
            before_commit: Awaited just before the real commit (outermost level only).

        Returns:
            True if the connection was committed, False if still nested.

        Raises:
            RuntimeError: If there is no matching begin().
        """
        if self.depth <= 0:
            raise RuntimeError("commit() without matching begin()")
        if self.depth > 1:
            self.depth -= 1
            logger.debug("unit of work release (depth=%d)", self.depth)
            return False
        # depth stays 1 until the commit succeeds so a failure here can still roll back
        if before_commit is not None:
            await before_commit()
        await self.db.execute(f"RELEASE SAVEPOINT {SAVEPOINT}")
        await self.db.commit()
        self.depth = 0
        logger.debug("unit of work committed")
        return True

    async def rollback(self) -> None:
        """Undo everything since the outermost begin() and reset the depth to zero."""
        from .sqldb import SqlDbError

        if self.depth <= 0:
            return
        depth, self.depth = self.depth, 0
        try:
            await self.db.execute(f"ROLLBACK TO SAVEPOINT {SAVEPOINT}")
            await self.db.execute(f"RELEASE SAVEPOINT {SAVEPOINT}")
        except SqlDbError as e:
            # savepoint already gone (a hook committed or the engine aborted)
            logger.warning("savepoint rollback failed (%s), rolling back the connection", e)
            await self.db.rollback()
        logger.debug("unit of work rolled back at depth %d", depth)
