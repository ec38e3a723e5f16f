# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Result cache used by SqlDb for read queries and last-update markers.

The cache is an optimization only: it may return stale or absent values,
and a miss always falls through to a live query.

    CacheBackend (Protocol)
    └── InMemoryCache: single-process, bounded LRU with TTL

Any object with the same get/set/delete/exists/clear methods (for example
a thin wrapper around a Redis client) can be passed to SqlDb.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Any, Protocol


class CacheBackend(Protocol):
    """Protocol for cache backend implementations."""

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""
        ...

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value. ttl_seconds=None uses the backend default."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key (no-op if missing)."""
        ...

    def exists(self, key: str) -> bool:
        """Return True if the key is present and not expired."""
        ...

    def clear(self) -> None:
        """Remove all keys."""
        ...


class InMemoryCache:
    """Bounded in-memory cache with LRU eviction and TTL expiration.

    Expired entries are dropped lazily when read.

    Args:
        max_size: Maximum number of keys before the least recently used is evicted.
        default_ttl_seconds: TTL applied when set() gets none (None or 0 → no expiry).
    """

    def __init__(self, *, max_size: int = 1000, default_ttl_seconds: int | None = 300):
        self._store: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._max_size = max_size
        self._default_ttl = default_ttl_seconds

    def __len__(self) -> int:
        return len(self._store)

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and time.monotonic() > expires_at:
            del self._store[key]
            return None
        self._store.move_to_end(key)
        return value

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = (time.monotonic() + ttl) if ttl else None
        if key in self._store:
            self._store.move_to_end(key)
        elif len(self._store) >= self._max_size:
            self._store.popitem(last=False)
        self._store[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        self._store.clear()


__all__ = ["CacheBackend", "InMemoryCache"]
