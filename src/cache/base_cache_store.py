# src/cache/base_cache_store.py — v2
"""Abstract cache store interface.

Backends implement raw load/put/delete/list; TTL handling is shared:
expired entries read as absent and are deleted on the way out.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from portfolio_ai.cache.models import CacheEntry, CachedResponse

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends."""

    @abstractmethod
    async def load(self, key: str) -> CacheEntry | None:
        """Retrieve an entry by key, regardless of expiry."""

    @abstractmethod
    async def put(self, entry: CacheEntry) -> None:
        """Store an entry (overwrites any entry with the same key)."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove an entry; missing keys are ignored."""

    @abstractmethod
    async def list_entries(self) -> list[CacheEntry]:
        """List all stored entries, expired ones included."""

    async def get(self, key: str, now: datetime | None = None) -> CacheEntry | None:
        """Retrieve a live entry; expired entries are deleted and read as absent."""
        entry = await self.load(key)
        if entry is None:
            return None
        if entry.is_expired(now or _utcnow()):
            await self.delete(key)
            return None
        return entry

    async def set(
        self,
        key: str,
        value: CachedResponse,
        ttl_sec: int,
        now: datetime | None = None,
    ) -> CacheEntry:
        entry = CacheEntry(key=key, value=value, created_at=now or _utcnow(), ttl_sec=ttl_sec)
        await self.put(entry)
        return entry

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete every expired entry. Returns the number removed."""
        now = now or _utcnow()
        removed = 0
        for entry in await self.list_entries():
            if entry.is_expired(now):
                await self.delete(entry.key)
                removed += 1
        if removed:
            logger.debug("Purged %d expired cache entries", removed)
        return removed
