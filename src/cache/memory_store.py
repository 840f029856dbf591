# src/cache/memory_store.py — v1
"""In-process cache store (default CACHE_BACKEND=memory)."""

from __future__ import annotations

from portfolio_ai.cache.base_cache_store import BaseCacheStore
from portfolio_ai.cache.models import CacheEntry


class MemoryCacheStore(BaseCacheStore):
    """Dictionary-backed cache store; contents die with the process."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    async def load(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    async def put(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def list_entries(self) -> list[CacheEntry]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)
