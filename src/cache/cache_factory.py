# src/cache/cache_factory.py — v3
"""Factory for cache store instantiation."""

from __future__ import annotations

from portfolio_ai.cache.base_cache_store import BaseCacheStore
from portfolio_ai.config.settings import Settings


def create_cache_store(settings: Settings | None = None) -> BaseCacheStore:
    """Instantiate the configured cache backend.

    Args:
        settings: Application settings. Defaults to the memory backend.

    Returns:
        Configured BaseCacheStore implementation.
    """
    backend = "memory" if settings is None else settings.cache_backend

    if backend == "memory":
        from portfolio_ai.cache.memory_store import MemoryCacheStore
        return MemoryCacheStore()

    if backend == "json":
        from portfolio_ai.cache.json_store import JsonCacheStore
        return JsonCacheStore(cache_root=settings.cache_root)

    if backend == "sqlite":
        from portfolio_ai.cache.sqlite_store import SqliteCacheStore
        db_path = settings.cache_root.expanduser() / "portfolio_ai_cache.db"
        return SqliteCacheStore(db_path=db_path)

    raise ValueError(f"Unsupported cache backend: {backend!r}")
