# tests/unit/cache/test_unit_sqlite_store.py — v2
"""Tests for cache/sqlite_store.py — persistence and corrupt rows."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from portfolio_ai.cache.models import CachedResponse
from portfolio_ai.cache.sqlite_store import SqliteCacheStore
from portfolio_ai.llm.models import AiFeature, ProviderId, ProviderOk

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _value() -> CachedResponse:
    return CachedResponse(
        response=ProviderOk(text="persisted", model="gpt-5"),
        cached_at=T0,
        feature=AiFeature.RESEARCH,
        model="gpt-5",
        provider=ProviderId.OPENAI,
    )


class TestSqliteCacheStore:
    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path):
        db = tmp_path / "nested" / "cache.db"
        store = SqliteCacheStore(db)
        await store.set("k1", _value(), ttl_sec=600, now=T0)
        store.close()

        reopened = SqliteCacheStore(db)
        entry = await reopened.get("k1", now=T0)
        assert entry.value.response.text == "persisted"
        reopened.close()

    @pytest.mark.asyncio
    async def test_corrupt_row_reads_as_miss(self, tmp_path):
        store = SqliteCacheStore(tmp_path / "cache.db")
        store._conn.execute(
            "INSERT INTO cache_entries (key, data, expires_at) VALUES (?, ?, ?)",
            ("bad", "{not json", "2999-01-01T00:00:00+00:00"),
        )
        store._conn.commit()
        assert await store.load("bad") is None
        assert await store.list_entries() == []
        store.close()
