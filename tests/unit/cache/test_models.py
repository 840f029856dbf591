# tests/unit/cache/test_models.py — v2
"""Tests for cache/models.py — entry expiry."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from portfolio_ai.cache.models import CacheEntry, CachedResponse
from portfolio_ai.llm.models import AiFeature, ProviderId, ProviderOk

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _entry(ttl: int) -> CacheEntry:
    value = CachedResponse(
        response=ProviderOk(text="cached", model="gpt-5-mini"),
        cached_at=T0,
        feature=AiFeature.INSIGHTS,
        model="gpt-5-mini",
        provider=ProviderId.OPENAI,
    )
    return CacheEntry(key="k", value=value, created_at=T0, ttl_sec=ttl)


class TestCacheEntry:
    def test_expires_at(self):
        assert _entry(600).expires_at == T0 + timedelta(seconds=600)

    def test_live_before_deadline(self):
        assert _entry(600).is_expired(T0 + timedelta(seconds=599)) is False

    def test_expired_at_deadline(self):
        assert _entry(600).is_expired(T0 + timedelta(seconds=600)) is True

    def test_json_round_trip_keeps_response(self):
        entry = _entry(60)
        restored = CacheEntry.model_validate_json(entry.model_dump_json())
        assert restored.value.response.text == "cached"
        assert restored.value.provider is ProviderId.OPENAI
