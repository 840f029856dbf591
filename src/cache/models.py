# src/cache/models.py — v2
"""Cache domain models: CachedResponse, CacheEntry."""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel

from portfolio_ai.llm.models import AiFeature, ProviderId, ProviderOk


class CachedResponse(BaseModel):
    """A successful provider result captured for replay."""

    response: ProviderOk
    cached_at: datetime
    feature: AiFeature
    model: str
    provider: ProviderId


class CacheEntry(BaseModel):
    """Single cache entry keyed by the request cache key."""

    key: str
    value: CachedResponse
    created_at: datetime
    ttl_sec: int

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.ttl_sec)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
