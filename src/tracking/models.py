# src/tracking/models.py — v2
"""Tracking domain models: CallLogEntry, CallTokens, ModelPricing."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class CallTokens(BaseModel):
    prompt: int | None = None
    completion: int | None = None
    total: int | None = None


class CallLogEntry(BaseModel):
    """One orchestration attempt: rejection, cache hit, success or failure."""

    id: str
    timestamp: datetime
    provider: str
    feature: str
    model: str | None = None
    cached: bool = False
    ok: bool
    message: str | None = None
    error: str | None = None
    tokens: CallTokens | None = None
    cost_usd: float | None = None
    duration_ms: float | None = None
    cache_key: str | None = None


class ModelPricing(BaseModel):
    """Per-1M-token pricing for every model whose id starts with ``prefix``."""

    prefix: str
    input_price_per_1m: float
    output_price_per_1m: float
