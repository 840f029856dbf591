# src/cache/fingerprint.py — v3
"""Stable cache key for AI requests.

Only the fields that change the answer take part: provider, model,
feature, system prompt and the message transcript. Streaming flags,
callbacks and cancellation tokens never do.
"""

from __future__ import annotations

import hashlib
import json

from portfolio_ai.llm.models import AiFeature, Message, ProviderId


def canonical_request(
    provider: ProviderId,
    model: str,
    feature: AiFeature,
    system: str | None,
    messages: list[Message],
) -> str:
    """Canonical JSON text hashed into the cache key."""
    payload = {
        "provider": provider.value,
        "model": model,
        "feature": feature.value,
        "system": system,
        "messages": [{"role": m.role, "content": m.content} for m in messages],
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_cache_key(
    provider: ProviderId,
    model: str,
    feature: AiFeature,
    system: str | None,
    messages: list[Message],
) -> str:
    """SHA-256 hex digest of the canonical request."""
    text = canonical_request(provider, model, feature, system, messages)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
