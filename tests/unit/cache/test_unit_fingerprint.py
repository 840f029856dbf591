# tests/unit/cache/test_unit_fingerprint.py — v1
"""Tests for cache/fingerprint.py — stable request cache keys."""

from __future__ import annotations

import hashlib
import json

from portfolio_ai.cache.fingerprint import canonical_request, compute_cache_key
from portfolio_ai.llm.models import AiFeature, Message, ProviderId

MESSAGES = [Message(role="user", content="Café allocation?")]


def _key(**overrides) -> str:
    values = {
        "provider": ProviderId.OPENAI,
        "model": "gpt-5-mini",
        "feature": AiFeature.CHAT,
        "system": "sys",
        "messages": MESSAGES,
    }
    values.update(overrides)
    return compute_cache_key(**values)


class TestComputeCacheKey:
    def test_deterministic(self):
        assert _key() == _key()
        assert len(_key()) == 64

    def test_matches_canonical_hash(self):
        text = canonical_request(ProviderId.OPENAI, "gpt-5-mini", AiFeature.CHAT, "sys", MESSAGES)
        assert _key() == hashlib.sha256(text.encode("utf-8")).hexdigest()

    def test_canonical_form(self):
        text = canonical_request(ProviderId.OPENAI, "gpt-5-mini", AiFeature.CHAT, None, MESSAGES)
        assert " " not in text.replace("Café allocation?", "")
        assert "Café" in text
        assert list(json.loads(text)) == ["feature", "messages", "model", "provider", "system"]

    def test_every_field_changes_key(self):
        base = _key()
        assert _key(provider=ProviderId.XAI) != base
        assert _key(model="gpt-5") != base
        assert _key(feature=AiFeature.INSIGHTS) != base
        assert _key(system=None) != base
        assert _key(messages=[Message(role="user", content="Other")]) != base
