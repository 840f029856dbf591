# tests/integration/conftest.py — v8
"""Shared fixtures for integration tests.

Offline tests wire the real stack (registry, adapters, stores, call log)
around scripted SDK clients. Tests marked ``live`` talk to the real
vendor APIs and only run when the matching API key is exported.
"""

from __future__ import annotations

import os

import pytest

from portfolio_ai.api.facade import build_context
from portfolio_ai.llm.adapters.anthropic_adapter import AnthropicAdapter
from portfolio_ai.llm.adapters.openai_adapter import OpenAIAdapter
from portfolio_ai.llm.models import ProviderId


def pytest_configure(config):
    config.addinivalue_line("markers", "live: marks tests calling real vendor APIs")


@pytest.fixture
def live_key():
    """Reads an API key from the environment, skipping the test when absent."""

    def _key(env_var: str) -> str:
        key = os.environ.get(env_var, "").strip()
        if not key:
            pytest.skip(f"{env_var} not set")
        return key

    return _key


@pytest.fixture
def persistent_settings(settings_factory, tmp_path):
    """Settings with every store on disk under tmp_path."""
    return settings_factory(
        cache_backend="sqlite",
        cache_root=tmp_path / "cache",
        usage_ledger_path=tmp_path / "usage.json",
        call_log_path=tmp_path / "calls.jsonl",
        ai_logging_enabled=True,
    )


@pytest.fixture
def wire_openai(fixed_clock):
    """Attach a real OpenAIAdapter around a scripted client to a context."""

    def _wire(context, client):
        context.clock = fixed_clock
        context.adapters[ProviderId.OPENAI] = OpenAIAdapter(
            api_key=context.settings.openai_api_key,
            tool_registry=context.tool_registry,
            client=client,
        )
        return context

    return _wire


@pytest.fixture
def wire_anthropic(fixed_clock):
    def _wire(context, client):
        context.clock = fixed_clock
        context.adapters[ProviderId.ANTHROPIC] = AnthropicAdapter(
            api_key=context.settings.anthropic_api_key,
            tool_registry=context.tool_registry,
            client=client,
        )
        return context

    return _wire


@pytest.fixture
def app_context(persistent_settings, repository, research_launcher):
    return build_context(persistent_settings, repository, research_launcher)
