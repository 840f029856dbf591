# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides settings without .env loading, a small portfolio, a fixed
clock, scripted provider adapters, and fake SDK clients.
No network access — every vendor call is mocked.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from portfolio_ai.cache.memory_store import MemoryCacheStore
from portfolio_ai.config.settings import Settings
from portfolio_ai.llm.models import (
    AiFeature,
    AiUsage,
    ClientRequest,
    Message,
    ProviderId,
    ProviderOk,
)
from portfolio_ai.orchestrator.context import OrchestratorContext
from portfolio_ai.portfolio.memory_repository import InMemoryPortfolioRepository
from portfolio_ai.portfolio.models import (
    Category,
    Holding,
    PricePoint,
    ReportSection,
    ResearchReport,
    Transaction,
)
from portfolio_ai.tools.portfolio_tools import build_portfolio_registry
from portfolio_ai.tracking.call_logger import CallLogger
from portfolio_ai.tracking.usage_ledger import InMemoryUsageLedger

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def make_settings(**overrides: Any) -> Settings:
    """Settings bypassing env/.env loading and validators."""
    values: dict[str, Any] = {
        "ai_provider": "openai",
        "ai_model_chat": "gpt-5-mini",
        "ai_model_insights": "gpt-5-mini",
        "ai_model_research": "gpt-5",
        "openai_api_key": "sk-test",
        "anthropic_api_key": "sk-ant-test",
        "xai_api_key": "xai-test",
    }
    values.update(overrides)
    return Settings.model_construct(**values)


def make_holding(
    id: str,
    value: float,
    type: str = "stock",
    units: float = 1.0,
    **extra: Any,
) -> Holding:
    """Holding whose market value is ``value`` (units x price)."""
    fields: dict[str, Any] = {
        "id": id,
        "type": type,
        "name": extra.pop("name", id.upper()),
        "symbol": extra.pop("symbol", id.upper() if type == "stock" else None),
        "units": units,
        "price_per_unit": value / units if units else 0.0,
        "currency": "USD",
        "purchase_date": "2026-01-02",
        "created_at": "2026-01-02T00:00:00+00:00",
        "updated_at": "2026-01-02T00:00:00+00:00",
    }
    if type in ("cash", "real_estate"):
        fields["buy_value"] = value
    fields.update(extra)
    return Holding(**fields)


def openai_completion(
    text: str | None = "Hello",
    tool_calls: list[dict[str, Any]] | None = None,
    model: str = "gpt-5-mini",
    prompt_tokens: int = 100,
    completion_tokens: int = 50,
) -> dict[str, Any]:
    """Chat-completions response body as a plain dict."""
    message: dict[str, Any] = {"role": "assistant", "content": text}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {
        "id": "chatcmpl-test",
        "model": model,
        "choices": [{
            "index": 0,
            "message": message,
            "finish_reason": "tool_calls" if tool_calls else "stop",
        }],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }


def openai_tool_call(name: str, arguments: str = "{}", call_id: str = "call_1") -> dict[str, Any]:
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}


def fake_openai_client(*responses: Any) -> MagicMock:
    """SDK double: ``client.chat.completions.create`` returns responses in order."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=list(responses))
    return client


def fake_anthropic_client(*responses: Any) -> MagicMock:
    """SDK double: ``client.messages.create`` returns responses in order."""
    client = MagicMock()
    client.messages.create = AsyncMock(side_effect=list(responses))
    return client


# === FIXTURES: Settings / clock ===


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


# === FIXTURES: Portfolio ===


@pytest.fixture
def sample_categories() -> list[Category]:
    return [
        Category(id="cat-tech", name="Tech", sort_order=0),
        Category(id="cat-safe", name="Safe", sort_order=1),
    ]


@pytest.fixture
def sample_holdings() -> list[Holding]:
    """Three stocks worth 100/200/300 and two cash positions."""
    return [
        make_holding("aaa", 100, units=10, category_id="cat-tech"),
        make_holding("bbb", 200, units=4, category_id="cat-tech"),
        make_holding("ccc", 300, units=3),
        make_holding("cash-usd", 50, type="cash", category_id="cat-safe"),
        make_holding("cash-eur", 150, type="cash", category_id="cat-safe"),
    ]


@pytest.fixture
def sample_price_points() -> list[PricePoint]:
    return [
        PricePoint(id="pp1", holding_id="aaa", date_iso="2026-10-16", price_per_unit=9.5),
        PricePoint(id="pp2", holding_id="aaa", date_iso="2026-10-17", price_per_unit=10.0),
        PricePoint(id="pp3", holding_id="bbb", date_iso="2025-01-10", price_per_unit=40.0),
    ]


@pytest.fixture
def sample_transactions() -> list[Transaction]:
    return [
        Transaction(id="tx1", holding_id="aaa", date_iso="2026-01-02", delta_units=10,
                    price_per_unit=8.0),
    ]


@pytest.fixture
def sample_reports() -> list[ResearchReport]:
    return [
        ResearchReport(
            id="rep-1",
            subject_type="holding",
            subject_key="holding:aaa",
            subject_name="AAA Corp",
            created_at=datetime(2026, 9, 1, tzinfo=timezone.utc),
            model_id="gpt-5",
            status="completed",
            sections=[
                ReportSection(id="s1", title="Dividend outlook", order=0,
                              body_md="The dividend grew 8% last year.",
                              bullets=["Payout ratio near 40%"]),
                ReportSection(id="s2", title="Risks", order=1,
                              body_md="Competition in cloud margins is rising."),
            ],
        ),
    ]


@pytest.fixture
def repository(
    sample_holdings, sample_categories, sample_price_points, sample_transactions, sample_reports
) -> InMemoryPortfolioRepository:
    return InMemoryPortfolioRepository(
        holdings=sample_holdings,
        categories=sample_categories,
        price_points=sample_price_points,
        transactions=sample_transactions,
        research_reports=sample_reports,
    )


@pytest.fixture
def research_launcher() -> AsyncMock:
    launcher = AsyncMock()
    launcher.start = AsyncMock(return_value="job-123")
    return launcher


@pytest.fixture
def tool_registry(repository, research_launcher, fixed_clock):
    return build_portfolio_registry(repository, research_launcher, clock=fixed_clock)


# === FIXTURES: Orchestrator ===


@pytest.fixture
def ok_result() -> ProviderOk:
    return ProviderOk(
        text="Your portfolio is 60% stocks.",
        model="gpt-5-mini",
        usage=AiUsage(prompt_tokens=1000, completion_tokens=500, total_tokens=1500),
        raw={"id": "chatcmpl-1"},
    )


@pytest.fixture
def mock_adapter(ok_result) -> AsyncMock:
    """Provider adapter double returning ``ok_result``."""
    adapter = AsyncMock()
    adapter.respond = AsyncMock(return_value=ok_result)
    adapter.provider_id = ProviderId.OPENAI
    return adapter


@pytest.fixture
def context(settings, mock_adapter, fixed_clock) -> OrchestratorContext:
    return OrchestratorContext(
        settings=settings,
        cache=MemoryCacheStore(),
        ledger=InMemoryUsageLedger(),
        call_log=CallLogger(max_entries=50),
        adapters={ProviderId.OPENAI: mock_adapter},
        clock=fixed_clock,
    )


@pytest.fixture
def chat_request() -> ClientRequest:
    return ClientRequest(
        feature=AiFeature.CHAT,
        system="You are a portfolio assistant.",
        messages=[Message(role="user", content="How diversified am I?")],
    )


# === FIXTURES: Temp dirs ===


@pytest.fixture
def tmp_cache_dir(tmp_path: Path) -> Path:
    """Temporary cache directory."""
    cache = tmp_path / "cache"
    cache.mkdir()
    return cache


# === FIXTURES: Factories ===


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def holding_factory():
    return make_holding


@pytest.fixture
def completion():
    return openai_completion


@pytest.fixture
def tool_call():
    return openai_tool_call


@pytest.fixture
def openai_client_factory():
    return fake_openai_client


@pytest.fixture
def anthropic_client_factory():
    return fake_anthropic_client
