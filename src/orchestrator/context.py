# src/orchestrator/context.py — v1
"""Explicit collaborators handed to the orchestrator.

Everything the orchestrator reads or writes lives here rather than in
module globals, so tests build a context with fakes and throw it away.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from portfolio_ai.cache.base_cache_store import BaseCacheStore
from portfolio_ai.cache.cache_factory import create_cache_store
from portfolio_ai.config.settings import Settings
from portfolio_ai.llm.base_client import BaseProviderAdapter
from portfolio_ai.llm.client_factory import create_provider_adapter
from portfolio_ai.llm.models import ProviderId
from portfolio_ai.tools.registry import ToolRegistry
from portfolio_ai.tracking.call_logger import CallLogger
from portfolio_ai.tracking.usage_ledger import (
    BaseUsageLedger,
    InMemoryUsageLedger,
    JsonUsageLedger,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OrchestratorContext:
    """Settings, stores and adapters for one orchestrator instance.

    Adapters missing from ``adapters`` are created on first use from
    ``settings`` and ``tool_registry``.
    """

    settings: Settings
    cache: BaseCacheStore
    ledger: BaseUsageLedger
    call_log: CallLogger
    tool_registry: ToolRegistry | None = None
    adapters: dict[ProviderId, BaseProviderAdapter] = field(default_factory=dict)
    clock: Callable[[], datetime] = _utcnow

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        tool_registry: ToolRegistry | None = None,
    ) -> OrchestratorContext:
        """Build stores from configuration."""
        ledger: BaseUsageLedger
        if settings.usage_ledger_path:
            ledger = JsonUsageLedger(settings.usage_ledger_path)
        else:
            ledger = InMemoryUsageLedger()
        return cls(
            settings=settings,
            cache=create_cache_store(settings),
            ledger=ledger,
            call_log=CallLogger(
                max_entries=settings.call_log_max_entries,
                path=settings.call_log_path,
            ),
            tool_registry=tool_registry,
        )

    def adapter_for(self, provider: ProviderId) -> BaseProviderAdapter:
        adapter = self.adapters.get(provider)
        if adapter is None:
            adapter = create_provider_adapter(provider, self.settings, self.tool_registry)
            self.adapters[provider] = adapter
        return adapter
