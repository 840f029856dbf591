# src/api/facade.py — v2
"""Public API facade — single entry point for AI calls.

Usage:
    from portfolio_ai.api.facade import build_context, call_ai
    context = build_context(settings, repository)
    result = await call_ai(ClientRequest(feature=AiFeature.CHAT, messages=[...]), context)
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING

from portfolio_ai.config.settings import Settings, load_settings
from portfolio_ai.llm.models import ClientRequest, ClientResult
from portfolio_ai.orchestrator.client import AiOrchestrator
from portfolio_ai.orchestrator.context import OrchestratorContext
from portfolio_ai.tools.portfolio_tools import build_portfolio_registry

if TYPE_CHECKING:
    from portfolio_ai.portfolio.repository import BaseResearchLauncher, PortfolioRepository

logger = logging.getLogger(__name__)


def build_context(
    settings: Settings | None = None,
    repository: PortfolioRepository | None = None,
    research_launcher: BaseResearchLauncher | None = None,
) -> OrchestratorContext:
    """Assemble an orchestrator context from settings and collaborators.

    Args:
        settings: Global settings. Loaded from .env if None.
        repository: Portfolio repository backing the chat tools. Without
            one, no tools are offered to the model.
        research_launcher: Optional research job launcher for the
            run_research_report tool.

    Returns:
        OrchestratorContext with stores built from settings.
    """
    settings = settings or load_settings()
    registry = None
    if repository is not None:
        registry = build_portfolio_registry(repository, research_launcher)
        logger.debug("Tool registry ready: %s", ", ".join(registry.names))
    return OrchestratorContext.from_settings(settings, tool_registry=registry)


@lru_cache(maxsize=1)
def default_context() -> OrchestratorContext:
    """Process-wide context built from .env, created on first use."""
    return build_context()


async def call_ai(
    request: ClientRequest,
    context: OrchestratorContext | None = None,
) -> ClientResult:
    """Run one AI call and return its typed result.

    Args:
        request: Feature, transcript and per-call options.
        context: Orchestrator context. Uses default_context() if None.

    Returns:
        ClientOk or ClientErr; only cancellation raises.
    """
    return await AiOrchestrator(context or default_context()).call_ai(request)
