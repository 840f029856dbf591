# src/llm/client_factory.py — v3
"""Factory: instantiate a provider adapter from a ProviderId.

The registry is indexed by the ProviderId enum and checked for
exhaustiveness at import time, so adding a vendor without an adapter
fails fast.
"""

from __future__ import annotations

import logging

from portfolio_ai.config.settings import Settings
from portfolio_ai.llm.adapters.anthropic_adapter import AnthropicAdapter
from portfolio_ai.llm.adapters.openai_adapter import OpenAIAdapter
from portfolio_ai.llm.adapters.xai_adapter import XAIAdapter
from portfolio_ai.llm.base_client import BaseProviderAdapter
from portfolio_ai.llm.models import ProviderId, RecommendedModels
from portfolio_ai.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_PROVIDER_REGISTRY: dict[ProviderId, type[BaseProviderAdapter]] = {
    ProviderId.OPENAI: OpenAIAdapter,
    ProviderId.ANTHROPIC: AnthropicAdapter,
    ProviderId.XAI: XAIAdapter,
}

_missing = set(ProviderId) - set(_PROVIDER_REGISTRY)
if _missing:
    raise RuntimeError(f"No adapter registered for: {sorted(p.value for p in _missing)}")


class UnsupportedProviderError(ValueError):
    """Raised when a provider name does not map to a ProviderId."""


def resolve_provider(name: str | ProviderId) -> ProviderId:
    """Normalize a provider name to its ProviderId.

    Raises:
        UnsupportedProviderError: If the name is not a known provider.
    """
    if isinstance(name, ProviderId):
        return name
    try:
        return ProviderId(name.strip().lower())
    except ValueError:
        raise UnsupportedProviderError(
            f"Unsupported AI provider: {name!r}. "
            f"Available: {', '.join(p.value for p in ProviderId)}"
        ) from None


def adapter_class(provider: str | ProviderId) -> type[BaseProviderAdapter]:
    return _PROVIDER_REGISTRY[resolve_provider(provider)]


def default_recommended_models(provider: str | ProviderId) -> list[RecommendedModels]:
    """Recommended models for a provider, without building an adapter."""
    return [m.model_copy(deep=True) for m in adapter_class(provider).recommended_models]


def create_provider_adapter(
    provider: str | ProviderId,
    settings: Settings,
    tool_registry: ToolRegistry | None = None,
) -> BaseProviderAdapter:
    """Instantiate the adapter for a provider.

    Args:
        provider: Provider identifier (openai, anthropic, xai).
        settings: Application settings (API keys, proxy, SDK limits).
        tool_registry: Tool catalog offered to tool-eligible features.

    Returns:
        Configured BaseProviderAdapter instance.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    provider_id = resolve_provider(provider)
    adapter_cls = _PROVIDER_REGISTRY[provider_id]
    logger.debug("Creating provider adapter: %s", provider_id.value)
    return adapter_cls(
        api_key=settings.api_key_for(provider_id),
        tool_registry=tool_registry,
        proxy_base_url=settings.ai_proxy_base_url,
        max_retries=settings.ai_sdk_max_retries,
        max_tokens=settings.ai_max_output_tokens,
    )
