# src/llm/adapters/xai_adapter.py — v1
"""xAI Grok adapter.

xAI speaks the OpenAI chat-completions dialect, so this reuses the
OpenAI adapter with a different endpoint. The research feature may
request Live Search.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel

from portfolio_ai.llm.adapters.openai_adapter import ChatCompletionResponse, OpenAIAdapter
from portfolio_ai.llm.models import AiFeature, ProviderId, ProviderRequest, RecommendedModels

XAI_BASE_URL = "https://api.x.ai/v1"

DEFAULT_MODELS = [
    RecommendedModels(
        feature=AiFeature.CHAT,
        defaults=["grok-4"],
        all=["grok-4", "grok-4-fast"],
        note="General portfolio Q&A and conversations.",
    ),
    RecommendedModels(
        feature=AiFeature.INSIGHTS,
        defaults=["grok-4-fast"],
        all=["grok-4-fast", "grok-4"],
        note="Fast summaries and analysis.",
    ),
    RecommendedModels(
        feature=AiFeature.RESEARCH,
        defaults=["grok-4"],
        all=["grok-4", "grok-4-fast"],
        note="Deeper synthesis with optional Live Search.",
    ),
]


class XAIAdapter(OpenAIAdapter):
    """xAI Grok adapter (OpenAI-compatible wire format)."""

    provider: ClassVar[ProviderId] = ProviderId.XAI
    vendor_name: ClassVar[str] = "xAI"
    api_key_env: ClassVar[str] = "XAI_API_KEY"
    recommended_models: ClassVar[list[RecommendedModels]] = DEFAULT_MODELS
    response_model: ClassVar[type[BaseModel]] = ChatCompletionResponse

    default_base_url: ClassVar[str | None] = XAI_BASE_URL
    max_tokens_field: ClassVar[str] = "max_tokens"
    reads_output_text: ClassVar[bool] = False

    def _build_body(
        self,
        request: ProviderRequest,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
    ) -> dict[str, Any]:
        body = super()._build_body(request, messages, tools)
        if request.feature is AiFeature.RESEARCH and request.web_search:
            # Not a named SDK parameter; sent verbatim in the JSON body
            body["extra_body"] = {"live_search": True}
        return body
