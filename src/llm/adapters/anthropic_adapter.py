# src/llm/adapters/anthropic_adapter.py — v3
"""Anthropic Claude adapter implementing BaseProviderAdapter.

Uses the official anthropic SDK (Messages API). Anthropic has no
``system`` role inside the transcript: system-role messages are folded
into ``user`` turns and the system prompt travels as a top-level field.
Tool use comes back as ``tool_use`` content blocks; results go back as
one user turn of ``tool_result`` blocks.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar

import anthropic
from pydantic import BaseModel, ConfigDict

from portfolio_ai.llm.base_client import (
    BaseProviderAdapter,
    ProviderHTTPError,
    VendorToolCall,
    parse_error_body,
)
from portfolio_ai.llm.models import (
    AiFeature,
    AiUsage,
    ProviderId,
    ProviderRequest,
    RecommendedModels,
)
from portfolio_ai.tools.models import ToolExecutionResult, serialize_result

logger = logging.getLogger(__name__)


# --- Wire schema ---


class _Wire(BaseModel):
    model_config = ConfigDict(extra="allow")


class AnthropicContentBlock(_Wire):
    type: str
    text: str | None = None
    id: str | None = None
    name: str | None = None
    input: Any = None


class AnthropicUsage(_Wire):
    input_tokens: int | None = None
    output_tokens: int | None = None


class AnthropicResponse(_Wire):
    model: str | None = None
    content: list[AnthropicContentBlock] | str | None = None
    stop_reason: str | None = None
    usage: AnthropicUsage | None = None


DEFAULT_MODELS = [
    RecommendedModels(
        feature=AiFeature.CHAT,
        defaults=["claude-sonnet-4.5"],
        all=["claude-sonnet-4.5", "claude-sonnet-4.5-reasoning"],
        note="General portfolio Q&A and conversations.",
    ),
    RecommendedModels(
        feature=AiFeature.INSIGHTS,
        defaults=["claude-sonnet-4.5"],
        all=["claude-sonnet-4.5", "claude-sonnet-4.5-reasoning"],
        note="Summaries and lightweight reasoning.",
    ),
    RecommendedModels(
        feature=AiFeature.RESEARCH,
        defaults=["claude-sonnet-4.5-reasoning"],
        all=["claude-sonnet-4.5-reasoning", "claude-sonnet-4.5"],
        note="Deeper synthesis with extended thinking capabilities.",
    ),
]


class AnthropicAdapter(BaseProviderAdapter):
    """Adapter for Anthropic Claude models."""

    provider: ClassVar[ProviderId] = ProviderId.ANTHROPIC
    vendor_name: ClassVar[str] = "Anthropic"
    api_key_env: ClassVar[str] = "ANTHROPIC_API_KEY"
    recommended_models: ClassVar[list[RecommendedModels]] = DEFAULT_MODELS
    response_model: ClassVar[type[BaseModel]] = AnthropicResponse

    def _create_client(self, base_url: str | None) -> Any:
        return anthropic.AsyncAnthropic(
            api_key=self._api_key,
            base_url=base_url,
            max_retries=self._max_retries,
        )

    def _build_messages(self, request: ProviderRequest) -> list[dict[str, Any]]:
        return [
            {"role": "user" if m.role == "system" else m.role, "content": m.content}
            for m in request.messages
        ]

    def _declare_tools(self, definitions: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [
            {
                "name": d["name"],
                "description": d["description"],
                "input_schema": d["parameters"],
            }
            for d in definitions
        ]

    def _build_body(
        self,
        request: ProviderRequest,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": request.model,
            "max_tokens": self._max_tokens,
            "messages": list(messages),
        }
        if request.system:
            body["system"] = request.system
        if tools:
            body["tools"] = tools
        return body

    async def _send(self, client: Any, body: dict[str, Any]) -> Any:
        try:
            return await client.messages.create(**body)
        except anthropic.APIStatusError as e:
            raise ProviderHTTPError(e.status_code, parse_error_body(e.response.text)) from e

    @staticmethod
    def _blocks(response: AnthropicResponse) -> list[AnthropicContentBlock]:
        return response.content if isinstance(response.content, list) else []

    def _extract_tool_calls(self, response: Any) -> list[VendorToolCall]:
        return [
            VendorToolCall(
                id=block.id or "",
                name=block.name or "unknown_tool",
                arguments=block.input if block.input is not None else {},
            )
            for block in self._blocks(response)
            if block.type == "tool_use"
        ]

    def _extract_text(self, response: Any) -> str:
        if isinstance(response.content, str):
            return response.content
        return "".join(b.text or "" for b in self._blocks(response) if b.type == "text")

    def _map_usage(self, response: Any) -> AiUsage | None:
        if response.usage is None:
            return None
        prompt = response.usage.input_tokens or 0
        completion = response.usage.output_tokens or 0
        return AiUsage(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=prompt + completion,
        )

    def _finish_reason(self, response: Any) -> str | None:
        return response.stop_reason

    def _assistant_tool_message(
        self, response: Any, calls: list[VendorToolCall]
    ) -> dict[str, Any]:
        content = []
        for block in self._blocks(response):
            if block.type == "text":
                content.append({"type": "text", "text": block.text or ""})
            elif block.type == "tool_use":
                content.append({
                    "type": "tool_use",
                    "id": block.id,
                    "name": block.name,
                    "input": block.input if block.input is not None else {},
                })
            else:
                content.append(block.model_dump(exclude_none=True))
        return {"role": "assistant", "content": content}

    def _tool_result_messages(
        self, results: list[tuple[VendorToolCall, ToolExecutionResult]]
    ) -> list[dict[str, Any]]:
        return [{
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": call.id,
                    "content": serialize_result(result),
                }
                for call, result in results
            ],
        }]
