# src/llm/adapters/openai_adapter.py — v2
"""OpenAI GPT adapter implementing BaseProviderAdapter.

Uses the official openai SDK (Chat Completions). Tool calls are carried
on the assistant message; each result goes back as a ``role: tool``
message keyed by the call id.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, ClassVar

import openai
from pydantic import BaseModel, ConfigDict, Field

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


# --- Wire schema (shared by OpenAI-compatible vendors) ---


class _Wire(BaseModel):
    model_config = ConfigDict(extra="allow")


class ContentPart(_Wire):
    text: str | None = None
    content: str | None = None


TextContent = str | list[str | ContentPart] | None


class FunctionCall(_Wire):
    name: str | None = None
    arguments: str | dict[str, Any] | None = None


class ChatToolCall(_Wire):
    id: str | None = None
    type: str = "function"
    function: FunctionCall = Field(default_factory=FunctionCall)


class ChatMessage(_Wire):
    role: str | None = None
    content: TextContent = None
    tool_calls: list[ChatToolCall] | None = None


class ChatDelta(_Wire):
    content: TextContent = None


class ChatChoice(_Wire):
    message: ChatMessage | None = None
    delta: ChatDelta | None = None
    finish_reason: str | None = None


class ChatUsage(_Wire):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class NestedOutput(_Wire):
    output_text: TextContent = None


class ChatCompletionResponse(_Wire):
    model: str | None = None
    choices: list[ChatChoice] = Field(default_factory=list)
    usage: ChatUsage | None = None
    output_text: TextContent = None
    response: NestedOutput | None = None


def _join_parts(value: TextContent) -> str | None:
    """String content as-is; part lists joined, ``None`` when blank."""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        joined = "".join(
            p if isinstance(p, str) else (p.text or p.content or "") for p in value
        )
        return joined if joined.strip() else None
    return None


DEFAULT_MODELS = [
    RecommendedModels(
        feature=AiFeature.CHAT,
        defaults=["gpt-5-mini"],
        all=["gpt-5-mini", "gpt-5"],
        note="General portfolio Q&A and conversations.",
    ),
    RecommendedModels(
        feature=AiFeature.INSIGHTS,
        defaults=["gpt-5-mini"],
        all=["gpt-5-mini", "gpt-5"],
        note="Summaries and lightweight reasoning.",
    ),
    RecommendedModels(
        feature=AiFeature.RESEARCH,
        defaults=["gpt-5"],
        all=["gpt-5", "gpt-5-mini"],
        note="Deeper synthesis with reasoning capabilities.",
    ),
]


class OpenAIAdapter(BaseProviderAdapter):
    """OpenAI GPT adapter."""

    provider: ClassVar[ProviderId] = ProviderId.OPENAI
    vendor_name: ClassVar[str] = "OpenAI"
    api_key_env: ClassVar[str] = "OPENAI_API_KEY"
    recommended_models: ClassVar[list[RecommendedModels]] = DEFAULT_MODELS
    response_model: ClassVar[type[BaseModel]] = ChatCompletionResponse

    default_base_url: ClassVar[str | None] = None
    max_tokens_field: ClassVar[str] = "max_completion_tokens"
    reads_output_text: ClassVar[bool] = True

    def _create_client(self, base_url: str | None) -> Any:
        return openai.AsyncOpenAI(
            api_key=self._api_key,
            base_url=base_url or self.default_base_url,
            max_retries=self._max_retries,
        )

    def _build_messages(self, request: ProviderRequest) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.extend({"role": m.role, "content": m.content} for m in request.messages)
        return messages

    def _declare_tools(self, definitions: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": d["name"],
                    "description": d["description"],
                    "parameters": d["parameters"],
                },
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
            "messages": list(messages),
            self.max_tokens_field: self._max_tokens,
        }
        if tools:
            body["tools"] = tools
            body["tool_choice"] = "auto"
        return body

    async def _send(self, client: Any, body: dict[str, Any]) -> Any:
        try:
            return await client.chat.completions.create(**body)
        except openai.APIStatusError as e:
            raise ProviderHTTPError(e.status_code, parse_error_body(e.response.text)) from e

    @staticmethod
    def _first_choice(response: ChatCompletionResponse) -> ChatChoice | None:
        return response.choices[0] if response.choices else None

    def _extract_tool_calls(self, response: Any) -> list[VendorToolCall]:
        choice = self._first_choice(response)
        if choice is None or choice.message is None or not choice.message.tool_calls:
            return []
        calls = []
        for i, call in enumerate(choice.message.tool_calls):
            calls.append(VendorToolCall(
                id=call.id or f"call_{int(time.time() * 1000)}_{i}",
                name=call.function.name or "unknown_tool",
                arguments=call.function.arguments if call.function.arguments is not None else "{}",
            ))
        return calls

    def _extract_text(self, response: Any) -> str:
        choice = self._first_choice(response)
        if choice is not None:
            direct = choice.message.content if choice.message else None
            if direct is None and choice.delta is not None:
                direct = choice.delta.content
            text = _join_parts(direct)
            if text is not None:
                return text
        if self.reads_output_text:
            output = response.output_text
            if output is None and response.response is not None:
                output = response.response.output_text
            text = _join_parts(output)
            if text is not None:
                return text
        return ""

    def _map_usage(self, response: Any) -> AiUsage | None:
        usage = response.usage
        if usage is None:
            return None
        total = usage.total_tokens
        if total is None:
            total = (usage.prompt_tokens or 0) + (usage.completion_tokens or 0)
        return AiUsage(
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=total,
        )

    def _finish_reason(self, response: Any) -> str | None:
        choice = self._first_choice(response)
        return choice.finish_reason if choice else None

    def _assistant_tool_message(
        self, response: Any, calls: list[VendorToolCall]
    ) -> dict[str, Any]:
        choice = self._first_choice(response)
        content = _join_parts(choice.message.content) if choice and choice.message else None
        return {
            "role": "assistant",
            "content": content or "",
            "tool_calls": [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": call.arguments
                        if isinstance(call.arguments, str)
                        else json.dumps(call.arguments),
                    },
                }
                for call in calls
            ],
        }

    def _tool_result_messages(
        self, results: list[tuple[VendorToolCall, ToolExecutionResult]]
    ) -> list[dict[str, Any]]:
        return [
            {
                "role": "tool",
                "tool_call_id": call.id,
                "content": serialize_result(result),
            }
            for call, result in results
        ]
