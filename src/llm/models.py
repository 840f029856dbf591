# src/llm/models.py — v2
"""LLM-specific types: Message, ProviderRequest, ProviderResult, ClientResult.

Every provider adapter speaks these canonical types; vendor-specific
shapes never leave the adapter module that owns them.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class ProviderId(str, Enum):
    """Supported LLM vendors."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    XAI = "xai"


class AiFeature(str, Enum):
    """Call-site purpose, used for model selection and tool eligibility."""

    CHAT = "chat"
    INSIGHTS = "insights"
    RESEARCH = "research"

    @property
    def tools_enabled(self) -> bool:
        """Only conversational chat may invoke portfolio tools."""
        return self is AiFeature.CHAT


class ErrorCode(str, Enum):
    """Error taxonomy shared by adapters and the orchestrator."""

    MISSING_API_KEY = "missing_api_key"
    PROVIDER_MISSING = "provider_missing"
    PROVIDER_NOT_SUPPORTED = "provider_not_supported"
    MODEL_MISSING = "model_missing"
    BUDGET_EXCEEDED = "budget_exceeded"
    HTTP_ERROR = "http_error"
    TOOL_LOOP = "tool_loop"
    CLIENT_ERROR = "client_error"


TokenCallback = Callable[[str], None]


class CancellationToken:
    """Cooperative cancellation flag shared between caller and adapter.

    Cancelling aborts the in-flight vendor request and any further rounds.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise asyncio.CancelledError("AI request cancelled")


class Message(BaseModel):
    """Single message in a conversation."""

    role: Literal["user", "assistant", "system"]
    content: str


class AiUsage(BaseModel):
    """Token usage normalized across vendors."""

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class AiError(BaseModel):
    """Typed error surfaced to callers instead of an exception."""

    code: ErrorCode
    message: str
    status: int | None = None
    provider: ProviderId | None = None
    retryable: bool = False
    details: Any = None


class RecommendedModels(BaseModel):
    """Per-feature model recommendations published by an adapter."""

    feature: AiFeature
    defaults: list[str]
    all: list[str] = Field(default_factory=list)
    note: str | None = None


class ProviderRequest(BaseModel):
    """Canonical request handed to a provider adapter."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    model: str
    system: str | None = None
    messages: list[Message]
    feature: AiFeature = AiFeature.CHAT
    stream: bool = False
    on_token: TokenCallback | None = None
    cancel_token: CancellationToken | None = None
    use_proxy: bool = False
    web_search: bool = False


class ProviderOk(BaseModel):
    """Successful adapter exchange."""

    ok: Literal[True] = True
    text: str
    model: str
    usage: AiUsage | None = None
    finish_reason: str | None = None
    raw: Any = None
    tool_calls: list[str] = Field(default_factory=list)


class ProviderErr(BaseModel):
    """Failed adapter exchange."""

    ok: Literal[False] = False
    error: AiError
    raw: Any = None
    tool_calls: list[str] = Field(default_factory=list)


ProviderResult = Union[ProviderOk, ProviderErr]


class ClientRequest(BaseModel):
    """Feature-scoped request accepted by the orchestrator."""

    model_config = ConfigDict(arbitrary_types_allowed=True, protected_namespaces=())

    feature: AiFeature
    messages: list[Message]
    system: str | None = None
    stream: bool = False
    on_token: TokenCallback | None = None
    cache_ttl_sec: int | None = None
    force_refresh: bool = False
    model_override: str | None = None
    cancel_token: CancellationToken | None = None


class _ClientFields(BaseModel):
    provider_id: ProviderId | None = None
    feature: AiFeature
    from_cache: bool = False
    cache_key: str | None = None


class ClientOk(ProviderOk, _ClientFields):
    """Successful orchestration result."""


class ClientErr(ProviderErr, _ClientFields):
    """Failed orchestration result."""


ClientResult = Union[ClientOk, ClientErr]
