# src/llm/base_client.py — v2
"""Abstract provider adapter with the shared bounded tool-calling loop.

Concrete adapters only describe their vendor dialect: how messages,
tool declarations and tool results are shaped, how the SDK is called,
and where text, tool calls and usage live in a response. The loop,
cancellation, HTTP error normalization and streaming delivery are
shared here.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, ClassVar, TypeVar

from pydantic import BaseModel, ValidationError

from portfolio_ai.llm.models import (
    AiError,
    AiUsage,
    CancellationToken,
    ErrorCode,
    ProviderErr,
    ProviderId,
    ProviderOk,
    ProviderRequest,
    ProviderResult,
    RecommendedModels,
)
from portfolio_ai.tools.models import ToolExecutionResult
from portfolio_ai.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

MAX_TOOL_ROUNDS = 4
RETRYABLE_STATUSES = frozenset({408, 409, 429})

T = TypeVar("T")


class ProviderHTTPError(Exception):
    """Non-2xx vendor response, raised by an adapter's ``_send``."""

    def __init__(self, status: int, body: Any = None) -> None:
        super().__init__(f"HTTP {status}")
        self.status = status
        self.body = body


@dataclass(frozen=True)
class VendorToolCall:
    """One tool invocation requested by the model, in canonical form."""

    id: str
    name: str
    arguments: Any


def parse_error_body(text: str) -> Any:
    """JSON-decode an error body when possible, else keep the raw text."""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def vendor_error_message(body: Any) -> str | None:
    """Pull the human-readable message out of a vendor error body."""
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if body.get("message"):
        return str(body["message"])
    return None


def to_plain(response: Any) -> Any:
    """SDK response objects become plain dicts; dicts pass through."""
    if hasattr(response, "model_dump"):
        return response.model_dump(exclude_none=True)
    return response


def merge_usage(total: AiUsage | None, usage: AiUsage | None) -> AiUsage | None:
    """Add one round's usage to the running total, field by field."""
    if usage is None:
        return total
    if total is None:
        return usage.model_copy()

    def _add(a: int | None, b: int | None) -> int | None:
        if a is None and b is None:
            return None
        return (a or 0) + (b or 0)

    return AiUsage(
        prompt_tokens=_add(total.prompt_tokens, usage.prompt_tokens),
        completion_tokens=_add(total.completion_tokens, usage.completion_tokens),
        total_tokens=_add(total.total_tokens, usage.total_tokens),
    )


class BaseProviderAdapter(ABC):
    """Unified interface for all LLM vendors.

    Args:
        api_key: Vendor API key. Blank means "not configured".
        tool_registry: Tool catalog offered to tool-eligible features.
        base_url: Override for the vendor endpoint.
        proxy_base_url: Origin of the same-origin proxy used when a
            request sets ``use_proxy``.
        client: Pre-built SDK client (used as-is for every request).
        max_retries: SDK-level retry count for transient failures.
        max_tokens: Output token ceiling sent with each request.
    """

    provider: ClassVar[ProviderId]
    vendor_name: ClassVar[str]
    api_key_env: ClassVar[str]
    recommended_models: ClassVar[list[RecommendedModels]]
    response_model: ClassVar[type[BaseModel]]

    def __init__(
        self,
        api_key: str | None = None,
        tool_registry: ToolRegistry | None = None,
        base_url: str | None = None,
        proxy_base_url: str | None = None,
        client: Any = None,
        max_retries: int = 2,
        max_tokens: int = 4096,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._tools = tool_registry
        self._base_url = base_url
        self._proxy_base_url = proxy_base_url
        self._max_retries = max_retries
        self._max_tokens = max_tokens
        self._injected_client = client
        self._clients: dict[bool, Any] = {}

    @property
    def provider_id(self) -> ProviderId:
        return self.provider

    def list_recommended_models(self) -> list[RecommendedModels]:
        return [m.model_copy(deep=True) for m in self.recommended_models]

    # --- SDK client handling ---

    def _client_for(self, use_proxy: bool) -> Any:
        """Lazy-init the SDK client for direct or proxied routing."""
        if self._injected_client is not None:
            return self._injected_client
        if use_proxy not in self._clients:
            base_url = self._base_url
            if use_proxy and self._proxy_base_url:
                base_url = f"{self._proxy_base_url.rstrip('/')}/ai-proxy/{self.provider.value}"
            self._clients[use_proxy] = self._create_client(base_url)
        return self._clients[use_proxy]

    @abstractmethod
    def _create_client(self, base_url: str | None) -> Any:
        """Instantiate the vendor SDK client."""

    # --- Vendor dialect hooks ---

    @abstractmethod
    def _build_messages(self, request: ProviderRequest) -> list[dict[str, Any]]:
        """Canonical transcript to vendor messages."""

    @abstractmethod
    def _declare_tools(self, definitions: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Vendor-agnostic tool definitions to vendor declarations."""

    @abstractmethod
    def _build_body(
        self,
        request: ProviderRequest,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
    ) -> dict[str, Any]:
        """Keyword arguments for one SDK call."""

    @abstractmethod
    async def _send(self, client: Any, body: dict[str, Any]) -> Any:
        """Perform one SDK call; raise ProviderHTTPError on non-2xx."""

    @abstractmethod
    def _extract_tool_calls(self, response: Any) -> list[VendorToolCall]:
        ...

    @abstractmethod
    def _extract_text(self, response: Any) -> str:
        ...

    @abstractmethod
    def _map_usage(self, response: Any) -> AiUsage | None:
        ...

    @abstractmethod
    def _finish_reason(self, response: Any) -> str | None:
        ...

    @abstractmethod
    def _assistant_tool_message(
        self, response: Any, calls: list[VendorToolCall]
    ) -> dict[str, Any]:
        """The assistant turn that requested the tools, echoed back."""

    @abstractmethod
    def _tool_result_messages(
        self, results: list[tuple[VendorToolCall, ToolExecutionResult]]
    ) -> list[dict[str, Any]]:
        """Messages carrying serialized tool results back to the model."""

    # --- Shared machinery ---

    def _parse_response(self, raw: Any) -> BaseModel | None:
        """Validate a response against the vendor wire schema.

        A response that does not match degrades to ``None`` (empty text).
        """
        try:
            return self.response_model.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "Unexpected %s response shape: %s", self.vendor_name, e.error_count()
            )
            return None

    @staticmethod
    async def _await_cancellable(
        call: Awaitable[T], token: CancellationToken | None
    ) -> T:
        """Race a vendor call against the cancellation token."""
        if token is None:
            return await call
        if token.cancelled:
            if asyncio.iscoroutine(call):
                call.close()
            token.raise_if_cancelled()

        request_task = asyncio.ensure_future(call)
        cancel_task = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {request_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_task.cancel()
            if not request_task.done():
                request_task.cancel()
        if request_task not in done:
            raise asyncio.CancelledError("AI request cancelled")
        return request_task.result()

    def _http_error(self, exc: ProviderHTTPError) -> AiError:
        detail = vendor_error_message(exc.body)
        message = f"{self.vendor_name} request failed ({exc.status})"
        if detail:
            message = f"{message}: {detail}"
        return AiError(
            code=ErrorCode.HTTP_ERROR,
            message=message,
            status=exc.status,
            provider=self.provider,
            retryable=exc.status in RETRYABLE_STATUSES or exc.status >= 500,
            details=exc.body,
        )

    def _tool_declarations(self, request: ProviderRequest) -> list[dict[str, Any]]:
        if not request.feature.tools_enabled or self._tools is None or not len(self._tools):
            return []
        return self._declare_tools(self._tools.list_tool_definitions())

    async def respond(self, request: ProviderRequest) -> ProviderResult:
        """Run one exchange, including at most one round of tool use.

        Network errors and cancellation propagate to the caller.
        """
        if not self._api_key:
            return ProviderErr(
                error=AiError(
                    code=ErrorCode.MISSING_API_KEY,
                    message=f"{self.vendor_name} API key is not configured. "
                    f"Set {self.api_key_env} in .env.",
                    provider=self.provider,
                )
            )

        client = self._client_for(request.use_proxy)
        declarations = self._tool_declarations(request)
        transcript = self._build_messages(request)
        allow_tools = bool(declarations)
        called: list[str] = []
        last_raw: Any = None
        usage: AiUsage | None = None

        for round_no in range(1, MAX_TOOL_ROUNDS + 1):
            body = self._build_body(request, transcript, declarations if allow_tools else None)
            logger.debug(
                "%s round %d: model=%s messages=%d tools=%s",
                self.vendor_name, round_no, request.model, len(transcript), allow_tools,
            )

            start = time.monotonic()
            try:
                raw = await self._await_cancellable(
                    self._send(client, body), request.cancel_token
                )
            except ProviderHTTPError as e:
                error = self._http_error(e)
                logger.warning("%s (model=%s)", error.message, request.model)
                return ProviderErr(error=error, raw=e.body, tool_calls=called)
            latency_ms = int((time.monotonic() - start) * 1000)

            last_raw = to_plain(raw)
            parsed = self._parse_response(last_raw)
            calls = self._extract_tool_calls(parsed) if parsed is not None else []
            if parsed is not None:
                usage = merge_usage(usage, self._map_usage(parsed))
            logger.debug(
                "%s round %d answered in %dms with %d tool call(s)",
                self.vendor_name, round_no, latency_ms, len(calls),
            )

            if calls and allow_tools:
                allow_tools = False
                transcript.append(self._assistant_tool_message(parsed, calls))
                results = []
                for call in calls:
                    called.append(call.name)
                    result = await self._tools.execute_by_name(call.name, call.arguments)
                    results.append((call, result))
                transcript.extend(self._tool_result_messages(results))
                continue

            text = self._extract_text(parsed) if parsed is not None else ""
            if calls and not text:
                # Tools already used this call; ask again without executing
                logger.info(
                    "%s requested tools after the tool round; retrying", self.vendor_name
                )
                continue

            if request.stream and request.on_token is not None and text:
                request.on_token(text)

            return ProviderOk(
                text=text,
                model=getattr(parsed, "model", None) or request.model,
                usage=usage,
                finish_reason=self._finish_reason(parsed) if parsed is not None else None,
                raw=last_raw,
                tool_calls=called,
            )

        logger.warning(
            "%s exhausted %d rounds without a final answer", self.vendor_name, MAX_TOOL_ROUNDS
        )
        return ProviderErr(
            error=AiError(
                code=ErrorCode.TOOL_LOOP,
                message="Unable to complete request after multiple tool exchanges.",
                provider=self.provider,
                details=last_raw,
            ),
            raw=last_raw,
            tool_calls=called,
        )
