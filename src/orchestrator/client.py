# src/orchestrator/client.py — v1
"""AI orchestrator: the single entry point for feature-scoped AI calls.

Sequencing for one call:
  1. Validate provider and model (no network on rejection)
  2. Monthly budget gate
  3. Stable cache key, opportunistic purge of expired entries
  4. Cache lookup and replay (unless forced or TTL is 0)
  5. Dispatch to the provider adapter
  6. Success: cost estimate, ledger, cache write, call log
     Failure: call log only

Every outcome is a typed ClientResult; only cancellation escapes as an
exception.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from typing import Any

from portfolio_ai.cache.fingerprint import compute_cache_key
from portfolio_ai.cache.models import CachedResponse
from portfolio_ai.llm.client_factory import (
    UnsupportedProviderError,
    default_recommended_models,
    resolve_provider,
)
from portfolio_ai.llm.models import (
    AiError,
    AiFeature,
    ClientErr,
    ClientOk,
    ClientRequest,
    ClientResult,
    ErrorCode,
    ProviderId,
    ProviderRequest,
    RecommendedModels,
)
from portfolio_ai.logging.context import clear_context, set_call_context
from portfolio_ai.orchestrator.context import OrchestratorContext
from portfolio_ai.tracking.cost_calculator import estimate_cost_usd
from portfolio_ai.tracking.models import CallLogEntry, CallTokens
from portfolio_ai.tracking.usage_ledger import month_key

logger = logging.getLogger(__name__)

LOG_MESSAGE_CHARS = 160
ERROR_DETAIL_CHARS = 220


def _stringify_details(details: Any) -> str | None:
    if not details:
        return None
    if isinstance(details, str):
        text = details.strip()
    else:
        try:
            text = json.dumps(details, separators=(",", ":"), default=str)
        except (TypeError, ValueError):
            return None
    return f"{text[:ERROR_DETAIL_CHARS]}..." if len(text) > ERROR_DETAIL_CHARS else text


def summarize_error(error: AiError) -> str:
    """Error message plus truncated details, unless already contained."""
    detail = _stringify_details(error.details)
    if detail and detail not in error.message:
        return f"{error.message}: {detail}"
    return error.message


class AiOrchestrator:
    """Validates, caches, budgets, dispatches and logs AI calls.

    Args:
        context: Settings, stores and adapters used by every call.
    """

    def __init__(self, context: OrchestratorContext) -> None:
        self._ctx = context

    @property
    def context(self) -> OrchestratorContext:
        return self._ctx

    async def call_ai(self, request: ClientRequest) -> ClientResult:
        """Run one AI call end to end.

        Raises:
            asyncio.CancelledError: If the request's cancel token fires.
        """
        call_id = uuid.uuid4().hex[:12]
        set_call_context(call_id, request.feature.value, self._ctx.settings.ai_provider or None)
        try:
            return await self._call(request)
        finally:
            clear_context()

    async def _call(self, request: ClientRequest) -> ClientResult:
        settings = self._ctx.settings
        feature = request.feature

        # --- Validation ---
        if not settings.ai_provider:
            return self._reject(
                feature, None, ErrorCode.PROVIDER_MISSING,
                "Select an AI provider in Settings first.",
            )
        provider = settings.provider_id
        if provider is None:
            return self._reject(
                feature, None, ErrorCode.PROVIDER_NOT_SUPPORTED,
                f"Provider {settings.ai_provider} is not available in this build.",
                provider_name=settings.ai_provider,
            )
        model = (request.model_override or "").strip() or settings.model_for(feature)
        if not model:
            return self._reject(
                feature, provider, ErrorCode.MODEL_MISSING,
                f"No model configured for {feature.value}. Pick one in Settings.",
            )

        now = self._ctx.clock()
        budget = settings.ai_budget_usd
        if budget > 0:
            try:
                spent = await self._ctx.ledger.monthly_total(month_key(now))
            except Exception as e:
                logger.warning("Usage ledger read failed, budget not enforced: %s", e)
                spent = 0.0
            if spent >= budget:
                logger.info("Budget reached: %.6f of %.2f USD", spent, budget)
                return self._reject(
                    feature, provider, ErrorCode.BUDGET_EXCEEDED,
                    "Monthly AI budget reached. Adjust the limit in Settings to continue.",
                )

        # --- Cache ---
        cache_key = compute_cache_key(provider, model, feature, request.system, request.messages)
        try:
            await self._ctx.cache.purge_expired(now)
        except Exception as e:
            logger.warning("Cache purge failed (non-fatal): %s", e)

        ttl = request.cache_ttl_sec
        if ttl is None:
            ttl = 0 if request.stream else settings.ai_cache_ttl_sec

        if not request.force_refresh and ttl > 0:
            cached = await self._cache_lookup(cache_key)
            if cached is not None:
                return self._replay(cached, cache_key, request)

        # --- Dispatch ---
        adapter = self._ctx.adapter_for(provider)
        provider_request = ProviderRequest(
            model=model,
            system=request.system,
            messages=request.messages,
            feature=feature,
            stream=request.stream,
            on_token=request.on_token,
            cancel_token=request.cancel_token,
            use_proxy=settings.ai_use_proxy,
            web_search=settings.ai_web_search_enabled,
        )

        start = time.monotonic()
        try:
            result = await adapter.respond(provider_request)
        except asyncio.CancelledError:
            logger.info("AI call cancelled (model=%s)", model)
            raise
        except Exception as e:
            logger.exception("Provider adapter raised (model=%s)", model)
            failure = ClientErr(
                error=AiError(
                    code=ErrorCode.CLIENT_ERROR,
                    message=str(e) or type(e).__name__,
                    provider=provider,
                ),
                provider_id=provider,
                feature=feature,
                cache_key=cache_key,
            )
            self._log(failure, model=model, cache_key=cache_key,
                      duration_ms=(time.monotonic() - start) * 1000, cost_usd=0.0)
            return failure
        duration_ms = (time.monotonic() - start) * 1000

        if not result.ok:
            logger.warning(
                "Provider call failed: %s (model=%s, messages=%d, system=%s)",
                result.error.message, model, len(request.messages), bool(request.system),
            )
            failure = ClientErr(
                **result.model_dump(), provider_id=provider, feature=feature, cache_key=cache_key
            )
            self._log(failure, model=model, cache_key=cache_key,
                      duration_ms=duration_ms, cost_usd=0.0)
            return failure

        # --- Success: ledger, cache, log ---
        cost = estimate_cost_usd(model, result.usage)
        if cost > 0:
            try:
                await self._ctx.ledger.add(cost, month_key(now))
            except Exception as e:
                logger.warning("Usage ledger write failed (non-fatal): %s", e)

        if ttl > 0:
            value = CachedResponse(
                response=result,
                cached_at=self._ctx.clock(),
                feature=feature,
                model=model,
                provider=provider,
            )
            try:
                await self._ctx.cache.set(cache_key, value, ttl, now=self._ctx.clock())
            except Exception as e:
                logger.warning("Cache write failed (non-fatal): %s", e)

        success = ClientOk(
            **result.model_dump(),
            provider_id=provider,
            feature=feature,
            from_cache=False,
            cache_key=cache_key,
        )
        logger.info(
            "AI call ok: model=%s tools=%s cost=%.6f duration=%.0fms",
            success.model, success.tool_calls, cost, duration_ms,
        )
        self._log(success, cache_key=cache_key, duration_ms=duration_ms, cost_usd=cost)
        return success

    async def _cache_lookup(self, cache_key: str) -> CachedResponse | None:
        try:
            entry = await self._ctx.cache.get(cache_key, now=self._ctx.clock())
        except Exception as e:
            logger.warning("Cache read failed, treating as miss: %s", e)
            return None
        return entry.value if entry is not None else None

    def _replay(
        self, cached: CachedResponse, cache_key: str, request: ClientRequest
    ) -> ClientOk:
        result = ClientOk(
            **cached.response.model_dump(),
            provider_id=cached.provider,
            feature=cached.feature,
            from_cache=True,
            cache_key=cache_key,
        )
        if request.on_token is not None:
            request.on_token(result.text)
        logger.debug("Cache hit %s", cache_key[:12])
        self._log(result, cache_key=cache_key, duration_ms=0.0, cost_usd=0.0)
        return result

    def _reject(
        self,
        feature: AiFeature,
        provider: ProviderId | None,
        code: ErrorCode,
        message: str,
        provider_name: str | None = None,
    ) -> ClientErr:
        result = ClientErr(
            error=AiError(code=code, message=message, provider=provider),
            provider_id=provider,
            feature=feature,
        )
        logger.info("AI call rejected: %s", code.value)
        self._log(result, provider_name=provider_name)
        return result

    def _log(
        self,
        result: ClientResult,
        model: str | None = None,
        cache_key: str | None = None,
        duration_ms: float | None = None,
        cost_usd: float | None = None,
        provider_name: str | None = None,
    ) -> None:
        tokens = None
        message = None
        error = None
        if isinstance(result, ClientOk):
            model = result.model
            if result.usage is not None:
                tokens = CallTokens(
                    prompt=result.usage.prompt_tokens,
                    completion=result.usage.completion_tokens,
                    total=result.usage.total_tokens,
                )
            if self._ctx.settings.ai_logging_enabled:
                message = result.text[:LOG_MESSAGE_CHARS]
        else:
            error = summarize_error(result.error)

        self._ctx.call_log.record(CallLogEntry(
            id=uuid.uuid4().hex,
            timestamp=self._ctx.clock(),
            provider=(
                result.provider_id.value if result.provider_id
                else provider_name or "unavailable"
            ),
            feature=result.feature.value,
            model=model,
            cached=result.from_cache,
            ok=result.ok,
            message=message,
            error=error,
            tokens=tokens,
            cost_usd=cost_usd,
            duration_ms=duration_ms,
            cache_key=cache_key,
        ))

    def get_recommended_models(
        self, provider: str | ProviderId | None = None
    ) -> list[RecommendedModels]:
        """Recommended models for a provider (default: the configured one).

        Unset or unknown providers fall back to the OpenAI defaults.
        """
        name = provider if provider is not None else self._ctx.settings.ai_provider
        if not name:
            return default_recommended_models(ProviderId.OPENAI)
        try:
            provider_id = resolve_provider(name)
        except UnsupportedProviderError:
            return default_recommended_models(ProviderId.OPENAI)
        return self._ctx.adapter_for(provider_id).list_recommended_models()
