# src/logging/context.py — v2
"""Contextual logging support — attach call_id, feature, provider to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging — set per orchestration call.
_call_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "call_id", default=None
)
_feature: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "feature", default=None
)
_provider: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "provider", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    call_id: str | None = None
    feature: str | None = None
    provider: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        call_id=_call_id.get(),
        feature=_feature.get(),
        provider=_provider.get(),
    )


def set_call_context(
    call_id: str, feature: str, provider: str | None = None
) -> None:
    """Set call-level context (once per orchestration call).

    Each asyncio task owns a copy of the context, so concurrent calls
    never see each other's values.
    """
    _call_id.set(call_id)
    _feature.set(feature)
    _provider.set(provider)


def clear_context() -> None:
    """Reset all context variables."""
    _call_id.set(None)
    _feature.set(None)
    _provider.set(None)
