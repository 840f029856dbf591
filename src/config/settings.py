# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for provider selection, per-feature model mapping,
budget, cache, call log and logging configuration. The orchestrator only
ever reads from it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from portfolio_ai.llm.models import AiFeature, ProviderId


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Provider selection ===
    ai_provider: str = ""
    ai_model_chat: str = ""
    ai_model_insights: str = ""
    ai_model_research: str = ""
    ai_use_proxy: bool = False
    ai_proxy_base_url: str = ""
    ai_web_search_enabled: bool = False
    ai_max_output_tokens: int = 4096
    ai_sdk_max_retries: int = 2

    # Provider API keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    xai_api_key: str = ""

    # === Budget ===
    ai_budget_usd: float = 0.0
    usage_ledger_path: Path | None = None

    # === Cache ===
    ai_cache_ttl_sec: int = 600
    cache_backend: Literal["memory", "json", "sqlite"] = "memory"
    cache_root: Path = Path("~/.portfolio_ai/cache")

    # === Call log ===
    ai_logging_enabled: bool = False
    call_log_max_entries: int = 200
    call_log_path: Path | None = None

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("ai_provider")
    @classmethod
    def normalize_provider(cls, v: str) -> str:  # noqa: N805
        return v.strip().lower()

    @field_validator("call_log_max_entries")
    @classmethod
    def validate_call_log_size(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("call_log_max_entries must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.ai_budget_usd < 0:
            errors.append("AI_BUDGET_USD must be >= 0")

        if self.ai_cache_ttl_sec < 0:
            errors.append("AI_CACHE_TTL_SEC must be >= 0")

        if self.ai_use_proxy and not self.ai_proxy_base_url:
            errors.append("AI_USE_PROXY requires AI_PROXY_BASE_URL")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def provider_id(self) -> ProviderId | None:
        """Active provider, or None when unset or not a known vendor."""
        try:
            return ProviderId(self.ai_provider)
        except ValueError:
            return None

    def model_for(self, feature: AiFeature) -> str | None:
        """Return the configured model for a feature, None if unmapped."""
        value = getattr(self, f"ai_model_{feature.value}", "")
        return value.strip() or None

    def api_key_for(self, provider: ProviderId) -> str:
        """Return the trimmed API key configured for a provider."""
        return getattr(self, f"{provider.value}_api_key", "").strip()


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-call config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
