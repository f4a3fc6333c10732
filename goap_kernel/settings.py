# goap_kernel/settings.py

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

from goap_kernel.models.config import (
    CacheConfig,
    EvictionPolicy,
    ExecutorConfig,
    GatewayConfig,
    MonitorConfig,
    PlannerConfig,
    RetryConfig,
)
from goap_kernel.models.provider import DEFAULT_MODELS, ProviderConfig


class Settings(BaseSettings):
    # Provider credentials
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_ORG_ID: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[str] = None
    GOOGLE_API_KEY: Optional[str] = None

    # Default model per provider
    OPENAI_MODEL: str = DEFAULT_MODELS["openai"]
    ANTHROPIC_MODEL: str = DEFAULT_MODELS["anthropic"]
    GOOGLE_MODEL: str = DEFAULT_MODELS["google"]

    # Optional base URL overrides (OpenAI-compatible endpoints)
    OPENAI_BASE_URL: Optional[str] = None
    ANTHROPIC_BASE_URL: Optional[str] = None
    GOOGLE_BASE_URL: Optional[str] = None

    # Gateway
    LLM_DEFAULT_PROVIDER: str = "anthropic"
    LLM_FALLBACK_ORDER: str = "anthropic,openai,google"  # comma-separated
    LLM_CACHE_TTL_SECONDS: float = 3600
    LLM_CACHE_MAX_SIZE: int = 1000
    LLM_CACHE_EVICTION: str = "insertion"  # insertion | access
    LLM_MAX_RETRIES: int = 3
    LLM_RETRY_MIN_SECONDS: float = 1.0
    LLM_RETRY_MAX_SECONDS: float = 5.0
    LLM_TIMEOUT_SECONDS: Optional[float] = None

    # Planner / executor
    PLANNER_MAX_PLAN_LENGTH: int = 20
    PLANNER_TIMEOUT_SECONDS: float = 5.0
    ACTION_DEFAULT_TIMEOUT_SECONDS: float = 30.0

    # Performance monitor
    PERFORMANCE_THRESHOLD_MS: float = 1000.0
    METRICS_MAX_ENTRIES: int = 1000
    METRICS_MAX_AGE_SECONDS: float = 24 * 60 * 60

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # text | json

    @field_validator("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY")
    @classmethod
    def blank_key_is_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty or whitespace-only keys as unset."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("LLM_CACHE_EVICTION")
    @classmethod
    def known_eviction(cls, v: str) -> str:
        return EvictionPolicy(v.strip().lower()).value

    @field_validator("LOG_FORMAT")
    @classmethod
    def known_log_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("text", "json"):
            raise ValueError(f"LOG_FORMAT must be 'text' or 'json', got {v!r}")
        return v

    class Config:
        env_file = ".env"
        extra = "ignore"

    # --- Typed views consumed by the core ---

    @property
    def fallback_order(self) -> List[str]:
        return [p.strip() for p in self.LLM_FALLBACK_ORDER.split(",") if p.strip()]

    def planner_config(self) -> PlannerConfig:
        return PlannerConfig(
            max_plan_length=self.PLANNER_MAX_PLAN_LENGTH,
            max_planning_seconds=self.PLANNER_TIMEOUT_SECONDS,
        )

    def executor_config(self) -> ExecutorConfig:
        return ExecutorConfig(default_action_timeout_seconds=self.ACTION_DEFAULT_TIMEOUT_SECONDS)

    def gateway_config(self) -> GatewayConfig:
        return GatewayConfig(
            default_provider=self.LLM_DEFAULT_PROVIDER,
            fallback_order=self.fallback_order,
            retry=RetryConfig(
                retries=self.LLM_MAX_RETRIES,
                min_delay_seconds=self.LLM_RETRY_MIN_SECONDS,
                max_delay_seconds=self.LLM_RETRY_MAX_SECONDS,
            ),
            cache=CacheConfig(
                ttl_seconds=self.LLM_CACHE_TTL_SECONDS,
                max_size=self.LLM_CACHE_MAX_SIZE,
                eviction=EvictionPolicy(self.LLM_CACHE_EVICTION),
            ),
            timeout_seconds=self.LLM_TIMEOUT_SECONDS,
        )

    def monitor_config(self) -> MonitorConfig:
        return MonitorConfig(
            max_entries=self.METRICS_MAX_ENTRIES,
            max_age_seconds=self.METRICS_MAX_AGE_SECONDS,
            slow_threshold_ms=self.PERFORMANCE_THRESHOLD_MS,
        )

    def provider_configs(self) -> Dict[str, ProviderConfig]:
        """One ProviderConfig per known provider, credentials or not."""
        return {
            "openai": ProviderConfig(
                provider="openai",
                model=self.OPENAI_MODEL,
                api_key=self.OPENAI_API_KEY,
                base_url=self.OPENAI_BASE_URL,
                organization=self.OPENAI_ORG_ID,
            ),
            "anthropic": ProviderConfig(
                provider="anthropic",
                model=self.ANTHROPIC_MODEL,
                api_key=self.ANTHROPIC_API_KEY,
                base_url=self.ANTHROPIC_BASE_URL,
            ),
            "google": ProviderConfig(
                provider="google",
                model=self.GOOGLE_MODEL,
                api_key=self.GOOGLE_API_KEY,
                base_url=self.GOOGLE_BASE_URL,
            ),
        }


@lru_cache()
def get_settings() -> Settings:
    return Settings()
