"""Tuning knobs for the planner, executor, gateway, cache and monitor."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class PlannerConfig(BaseModel):
    """Bounds on the A* search."""

    max_plan_length: int = Field(default=20, ge=1)
    max_planning_seconds: float = Field(default=5.0, gt=0)
    default_action_duration_seconds: float = Field(default=1.0, ge=0)


class ExecutorConfig(BaseModel):
    default_action_timeout_seconds: float = Field(default=30.0, gt=0)


class EvictionPolicy(str, Enum):
    INSERTION = "insertion"     # Evict the oldest insertion
    ACCESS = "access"           # Evict the least recently read (LRU)


class CacheConfig(BaseModel):
    ttl_seconds: float = Field(default=3600.0, gt=0)
    max_size: int = Field(default=1000, ge=1)
    eviction: EvictionPolicy = EvictionPolicy.INSERTION


class RetryConfig(BaseModel):
    """Bounded retry with doubling backoff between min and max delay."""

    retries: int = Field(default=3, ge=0)
    min_delay_seconds: float = Field(default=1.0, ge=0)
    max_delay_seconds: float = Field(default=5.0, ge=0)
    factor: float = Field(default=2.0, ge=1)


class GatewayConfig(BaseModel):
    default_provider: str = "anthropic"
    fallback_order: List[str] = ["anthropic", "openai", "google"]
    retry: RetryConfig = RetryConfig()
    cache: CacheConfig = CacheConfig()
    timeout_seconds: Optional[float] = Field(default=None, gt=0)


class MonitorConfig(BaseModel):
    max_entries: int = Field(default=1000, ge=1)
    max_age_seconds: float = Field(default=24 * 60 * 60, gt=0)
    slow_threshold_ms: float = Field(default=1000.0, ge=0)
