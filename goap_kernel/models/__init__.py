"""GOAP Kernel data models."""

from goap_kernel.models.config import (
    CacheConfig,
    EvictionPolicy,
    ExecutorConfig,
    GatewayConfig,
    MonitorConfig,
    PlannerConfig,
    RetryConfig,
)
from goap_kernel.models.ebook import (
    Chapter,
    ChapterPlan,
    EBook,
    EBookInput,
    EBookMetadata,
    EnhancedPrompt,
    InputType,
    Language,
    Outline,
    Tone,
)
from goap_kernel.models.execution import (
    ActionContext,
    ActionResult,
    EventType,
    LifecycleEvent,
    Task,
    TaskOutcome,
    TaskStatus,
)
from goap_kernel.models.planning import Action, ActionPlan, Goal
from goap_kernel.models.provider import (
    DEFAULT_MODELS,
    AIResponse,
    Completion,
    GenerationOptions,
    ProviderConfig,
    StreamChunk,
    TokenUsage,
)
from goap_kernel.models.world import StateValue, WorldState

__all__ = [
    "AIResponse",
    "Action",
    "ActionContext",
    "ActionPlan",
    "ActionResult",
    "CacheConfig",
    "Chapter",
    "ChapterPlan",
    "Completion",
    "DEFAULT_MODELS",
    "EBook",
    "EBookInput",
    "EBookMetadata",
    "EnhancedPrompt",
    "EventType",
    "EvictionPolicy",
    "ExecutorConfig",
    "GatewayConfig",
    "GenerationOptions",
    "Goal",
    "InputType",
    "Language",
    "LifecycleEvent",
    "MonitorConfig",
    "Outline",
    "PlannerConfig",
    "ProviderConfig",
    "RetryConfig",
    "StateValue",
    "StreamChunk",
    "Task",
    "TaskOutcome",
    "TaskStatus",
    "TokenUsage",
    "Tone",
    "WorldState",
]
