"""Provider-side models — configuration, requests and responses."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Fallback model per provider when neither the caller nor the config names one.
DEFAULT_MODELS = {
    "anthropic": "claude-3-5-sonnet-20241022",
    "openai": "gpt-4-turbo",
    "google": "gemini-1.5-pro",
}


class ProviderConfig(BaseModel):
    """Resolved settings for one provider. Credentials are opaque to the core."""

    model_config = ConfigDict(frozen=True)

    provider: str                           # e.g., "openai", "anthropic"
    model: str                              # Default model name
    api_key: Optional[str] = Field(default=None, repr=False)
    base_url: Optional[str] = None
    organization: Optional[str] = None


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class Completion(BaseModel):
    """Raw answer from a provider client, before gateway bookkeeping."""

    text: str
    usage: TokenUsage = TokenUsage()
    finish_reason: str = "stop"


class AIResponse(BaseModel):
    """Text generation result returned by the gateway. Shared by cache hits."""

    model_config = ConfigDict(frozen=True)

    content: str
    provider: str
    model: str
    usage: TokenUsage
    duration_ms: float
    finish_reason: str = "stop"


class StreamChunk(BaseModel):
    """One increment of a streamed generation; the last one has ``done=True``."""

    content: str
    done: bool = False
    usage: Optional[TokenUsage] = None


class GenerationOptions(BaseModel):
    """Per-call knobs accepted by the gateway."""

    model: Optional[str] = None
    provider: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = Field(default=4000, gt=0)
    use_cache: bool = True
    timeout_seconds: Optional[float] = Field(default=None, gt=0)
