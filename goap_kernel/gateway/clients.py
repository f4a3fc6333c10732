"""
Provider clients — the RPC boundary between the gateway and AI vendors.

The gateway only knows the ``ProviderClient`` protocol. The bundled adapter
talks to OpenAI and to the OpenAI-compatible endpoints that Anthropic and
Google expose, so one SDK covers all three vendors.

Every SDK failure is translated into ``TransientProviderError`` (worth a
retry) or ``PermanentProviderError`` (not worth one).
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, Iterable, Optional, Protocol

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)

from goap_kernel.errors import PermanentProviderError, ProviderError, TransientProviderError
from goap_kernel.models.provider import Completion, ProviderConfig, StreamChunk, TokenUsage

logger = logging.getLogger(__name__)

# OpenAI-compatible endpoints per vendor; None means the SDK default.
PROVIDER_BASE_URLS: Dict[str, Optional[str]] = {
    "openai": None,
    "anthropic": "https://api.anthropic.com/v1/",
    "google": "https://generativelanguage.googleapis.com/v1beta/openai/",
}

_RETRYABLE_STATUS_CODES = {408, 409, 425, 429, 500, 502, 503, 504}


class ProviderClient(Protocol):
    """What the gateway needs from a vendor."""

    provider: str

    async def complete(
        self,
        *,
        model: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
        json_schema: Optional[Dict[str, Any]] = None,
    ) -> Completion: ...

    def stream(
        self,
        *,
        model: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> AsyncIterator[StreamChunk]: ...

    async def close(self) -> None: ...


def classify_error(exc: BaseException, provider: str) -> ProviderError:
    """Map an SDK exception onto the transient/permanent split."""
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, (APITimeoutError, APIConnectionError, RateLimitError)):
        return TransientProviderError(str(exc), provider=provider)
    if isinstance(exc, APIStatusError):
        status = getattr(exc, "status_code", None)
        if isinstance(status, int) and status in _RETRYABLE_STATUS_CODES:
            return TransientProviderError(str(exc), provider=provider, status_code=status)
        return PermanentProviderError(str(exc), provider=provider, status_code=status)
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return TransientProviderError(str(exc), provider=provider)
    return PermanentProviderError(str(exc), provider=provider)


def _usage_from(raw: Any) -> TokenUsage:
    if raw is None:
        return TokenUsage()
    return TokenUsage(
        prompt_tokens=getattr(raw, "prompt_tokens", 0) or 0,
        completion_tokens=getattr(raw, "completion_tokens", 0) or 0,
        total_tokens=getattr(raw, "total_tokens", 0) or 0,
    )


class OpenAICompatibleClient:
    """``ProviderClient`` over the chat-completions API of the ``openai`` SDK."""

    def __init__(self, config: ProviderConfig, client: Optional[AsyncOpenAI] = None):
        self.provider = config.provider
        self.config = config
        if client is None:
            base_url = config.base_url or PROVIDER_BASE_URLS.get(config.provider)
            client_kwargs: Dict[str, Any] = {"api_key": config.api_key}
            if base_url:
                client_kwargs["base_url"] = base_url
            if config.organization:
                client_kwargs["organization"] = config.organization
            # Retries belong to the gateway's policy, not the SDK's.
            client_kwargs["max_retries"] = 0
            client = AsyncOpenAI(**client_kwargs)
        self._client = client

    async def complete(
        self,
        *,
        model: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
        json_schema: Optional[Dict[str, Any]] = None,
    ) -> Completion:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_schema is not None:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": json_schema.get("title", "response"),
                    "schema": json_schema,
                },
            }
        try:
            response = await self._client.chat.completions.create(**payload)
        except Exception as exc:
            raise classify_error(exc, self.provider) from exc

        choice = response.choices[0] if response.choices else None
        text = (choice.message.content if choice and choice.message else "") or ""
        return Completion(
            text=text,
            usage=_usage_from(getattr(response, "usage", None)),
            finish_reason=(choice.finish_reason if choice else None) or "stop",
        )

    async def stream(
        self,
        *,
        model: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> AsyncIterator[StreamChunk]:
        try:
            stream = await self._client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
                stream_options={"include_usage": True},
            )
            usage = TokenUsage()
            async for chunk in stream:
                if getattr(chunk, "usage", None) is not None:
                    usage = _usage_from(chunk.usage)
                for choice in chunk.choices or []:
                    delta = getattr(choice.delta, "content", None)
                    if delta:
                        yield StreamChunk(content=delta)
        except Exception as exc:
            raise classify_error(exc, self.provider) from exc
        yield StreamChunk(content="", done=True, usage=usage)

    async def close(self) -> None:
        await self._client.close()


def build_provider_clients(configs: Iterable[ProviderConfig]) -> Dict[str, ProviderClient]:
    """Instantiate a client per configured provider; providers without credentials are skipped."""
    clients: Dict[str, ProviderClient] = {}
    for config in configs:
        if not config.api_key:
            logger.warning("Provider %s has no API key configured, skipping", config.provider)
            continue
        clients[config.provider] = OpenAICompatibleClient(config)
        logger.info("Provider initialized: %s (default model %s)", config.provider, config.model)
    return clients
