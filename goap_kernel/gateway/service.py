"""
Provider Gateway — multi-provider generation with caching, retry and fallback.

Behavioral Contract:
- generate_text consults the cache, then tries providers in order
  (caller's single provider, or the configured fallback order)
- Transient provider errors are retried locally up to the retry budget;
  only then does the cascade move to the next provider
- A terminal error is raised only after every candidate provider failed
- generate_object and stream_text use a single provider (no cascade)
- health_check bypasses the cache
"""

import asyncio
import hashlib
import json
import logging
import time
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

from goap_kernel.errors import (
    AllProvidersFailed,
    ModelUnavailable,
    ObjectGenerationFailed,
    StreamFailed,
    TransientProviderError,
)
from goap_kernel.gateway.cache import CacheStats, ResponseCache
from goap_kernel.gateway.clients import ProviderClient
from goap_kernel.gateway.retry import RetryPolicy
from goap_kernel.models.config import GatewayConfig
from goap_kernel.models.provider import (
    DEFAULT_MODELS,
    AIResponse,
    Completion,
    GenerationOptions,
    ProviderConfig,
    StreamChunk,
)
from goap_kernel.observability.monitor import PerformanceMonitor, measure_async

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_PROMPT_KEY_CHARS = 100


class ProviderGateway:
    """Single entry point actions use to reach generative-AI providers."""

    def __init__(
        self,
        clients: Mapping[str, ProviderClient],
        provider_configs: Optional[Mapping[str, ProviderConfig]] = None,
        config: Optional[GatewayConfig] = None,
        cache: Optional[ResponseCache] = None,
        retry_policy: Optional[RetryPolicy] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ):
        self.config = config or GatewayConfig()
        self._clients: Dict[str, ProviderClient] = dict(clients)
        self._provider_configs: Dict[str, ProviderConfig] = dict(provider_configs or {})
        self.cache = cache or ResponseCache(self.config.cache)
        self.retry_policy = retry_policy or RetryPolicy(self.config.retry)
        self.monitor = monitor

    @property
    def fallback_order(self) -> List[str]:
        return list(self.config.fallback_order)

    @property
    def providers(self) -> List[str]:
        return list(self._clients)

    # --- Resolution ---

    def default_model(self, provider: str) -> str:
        cfg = self._provider_configs.get(provider)
        if cfg is not None:
            return cfg.model
        return DEFAULT_MODELS.get(provider, "")

    def resolve(self, provider: str, model: Optional[str] = None) -> Tuple[ProviderClient, str]:
        """Client and model name for ``provider``; ``ModelUnavailable`` if either is missing."""
        client = self._clients.get(provider)
        model_name = model or self.default_model(provider)
        if client is None or not model_name:
            raise ModelUnavailable(f"Model not available for provider {provider}", provider=provider)
        return client, model_name

    def _single_provider(self, options: GenerationOptions) -> str:
        if options.provider:
            return options.provider
        if self.config.fallback_order:
            return self.config.fallback_order[0]
        return self.config.default_provider

    @staticmethod
    def cache_key(kind: str, prompt: str, options: GenerationOptions, schema: Optional[str] = None) -> str:
        """Canonical cache key for a request."""
        key = {
            "type": kind,
            "prompt": prompt[:_PROMPT_KEY_CHARS],
            "prompt_digest": hashlib.sha256(prompt.encode("utf-8")).hexdigest(),
            "model": options.model,
            "provider": options.provider,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            "schema": schema,
        }
        return hashlib.sha256(json.dumps(key, sort_keys=True).encode("utf-8")).hexdigest()

    async def _call(self, coro_factory, timeout: Optional[float], provider: str):
        """Await one provider call, converting an exceeded deadline into a transient error."""
        deadline = timeout or self.config.timeout_seconds
        if deadline is None:
            return await coro_factory()
        try:
            return await asyncio.wait_for(coro_factory(), timeout=deadline)
        except asyncio.TimeoutError as exc:
            raise TransientProviderError(
                f"Request to {provider} exceeded {deadline}s", provider=provider
            ) from exc

    # --- Text ---

    async def generate_text(self, prompt: str, options: Optional[GenerationOptions] = None) -> AIResponse:
        """Generate text with automatic provider fallback."""
        options = options or GenerationOptions()
        return await measure_async(
            self.monitor,
            "llm_generate_text",
            self._generate_text,
            prompt,
            options,
            metadata={"provider": options.provider},
        )

    async def _generate_text(self, prompt: str, options: GenerationOptions) -> AIResponse:
        cache_key = self.cache_key("text", prompt, options) if options.use_cache else None
        if cache_key is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Cache hit for text generation", extra={"cache_key": cache_key})
                return cached

        start = time.monotonic()
        candidates = [options.provider] if options.provider else self.fallback_order
        attempted: List[str] = []
        failures: List[Dict[str, Any]] = []
        last_error: Optional[BaseException] = None

        for provider in candidates:
            attempted.append(provider)
            attempts = 0
            try:
                client, model = self.resolve(provider, options.model)

                async def attempt() -> Completion:
                    nonlocal attempts
                    attempts += 1
                    return await self._call(
                        lambda: client.complete(
                            model=model,
                            prompt=prompt,
                            temperature=options.temperature,
                            max_tokens=options.max_tokens,
                        ),
                        options.timeout_seconds,
                        provider,
                    )

                completion = await self.retry_policy.run(attempt, label=f"{provider}:{model}")
            except Exception as exc:
                last_error = exc
                failures.append({
                    "provider": provider,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "attempts": attempts,
                })
                logger.warning("Provider %s failed, trying next: %s", provider, exc)
                continue

            result = AIResponse(
                content=completion.text,
                provider=provider,
                model=model,
                usage=completion.usage,
                duration_ms=(time.monotonic() - start) * 1000.0,
                finish_reason=completion.finish_reason,
            )
            if cache_key is not None:
                self.cache.set(cache_key, result)
            logger.info(
                "Text generation successful via %s in %.0fms (%d tokens)",
                provider,
                result.duration_ms,
                result.usage.total_tokens,
            )
            return result

        error = AllProvidersFailed(attempted, failures, last_error)
        logger.error(
            "Text generation failed: %s",
            error.message,
            extra={"providers_attempted": attempted},
        )
        raise error from last_error

    # --- Structured objects ---

    async def generate_object(
        self,
        schema: Type[M],
        prompt: str,
        options: Optional[GenerationOptions] = None,
    ) -> M:
        """Generate an instance of ``schema`` (a pydantic model) from one provider."""
        options = options or GenerationOptions()
        return await measure_async(
            self.monitor,
            "llm_generate_object",
            self._generate_object,
            schema,
            prompt,
            options,
            metadata={"schema": schema.__name__},
        )

    async def _generate_object(self, schema: Type[M], prompt: str, options: GenerationOptions) -> M:
        schema_id = f"{schema.__module__}.{schema.__qualname__}"
        cache_key = self.cache_key("object", prompt, options, schema=schema_id) if options.use_cache else None
        if cache_key is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        provider = self._single_provider(options)
        client, model = self.resolve(provider, options.model)

        try:
            completion = await self._call(
                lambda: client.complete(
                    model=model,
                    prompt=prompt,
                    temperature=options.temperature,
                    max_tokens=options.max_tokens,
                    json_schema=schema.model_json_schema(),
                ),
                options.timeout_seconds,
                provider,
            )
            value = schema.model_validate_json(_strip_code_fence(completion.text))
        except Exception as exc:
            message = f"Object generation failed: {exc}"
            logger.error(message, extra={"provider": provider, "schema": schema_id})
            raise ObjectGenerationFailed(message, provider=provider, cause=exc) from exc

        if cache_key is not None:
            self.cache.set(cache_key, value)
        return value

    # --- Streaming ---

    async def stream_text(
        self,
        prompt: str,
        options: Optional[GenerationOptions] = None,
    ) -> AsyncIterator[StreamChunk]:
        """
        Yield content increments, then a final ``done`` chunk with usage.

        The sequence is lazy, finite and not restartable. A consumer may stop
        iterating at any point; provider work already in flight is not
        guaranteed to stop.
        """
        options = options or GenerationOptions()
        provider = self._single_provider(options)
        client, model = self.resolve(provider, options.model)

        finished = False
        try:
            async for chunk in client.stream(
                model=model,
                prompt=prompt,
                temperature=options.temperature,
                max_tokens=options.max_tokens,
            ):
                if chunk.done:
                    finished = True
                yield chunk
        except Exception as exc:
            raise StreamFailed(
                f"Stream generation failed: {exc}", provider=provider, cause=exc
            ) from exc
        if not finished:
            yield StreamChunk(content="", done=True)

    # --- Operations ---

    async def health_check(self) -> Dict[str, bool]:
        """Minimal cache-bypassing request per configured provider."""
        results: Dict[str, bool] = {}
        for provider in self.fallback_order:
            try:
                await self.generate_text(
                    "Hello",
                    GenerationOptions(
                        provider=provider,
                        max_tokens=10,
                        use_cache=False,
                        timeout_seconds=5.0,
                    ),
                )
                results[provider] = True
            except Exception as exc:
                logger.info("Health check failed for %s: %s", provider, exc)
                results[provider] = False
        return results

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("LLM cache cleared")

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    async def close(self) -> None:
        for provider, client in self._clients.items():
            close = getattr(client, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception:
                logger.exception("Failed to close provider client %s", provider)


def _strip_code_fence(text: str) -> str:
    """Some providers wrap JSON in a markdown fence even in JSON mode."""
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()
