"""Shared fixtures: in-process provider clients that never reach the network."""

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest

from goap_kernel.gateway.retry import RetryPolicy
from goap_kernel.gateway.service import ProviderGateway
from goap_kernel.models.config import GatewayConfig, RetryConfig
from goap_kernel.models.provider import Completion, ProviderConfig, StreamChunk, TokenUsage

Scripted = Union[str, BaseException]


class FakeProviderClient:
    """
    Scripted ProviderClient.

    Each ``complete`` call consumes the next script item: a string is
    returned as the completion text, an exception is raised. The last item
    repeats once the script runs out.
    """

    def __init__(
        self,
        provider: str,
        script: Sequence[Scripted] = ("ok",),
        chunks: Sequence[str] = (),
        stream_error: Optional[BaseException] = None,
        send_done: bool = True,
        delay: float = 0.0,
    ):
        self.provider = provider
        self.script: List[Scripted] = list(script)
        self.chunks = list(chunks)
        self.stream_error = stream_error
        self.send_done = send_done
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def complete(self, *, model, prompt, temperature, max_tokens, json_schema=None) -> Completion:
        self.calls.append({
            "model": model,
            "prompt": prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "json_schema": json_schema,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return Completion(
            text=item,
            usage=TokenUsage(prompt_tokens=3, completion_tokens=5, total_tokens=8),
        )

    async def stream(self, *, model, prompt, temperature, max_tokens):
        self.calls.append({"model": model, "prompt": prompt, "stream": True})
        for piece in self.chunks:
            yield StreamChunk(content=piece)
        if self.stream_error is not None:
            raise self.stream_error
        if self.send_done:
            yield StreamChunk(content="", done=True, usage=TokenUsage(total_tokens=len(self.chunks)))

    async def close(self) -> None:
        self.closed = True


def make_gateway(*clients: FakeProviderClient, retries: int = 2, **config) -> ProviderGateway:
    """Gateway over ``clients`` with their order as the fallback order and no backoff delay."""
    order = [c.provider for c in clients]
    gateway_config = GatewayConfig(
        default_provider=order[0] if order else "anthropic",
        fallback_order=order,
        retry=RetryConfig(retries=retries, min_delay_seconds=0, max_delay_seconds=0),
        **config,
    )
    return ProviderGateway(
        {c.provider: c for c in clients},
        provider_configs={c.provider: ProviderConfig(provider=c.provider, model=f"{c.provider}-model") for c in clients},
        config=gateway_config,
        retry_policy=RetryPolicy(gateway_config.retry),
    )


@pytest.fixture
def fake_client():
    return FakeProviderClient


@pytest.fixture
def gateway_factory():
    return make_gateway
