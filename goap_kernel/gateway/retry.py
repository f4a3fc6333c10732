"""Bounded retry with increasing backoff for provider calls."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from goap_kernel.models.config import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """
    Transient failures are worth another attempt; permanent ones are not.

    Kernel provider errors declare ``retryable``; built-in network and
    timeout errors are treated as transient.
    """
    flag = getattr(exc, "retryable", None)
    if flag is not None:
        return bool(flag)
    return isinstance(exc, (TimeoutError, asyncio.TimeoutError, ConnectionError))


class RetryPolicy:
    """
    Retry budget plus backoff schedule.

    Attempt ``n`` (0-based) that fails waits
    ``min(max_delay, min_delay * factor ** n)`` before attempt ``n + 1``.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep

    @property
    def retries(self) -> int:
        return self.config.retries

    def delay_for(self, attempt: int) -> float:
        cfg = self.config
        cap = max(cfg.min_delay_seconds, cfg.max_delay_seconds)
        return min(cap, cfg.min_delay_seconds * (cfg.factor ** attempt))

    async def run(
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        label: str = "",
        on_retry: Optional[Callable[[BaseException, int], None]] = None,
    ) -> T:
        """Call ``fn`` until it succeeds, a permanent error occurs, or the budget runs out."""
        attempt = 0
        while True:
            try:
                return await fn()
            except Exception as exc:
                if not is_retryable(exc) or attempt >= self.config.retries:
                    raise
                delay = self.delay_for(attempt)
                attempt += 1
                if on_retry is not None:
                    on_retry(exc, attempt)
                logger.warning(
                    "Retrying %s (attempt %d/%d) in %.2fs: %s",
                    label or "call",
                    attempt,
                    self.config.retries,
                    delay,
                    exc,
                )
                await self._sleep(delay)
