"""
Performance Monitor — duration recording for planner, executor and gateway.

Constructed once by the host and passed to the components that need it.
Retained history is bounded by count and by age so a long-running process
cannot grow it without limit.

Instrumentation is explicit: wrap the call site with ``measure_async`` or
a ``Timer`` instead of decorating methods.
"""

import logging
import threading
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, TypeVar

from pydantic import BaseModel

from goap_kernel.models.config import MonitorConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PerformanceMetric(BaseModel):
    name: str
    duration_ms: float
    timestamp: float                        # Wall-clock seconds since epoch
    metadata: Dict[str, Any] = {}


class PerformanceStats(BaseModel):
    total_metrics: int
    average_duration_ms: float
    slowest_operation: Optional[PerformanceMetric] = None
    fastest_operation: Optional[PerformanceMetric] = None
    operation_counts: Dict[str, int] = {}


class PerformanceMonitor:
    """Thread-safe, bounded store of timing metrics."""

    def __init__(
        self,
        config: Optional[MonitorConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or MonitorConfig()
        self._clock = clock
        self._metrics: Deque[PerformanceMetric] = deque(maxlen=self.config.max_entries)
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def record(
        self,
        name: str,
        duration_ms: float,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record one measurement; the oldest entries fall off past capacity."""
        if self._closed:
            logger.debug("Monitor is shut down, dropping metric %s", name)
            return

        metric = PerformanceMetric(
            name=name,
            duration_ms=float(duration_ms),
            timestamp=self._clock(),
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._metrics.append(metric)
            self._prune_locked(metric.timestamp)

        if duration_ms > self.config.slow_threshold_ms:
            logger.warning(
                "Slow operation detected: %s took %.1fms (threshold %.1fms)",
                name,
                duration_ms,
                self.config.slow_threshold_ms,
                extra={"operation": name, "duration_ms": duration_ms, "metadata": metric.metadata},
            )
        else:
            logger.debug("%s took %.1fms", name, duration_ms)

    def _prune_locked(self, now: float) -> int:
        cutoff = now - self.config.max_age_seconds
        removed = 0
        while self._metrics and self._metrics[0].timestamp < cutoff:
            self._metrics.popleft()
            removed += 1
        return removed

    def prune(self) -> int:
        """Drop metrics older than the configured max age. Returns the count removed."""
        with self._lock:
            removed = self._prune_locked(self._clock())
        if removed:
            logger.debug("Cleaned up %d old performance metrics", removed)
        return removed

    def metrics(self) -> list:
        """Snapshot of retained metrics, oldest first."""
        with self._lock:
            return list(self._metrics)

    def stats(self, window_seconds: Optional[float] = None) -> PerformanceStats:
        """Aggregate retained metrics, optionally only those within a recent window."""
        now = self._clock()
        with self._lock:
            relevant = [
                m for m in self._metrics
                if window_seconds is None or now - m.timestamp <= window_seconds
            ]

        if not relevant:
            return PerformanceStats(total_metrics=0, average_duration_ms=0.0)

        counts: Dict[str, int] = {}
        for m in relevant:
            counts[m.name] = counts.get(m.name, 0) + 1

        return PerformanceStats(
            total_metrics=len(relevant),
            average_duration_ms=sum(m.duration_ms for m in relevant) / len(relevant),
            slowest_operation=max(relevant, key=lambda m: m.duration_ms),
            fastest_operation=min(relevant, key=lambda m: m.duration_ms),
            operation_counts=counts,
        )

    def clear(self) -> None:
        with self._lock:
            self._metrics.clear()
        logger.info("Performance metrics cleared")

    def shutdown(self) -> None:
        """Release retained history. Called by the host's lifecycle manager."""
        self.clear()
        self._closed = True


class Timer:
    """
    Manual timer; also usable as a context manager.

        with Timer(monitor, "planning", {"goal": name}):
            ...
    """

    def __init__(
        self,
        monitor: Optional[PerformanceMonitor],
        name: str,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.monitor = monitor
        self.name = name
        self.metadata = dict(metadata or {})
        self._start = time.perf_counter()

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000.0

    def reset(self) -> None:
        self._start = time.perf_counter()

    def end(self, metadata: Optional[Dict[str, Any]] = None) -> float:
        duration = self.elapsed_ms()
        if self.monitor is not None:
            merged = dict(self.metadata)
            merged.update(metadata or {})
            self.monitor.record(self.name, duration, merged)
        return duration

    def __enter__(self) -> "Timer":
        self.reset()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is None:
            self.end({"success": True})
        else:
            self.end({"success": False, "error": str(exc)})


async def measure_async(
    monitor: Optional[PerformanceMonitor],
    name: str,
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    metadata: Optional[Dict[str, Any]] = None,
    **kwargs: Any,
) -> T:
    """Await ``fn(*args, **kwargs)`` and record its duration under ``name``."""
    timer = Timer(monitor, name, metadata)
    try:
        result = await fn(*args, **kwargs)
    except BaseException as exc:
        timer.end({"success": False, "error": str(exc)})
        raise
    timer.end({"success": True})
    return result
