"""Tests for the Performance Monitor."""

import logging

import pytest

from goap_kernel.models.config import MonitorConfig
from goap_kernel.observability.monitor import PerformanceMonitor, Timer, measure_async


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _make_monitor(clock=None, **config) -> PerformanceMonitor:
    return PerformanceMonitor(MonitorConfig(**config), clock=clock or FakeClock())


class TestRecording:
    def test_record_and_stats(self):
        monitor = _make_monitor()
        monitor.record("a", 10)
        monitor.record("a", 30)
        monitor.record("b", 20)

        stats = monitor.stats()
        assert stats.total_metrics == 3
        assert stats.average_duration_ms == 20
        assert stats.slowest_operation.duration_ms == 30
        assert stats.fastest_operation.name == "a"
        assert stats.operation_counts == {"a": 2, "b": 1}

    def test_empty_stats(self):
        stats = _make_monitor().stats()
        assert stats.total_metrics == 0
        assert stats.slowest_operation is None

    def test_bounded_by_count(self):
        monitor = _make_monitor(max_entries=3)
        for i in range(5):
            monitor.record(f"op{i}", i)

        assert [m.name for m in monitor.metrics()] == ["op2", "op3", "op4"]

    def test_bounded_by_age(self):
        clock = FakeClock()
        monitor = _make_monitor(clock, max_age_seconds=60)
        monitor.record("old", 1)
        clock.now += 61
        monitor.record("new", 1)

        assert [m.name for m in monitor.metrics()] == ["new"]

    def test_prune(self):
        clock = FakeClock()
        monitor = _make_monitor(clock, max_age_seconds=60)
        monitor.record("a", 1)
        clock.now += 120
        assert monitor.prune() == 1
        assert monitor.metrics() == []

    def test_stats_window(self):
        clock = FakeClock()
        monitor = _make_monitor(clock)
        monitor.record("early", 1)
        clock.now += 100
        monitor.record("late", 1)

        assert monitor.stats(window_seconds=50).operation_counts == {"late": 1}

    def test_slow_operation_warns(self, caplog):
        monitor = _make_monitor(slow_threshold_ms=100)
        with caplog.at_level(logging.WARNING, logger="goap_kernel.observability.monitor"):
            monitor.record("fast", 50)
            monitor.record("slow", 500)

        messages = [r.getMessage() for r in caplog.records]
        assert len(messages) == 1
        assert "slow" in messages[0]

    def test_shutdown_drops_further_records(self):
        monitor = _make_monitor()
        monitor.record("a", 1)
        monitor.shutdown()
        monitor.record("b", 1)

        assert monitor.closed is True
        assert monitor.metrics() == []


class TestTimer:
    def test_context_manager_records(self):
        monitor = _make_monitor()
        with Timer(monitor, "block", {"k": "v"}):
            pass

        metric = monitor.metrics()[0]
        assert metric.name == "block"
        assert metric.metadata == {"k": "v", "success": True}

    def test_records_failure(self):
        monitor = _make_monitor()
        with pytest.raises(ValueError):
            with Timer(monitor, "block"):
                raise ValueError("nope")

        assert monitor.metrics()[0].metadata["success"] is False

    def test_without_monitor(self):
        timer = Timer(None, "x")
        assert timer.end() >= 0


class TestMeasureAsync:
    async def test_returns_result_and_records(self):
        monitor = _make_monitor()

        async def work(x, y=1):
            return x + y

        assert await measure_async(monitor, "work", work, 2, y=3) == 5
        assert monitor.metrics()[0].metadata["success"] is True

    async def test_propagates_errors(self):
        monitor = _make_monitor()

        async def broken():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await measure_async(monitor, "broken", broken)

        metric = monitor.metrics()[0]
        assert metric.metadata == {"success": False, "error": "boom"}
