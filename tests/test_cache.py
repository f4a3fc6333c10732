"""Tests for the Response Cache."""

from goap_kernel.gateway.cache import ResponseCache
from goap_kernel.models.config import CacheConfig, EvictionPolicy


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_cache(clock=None, **config) -> ResponseCache:
    return ResponseCache(CacheConfig(**config), clock=clock or FakeClock())


class TestTTL:
    def test_set_then_get(self):
        cache = _make_cache(ttl_seconds=60)
        cache.set("k", "v")
        assert cache.get("k") == "v"

    def test_expired_read_is_miss_and_discards(self):
        clock = FakeClock()
        cache = _make_cache(clock, ttl_seconds=60)
        cache.set("k", "v")

        clock.advance(60)

        assert cache.get("k") is None
        assert len(cache) == 0
        assert cache.stats().misses == 1

    def test_just_before_expiry_is_hit(self):
        clock = FakeClock()
        cache = _make_cache(clock, ttl_seconds=60)
        cache.set("k", "v")
        clock.advance(59.9)
        assert cache.get("k") == "v"

    def test_reset_refreshes_ttl(self):
        clock = FakeClock()
        cache = _make_cache(clock, ttl_seconds=10)
        cache.set("k", "v1")
        clock.advance(8)
        cache.set("k", "v2")
        clock.advance(8)
        assert cache.get("k") == "v2"

    def test_contains_honors_ttl_without_counting(self):
        clock = FakeClock()
        cache = _make_cache(clock, ttl_seconds=5)
        cache.set("k", "v")
        assert "k" in cache
        clock.advance(5)
        assert "k" not in cache
        stats = cache.stats()
        assert stats.hits == 0
        assert stats.misses == 0

    def test_purge_expired(self):
        clock = FakeClock()
        cache = _make_cache(clock, ttl_seconds=5)
        cache.set("a", 1)
        clock.advance(3)
        cache.set("b", 2)
        clock.advance(3)
        assert cache.purge_expired() == 1
        assert "b" in cache


class TestEviction:
    def test_evicts_earliest_inserted(self):
        cache = _make_cache(max_size=3)
        for key in ("a", "b", "c"):
            cache.set(key, key)

        # Reading "a" does not protect it under insertion-order eviction.
        assert cache.get("a") == "a"
        cache.set("d", "d")

        assert cache.get("a") is None
        assert cache.get("b") == "b"
        assert cache.get("d") == "d"
        assert len(cache) == 3

    def test_access_policy_evicts_least_recently_read(self):
        cache = _make_cache(max_size=3, eviction=EvictionPolicy.ACCESS)
        for key in ("a", "b", "c"):
            cache.set(key, key)

        cache.get("a")
        cache.set("d", "d")

        assert cache.get("a") == "a"
        assert cache.get("b") is None

    def test_reinsert_moves_to_newest(self):
        cache = _make_cache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 3)
        cache.set("c", 4)

        assert cache.get("b") is None
        assert cache.get("a") == 3


class TestStats:
    def test_hit_rate(self):
        cache = _make_cache(max_size=10)
        cache.set("k", "v")
        cache.get("k")
        cache.get("k")
        cache.get("k")
        cache.get("missing")

        stats = cache.stats()
        assert stats.hits == 3
        assert stats.misses == 1
        assert stats.hit_rate == 0.75
        assert stats.size == 1
        assert stats.capacity == 10

    def test_empty_hit_rate_is_zero(self):
        assert _make_cache().stats().hit_rate == 0.0

    def test_clear_resets_counters(self):
        cache = _make_cache()
        cache.set("k", "v")
        cache.get("k")
        cache.get("nope")
        cache.clear()

        stats = cache.stats()
        assert stats.size == 0
        assert stats.hits == 0
        assert stats.misses == 0

    def test_delete(self):
        cache = _make_cache()
        cache.set("k", "v")
        assert cache.delete("k") is True
        assert cache.delete("k") is False
