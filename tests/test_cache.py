"""Tests for the TTL cache."""

import threading

from conftest import FakeClock
from utils.cache import TTLCache


class TestTTLCache:

    def test_get_returns_value_before_expiry(self, cache):
        cache.set("k", {"v": 1}, ttl=0.1)
        assert cache.get("k") == {"v": 1}

    def test_entry_absent_after_ttl(self, cache, clock):
        cache.set("k", "v", ttl=0.1)
        clock.advance(0.05)
        assert cache.get("k") == "v"
        clock.advance(0.051)
        assert cache.get("k") is None

    def test_entry_still_present_at_exact_ttl(self):
        clock = FakeClock(0.0)
        cache = TTLCache(clock=clock)
        cache.set("k", "v", ttl=0.5)
        clock.advance(0.5)
        assert cache.get("k") == "v"
        clock.advance(0.25)
        assert cache.get("k") is None

    def test_missing_key_returns_default(self, cache):
        assert cache.get("nope") is None
        assert cache.get("nope", "fallback") == "fallback"

    def test_expired_read_evicts(self, cache, clock):
        cache.set("a", 1, ttl=1)
        cache.set("b", 2, ttl=10)
        clock.advance(2)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.size() == 1

    def test_size_skips_expired_entries(self, cache, clock):
        cache.set("a", 1, ttl=1)
        cache.set("b", 2, ttl=10)
        clock.advance(2)
        assert cache.size() == 1
        assert len(cache) == 1
        clock.advance(10)
        assert cache.size() == 0

    def test_set_resets_expiry(self, cache, clock):
        cache.set("k", "old", ttl=1)
        clock.advance(0.9)
        cache.set("k", "new", ttl=1)
        clock.advance(0.9)
        assert cache.get("k") == "new"

    def test_default_ttl_used_when_not_given(self, clock):
        cache = TTLCache(ttl_seconds=5, clock=clock)
        cache.set("k", "v")
        clock.advance(4)
        assert cache.get("k") == "v"
        clock.advance(2)
        assert cache.get("k") is None

    def test_delete_clear_and_size(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        assert len(cache) == 2
        cache.delete("a")
        cache.delete("missing")
        assert cache.size() == 1
        cache.clear()
        assert cache.size() == 0

    def test_concurrent_writers(self, cache):
        def worker(n):
            for i in range(200):
                cache.set(f"{n}:{i}", i)
                cache.get(f"{n}:{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert cache.size() == 8 * 200
