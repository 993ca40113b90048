"""
Response Cache Tests
--------------------
Tests cover:
- Lazy TTL expiration
- Overwrite semantics (fresh single access)
- LFU eviction with LRU tiebreak
- Tag invalidation and stats
- Thread safety of the size bound
"""

import asyncio
import threading

import pytest

from cache.response_cache import ResponseCache


class TestGetSet:
    """Basic read/write behaviour."""

    def test_missing_key_returns_none(self, clock):
        cache = ResponseCache(clock=clock)

        assert cache.get("nope") is None

    def test_set_then_get(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("k", {"id": 1})

        assert cache.get("k") == {"id": 1}

    def test_overwrite_returns_latest_value(self, clock):
        """set(k, v1); set(k, v2); get(k) == v2."""
        cache = ResponseCache(clock=clock)
        cache.set("k", "v1")
        cache.set("k", "v2")

        assert cache.get("k") == "v2"
        assert cache.size() == 1

    def test_overwrite_resets_access_count(self, clock):
        """A rewrite counts as one fresh access, not accumulated usage."""
        cache = ResponseCache(max_size=2, clock=clock)
        cache.set("hot", 1)
        for _ in range(5):
            cache.get("hot")
        clock.advance(1)
        cache.set("other", 2)
        cache.get("other")  # access_count 2
        clock.advance(1)
        cache.set("hot", 10)  # back to access_count 1

        cache.set("new", 3)

        assert cache.get("hot") is None
        assert cache.get("other") == 2

    def test_clear_removes_everything(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.clear()

        assert cache.size() == 0
        assert cache.get("a") is None

    def test_rejects_invalid_bounds(self):
        with pytest.raises(ValueError):
            ResponseCache(max_size=0)
        with pytest.raises(ValueError):
            ResponseCache(ttl_seconds=0)


class TestExpiry:
    """Tests for lazy TTL expiration."""

    def test_entry_expires_after_ttl(self, clock):
        cache = ResponseCache(ttl_seconds=300, clock=clock)
        cache.set("k", "v")

        clock.advance(301)

        assert cache.get("k") is None

    def test_entry_alive_at_exactly_ttl(self, clock):
        cache = ResponseCache(ttl_seconds=300, clock=clock)
        cache.set("k", "v")

        clock.advance(300)

        assert cache.get("k") == "v"

    def test_expired_entries_count_until_read(self, clock):
        """No background sweep: size includes stale entries."""
        cache = ResponseCache(ttl_seconds=10, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        clock.advance(11)

        assert cache.size() == 2
        cache.get("a")
        assert cache.size() == 1

    def test_reads_do_not_extend_ttl(self, clock):
        cache = ResponseCache(ttl_seconds=10, clock=clock)
        cache.set("k", "v")
        clock.advance(8)
        assert cache.get("k") == "v"

        clock.advance(3)

        assert cache.get("k") is None

    def test_overwrite_restarts_ttl(self, clock):
        cache = ResponseCache(ttl_seconds=10, clock=clock)
        cache.set("k", "v1")
        clock.advance(8)
        cache.set("k", "v2")
        clock.advance(8)

        assert cache.get("k") == "v2"


class TestEviction:
    """Tests for LFU-primary / LRU-tiebreak eviction."""

    def test_size_never_exceeds_max(self, clock):
        cache = ResponseCache(max_size=3, clock=clock)
        for i in range(10):
            cache.set(f"k{i}", i)
            clock.advance(1)
            assert cache.size() <= 3

    def test_evicts_lowest_access_count(self, clock):
        """Frequently read keys survive even if inserted earlier."""
        cache = ResponseCache(max_size=3, clock=clock)
        cache.set("live", 1)
        clock.advance(1)
        cache.set("rare", 2)
        clock.advance(1)
        cache.set("warm", 3)
        for _ in range(3):
            cache.get("live")
        cache.get("warm")
        clock.advance(1)

        cache.set("new", 4)

        assert cache.get("rare") is None
        assert cache.get("live") == 1
        assert cache.get("warm") == 3
        assert cache.get("new") == 4

    def test_tie_broken_by_oldest_last_access(self, clock):
        cache = ResponseCache(max_size=2, clock=clock)
        cache.set("a", 1)
        clock.advance(1)
        cache.set("b", 2)
        clock.advance(1)
        cache.get("a")
        clock.advance(1)
        cache.get("b")  # both at access_count 2, "a" touched earlier
        clock.advance(1)

        cache.set("c", 3)

        assert cache.get("a") is None
        assert cache.get("b") == 2

    def test_overwriting_existing_key_in_full_cache_does_not_evict(self, clock):
        cache = ResponseCache(max_size=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.set("a", 100)

        assert cache.size() == 2
        assert cache.get("b") == 2
        assert cache.get_stats().evictions == 0

    def test_evicts_exactly_one(self, clock):
        cache = ResponseCache(max_size=5, clock=clock)
        for i in range(5):
            cache.set(i, i)
            clock.advance(1)

        cache.set("extra", 0)

        assert cache.size() == 5
        assert cache.get_stats().evictions == 1

    def test_concurrent_inserts_respect_bound(self):
        cache = ResponseCache(max_size=20)

        def writer(prefix):
            for i in range(200):
                cache.set(f"{prefix}-{i}", i)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert cache.size() == 20


class TestHelpers:
    """Tests for has/delete/tags/stats/get_or_fetch."""

    def test_has_does_not_count_as_access(self, clock):
        cache = ResponseCache(max_size=2, clock=clock)
        cache.set("a", 1)
        clock.advance(1)
        cache.set("b", 2)
        for _ in range(3):
            assert cache.has("a")
        clock.advance(1)

        cache.set("c", 3)

        assert not cache.has("a")

    def test_has_expires_stale_entry(self, clock):
        cache = ResponseCache(ttl_seconds=5, clock=clock)
        cache.set("a", 1)
        clock.advance(6)

        assert not cache.has("a")
        assert cache.size() == 0

    def test_delete(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("a", 1)

        assert cache.delete("a")
        assert not cache.delete("a")

    def test_invalidate_tag(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("m1", 1, tags=["api", "matches"])
        cache.set("m2", 2, tags=["api", "matches"])
        cache.set("t1", 3, tags=["api", "teams"])

        removed = cache.invalidate_tag("matches")

        assert removed == 2
        assert cache.get("t1") == 3
        assert cache.size() == 1

    def test_stats(self, clock):
        cache = ResponseCache(ttl_seconds=10, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.get("missing")
        clock.advance(11)

        stats = cache.get_stats()

        assert stats.total_items == 2
        assert stats.expired_items == 2
        assert stats.valid_items == 0
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5

    def test_get_or_fetch_calls_fetcher_once(self, clock):
        cache = ResponseCache(clock=clock)
        calls = []

        async def fetcher():
            calls.append(1)
            return [{"id": 1}]

        async def scenario():
            first = await cache.get_or_fetch("k", fetcher)
            second = await cache.get_or_fetch("k", fetcher)
            return first, second

        first, second = asyncio.run(scenario())

        assert first == second == [{"id": 1}]
        assert len(calls) == 1

    def test_default_tells_miss_from_cached_none(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("null-body", None)
        marker = object()

        assert cache.get("null-body", marker) is None
        assert cache.get("absent", marker) is marker

    def test_get_or_fetch_caches_none(self, clock):
        cache = ResponseCache(clock=clock)
        calls = []

        async def fetcher():
            calls.append(1)
            return None

        async def scenario():
            await cache.get_or_fetch("k", fetcher)
            return await cache.get_or_fetch("k", fetcher)

        assert asyncio.run(scenario()) is None
        assert len(calls) == 1

    def test_get_or_fetch_propagates_errors(self, clock):
        cache = ResponseCache(clock=clock)

        async def fetcher():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            asyncio.run(cache.get_or_fetch("k", fetcher))
        assert cache.size() == 0
