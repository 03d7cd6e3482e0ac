"""
Result Cache Tests
"""

from unittest.mock import MagicMock

import pytest

from metadata_portal.core.cache import (
    CacheKeys,
    InMemoryCache,
    InvalidationTracker,
    safe_delete,
    safe_delete_prefix,
    safe_get,
    safe_set,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return InMemoryCache(default_ttl_ms=60_000, clock=clock)


class TestExpiry:

    def test_hit_before_expiry(self, cache, clock):
        cache.set("k", {"a": 1}, 1000)
        clock.advance(0.999)
        assert cache.get("k") == {"a": 1}

    def test_miss_at_expiry_and_entry_evicted(self, cache, clock):
        cache.set("k", "v", 1000)
        clock.advance(1.0)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_default_ttl(self, cache, clock):
        cache.set("k", "v")
        clock.advance(59)
        assert cache.has("k")
        clock.advance(1)
        assert not cache.has("k")

    def test_set_replaces_and_resets_expiry(self, cache, clock):
        cache.set("k", "old", 1000)
        clock.advance(0.5)
        cache.set("k", "new", 1000)
        clock.advance(0.8)
        assert cache.get("k") == "new"

    def test_none_is_not_cached(self, cache):
        cache.set("k", None, 1000)
        assert len(cache) == 0

    def test_cleanup_evicts_only_expired(self, cache, clock):
        cache.set("short", 1, 1000)
        cache.set("long", 2, 10_000)
        clock.advance(5)
        assert cache.cleanup() == 1
        assert cache.stats()["keys"] == ["long"]


class TestInvalidation:

    def test_delete(self, cache):
        cache.set("k", "v", 1000)
        assert cache.delete("k") is True
        assert cache.delete("k") is False
        assert cache.get("k") is None

    def test_delete_prefix(self, cache):
        cache.set(CacheKeys.metadata_record("1"), "a", 1000)
        cache.set(CacheKeys.metadata_record("2"), "b", 1000)
        cache.set("metadata:other", [], 1000)
        cache.set(CacheKeys.SEARCH_FACETS, "facets", 1000)

        removed = cache.delete_prefix(CacheKeys.METADATA_PREFIX)

        assert removed == 3
        assert cache.get(CacheKeys.SEARCH_FACETS) == "facets"

    def test_clear(self, cache):
        cache.set("a", 1, 1000)
        cache.set("b", 2, 1000)
        cache.clear()
        assert len(cache) == 0


class TestKeys:

    def test_key_formats(self):
        assert CacheKeys.SEARCH_FACETS == "search:facets"
        assert CacheKeys.metadata_record("abc") == "metadata:abc"
        assert CacheKeys.metadata_record("abc").startswith(CacheKeys.METADATA_PREFIX)


class TestInvalidationTracker:

    def test_token_is_stable_until_bumped(self):
        tracker = InvalidationTracker()
        token = tracker.token(CacheKeys.SEARCH_FACETS)
        assert tracker.is_current(CacheKeys.SEARCH_FACETS, token)

        tracker.bump(CacheKeys.SEARCH_FACETS)

        assert not tracker.is_current(CacheKeys.SEARCH_FACETS, token)

    def test_scopes_are_independent(self):
        tracker = InvalidationTracker()
        token = tracker.token(CacheKeys.METADATA_PREFIX)
        tracker.bump(CacheKeys.SEARCH_FACETS)
        assert tracker.is_current(CacheKeys.METADATA_PREFIX, token)


class TestFailOpen:

    @pytest.fixture
    def broken(self):
        backend = MagicMock()
        backend.get.side_effect = RuntimeError("down")
        backend.set.side_effect = RuntimeError("down")
        backend.delete.side_effect = RuntimeError("down")
        backend.delete_prefix.side_effect = RuntimeError("down")
        return backend

    def test_read_error_is_a_miss(self, broken):
        assert safe_get(broken, "k") is None

    def test_write_and_delete_errors_are_swallowed(self, broken):
        safe_set(broken, "k", "v", 1000)
        safe_delete(broken, "k")
        safe_delete_prefix(broken, "metadata:")
        broken.set.assert_called_once_with("k", "v", 1000)
