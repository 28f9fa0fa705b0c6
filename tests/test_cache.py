"""
Cache Tests

Run with: pytest tests/test_cache.py -v
"""

import pytest
from hypothesis import given, strategies as st

from seanotes.cache import (
    TTLCache,
    cache_notes_listing,
    get_all_stats,
    get_cache,
    hash_content,
    invalidate_user_notes,
    notes_cache,
    notes_generation,
    notes_list_key,
)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(max_size=3, default_ttl=10, clock=clock)


class TestTTL:

    def test_get_returns_stored_value(self, cache):
        cache.set("a", {"x": 1})
        assert cache.get("a") == {"x": 1}
        assert cache.has("a")

    def test_entry_expires_after_ttl(self, cache, clock):
        cache.set("a", 1)

        clock.advance(10)
        assert cache.get("a") == 1

        clock.advance(0.5)
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self, cache, clock):
        cache.set("short", 1, ttl=2)
        cache.set("zero", 2, ttl=0)

        clock.advance(5)
        assert cache.get("short") is None
        assert cache.get("zero") == 2

    def test_set_purges_expired_entries(self, cache, clock):
        cache.set("a", 1, ttl=1)
        cache.set("b", 2, ttl=1)
        clock.advance(2)

        cache.set("c", 3)
        assert len(cache) == 1

    def test_cleanup_expired(self, cache, clock):
        cache.set("a", 1, ttl=1)
        cache.set("b", 2)
        clock.advance(2)

        assert cache.cleanup_expired() == 1
        assert len(cache) == 1


class TestEviction:

    def test_least_recently_accessed_is_evicted(self, cache, clock):
        cache.set("a", 1)
        clock.advance(1)
        cache.set("b", 2)
        clock.advance(1)
        cache.set("c", 3)
        clock.advance(1)
        cache.get("a")
        clock.advance(1)

        cache.set("d", 4)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("d") == 4

    def test_overwrite_does_not_evict(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        cache.set("a", 10)

        assert len(cache) == 3
        assert cache.get("a") == 10

    @given(keys=st.lists(st.sampled_from("abcdefgh"), max_size=50))
    def test_size_never_exceeds_max(self, keys):
        bounded = TTLCache(max_size=3, default_ttl=60)
        for key in keys:
            bounded.set(key, key)
            assert len(bounded) <= 3
        if keys:
            assert bounded.get(keys[-1]) == keys[-1]


class TestInvalidation:

    def test_delete(self, cache):
        cache.set("a", 1)
        assert cache.delete("a") is True
        assert cache.delete("a") is False

    def test_delete_prefix(self, cache):
        cache.set("notes:u1:1", 1)
        cache.set("notes:u1:2", 2)
        cache.set("notes:u2:1", 3)

        assert cache.delete_prefix("notes:u1:") == 2
        assert cache.get("notes:u2:1") == 3

    def test_invalidate_user_notes(self):
        notes_cache.set(notes_list_key("u1", 1, 10, "newest", ""), ["page"])
        notes_cache.set(notes_list_key("u10", 1, 10, "newest", ""), ["other"])

        assert invalidate_user_notes("u1") == 1
        assert notes_cache.get(notes_list_key("u10", 1, 10, "newest", "")) == ["other"]

    def test_listing_read_before_invalidation_is_not_cached(self):
        key = notes_list_key("u1", 1, 10, "newest", "")
        generation = notes_generation("u1")
        invalidate_user_notes("u1")

        assert cache_notes_listing("u1", key, ["stale"], generation) is False
        assert notes_cache.get(key) is None

        fresh = notes_generation("u1")
        assert cache_notes_listing("u1", key, ["fresh"], fresh) is True
        assert notes_cache.get(key) == ["fresh"]

    def test_generations_are_per_user(self):
        generation = notes_generation("u2")
        invalidate_user_notes("u1")

        assert cache_notes_listing("u2", notes_list_key("u2", 1), ["page"], generation) is True

    def test_clear_resets_counters(self, cache):
        cache.set("a", 1)
        cache.get("a")
        cache.clear()

        stats = cache.get_stats()
        assert (stats.size, stats.hits, stats.misses) == (0, 0, 0)


class TestStats:

    def test_hit_rate_is_hits_over_lookups(self, cache):
        cache.set("a", 1)
        cache.get("a")
        cache.get("a")
        cache.get("a")
        cache.get("missing")

        stats = cache.get_stats()
        assert stats.hits == 3
        assert stats.misses == 1
        assert stats.hit_rate == 75.0
        assert stats.total_access == 3
        assert stats.max_size == 3

    def test_empty_cache_hit_rate(self, cache):
        assert cache.get_stats().hit_rate == 0.0

    def test_expired_count(self, cache, clock):
        cache.set("a", 1, ttl=1)
        clock.advance(2)
        assert cache.get_stats().expired_count == 1

    def test_global_stats(self):
        stats = get_all_stats()
        assert set(stats) == {"notes", "user", "api"}
        assert stats["notes"]["max_size"] == 50


def test_get_cache_by_name():
    assert get_cache("notes") is notes_cache
    with pytest.raises(ValueError):
        get_cache("sessions")


def test_hash_content_ignores_surrounding_whitespace():
    assert hash_content("  note body\n") == hash_content("note body")
    assert hash_content("a") != hash_content("b")
    assert len(hash_content("")) == 64
