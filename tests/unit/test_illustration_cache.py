"""Unit tests for talebloom.services.illustration_cache."""

import asyncio

import pytest

from talebloom.services.illustration_cache import IllustrationCache, make_cache_key

from tests.conftest import photo_base64


class TestMakeCacheKey:
    """Cache keys are deterministic digests of every input."""

    ARGS = ("A" * 150, "Maya", "Once upon a time", "ghibli", "standard", "1024x1024")

    def test_same_inputs_same_key(self):
        assert make_cache_key(*self.ARGS) == make_cache_key(*self.ARGS)

    def test_different_photos_give_different_keys(self):
        """Re-encoded JPEGs share their header bytes; the key must still tell them apart."""
        red = photo_base64((220, 30, 30))
        blue = photo_base64((30, 30, 220))
        assert red[:100] == blue[:100]
        assert make_cache_key(red, *self.ARGS[1:]) != make_cache_key(blue, *self.ARGS[1:])

    def test_image_change_past_header_changes_key(self):
        base = "B" * 100
        assert make_cache_key(base + "xyz", *self.ARGS[1:]) != make_cache_key(base + "123", *self.ARGS[1:])

    @pytest.mark.parametrize("index", [1, 2, 3, 4, 5])
    def test_each_field_changes_key(self, index):
        changed = list(self.ARGS)
        changed[index] = changed[index] + "!"
        assert make_cache_key(*changed) != make_cache_key(*self.ARGS)

    def test_field_boundaries_are_kept(self):
        a = make_cache_key("img", "Ma", "ya", "ghibli", "standard", "1024x1024")
        b = make_cache_key("img", "May", "a", "ghibli", "standard", "1024x1024")
        assert a != b


class TestIllustrationCache:
    """TTL semantics with an injected clock."""

    def test_hit_within_ttl(self, clock):
        cache = IllustrationCache(ttl=60, clock=clock)
        cache.set("k", "v")
        clock.advance(59)
        assert cache.get("k") == "v"

    def test_expired_entry_is_absent_before_sweep(self, clock):
        cache = IllustrationCache(ttl=60, clock=clock)
        cache.set("k", "v")
        clock.advance(60)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_missing_key(self, clock):
        assert IllustrationCache(ttl=60, clock=clock).get("nope") is None

    def test_sweep_removes_only_expired(self, clock):
        cache = IllustrationCache(ttl=60, clock=clock)
        cache.set("old", 1)
        clock.advance(30)
        cache.set("new", 2)
        clock.advance(40)
        assert cache.sweep() == 1
        assert len(cache) == 1
        assert cache.get("new") == 2

    def test_set_refreshes_expiry(self, clock):
        cache = IllustrationCache(ttl=60, clock=clock)
        cache.set("k", 1)
        clock.advance(50)
        cache.set("k", 2)
        clock.advance(50)
        assert cache.get("k") == 2

    async def test_sweeper_task_cancels_cleanly(self, clock):
        cache = IllustrationCache(ttl=60, clock=clock)
        task = asyncio.create_task(cache.run_sweeper(0.01))
        await asyncio.sleep(0.03)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
