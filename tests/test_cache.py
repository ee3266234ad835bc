"""Tests for TTLCache."""

from claude_tracker.services.cache import TTLCache


class FakeClock:
    """Manually advanced clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    """Tests for TTLCache."""

    def test_get_missing(self):
        """Missing keys give None."""
        assert TTLCache().get("nope") is None

    def test_set_and_get(self):
        """Stored values are returned."""
        cache = TTLCache()
        cache.set("a", 1)
        assert cache.get("a") == 1

    def test_falsy_values_stored(self):
        """False is a value, not a miss."""
        cache = TTLCache()
        cache.set("a", False)
        assert cache.get("a") is False

    def test_expiry(self):
        """Entries expire after ttl_seconds."""
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=60, clock=clock)
        cache.set("a", 1)

        clock.now += 59
        assert cache.get("a") == 1

        clock.now += 1
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_no_ttl_never_expires(self):
        """Without a ttl entries live forever."""
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set("a", 1)
        clock.now += 10**9
        assert cache.get("a") == 1

    def test_set_refreshes_expiry(self):
        """Setting a key again restarts its lifetime."""
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("a", 1)
        clock.now += 8
        cache.set("a", 2)
        clock.now += 8
        assert cache.get("a") == 2

    def test_max_entries_evicts_oldest(self):
        """The oldest insertion is evicted past the bound."""
        cache = TTLCache(max_entries=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3
        assert len(cache) == 2

    def test_reset_key_moves_to_newest(self):
        """Re-setting a key protects it from the next eviction."""
        cache = TTLCache(max_entries=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 3)
        cache.set("c", 4)

        assert cache.get("a") == 3
        assert cache.get("b") is None

    def test_invalidate(self):
        """invalidate removes one key and reports whether it existed."""
        cache = TTLCache()
        cache.set("a", 1)

        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        assert cache.get("a") is None

    def test_clear(self):
        """clear removes everything."""
        cache = TTLCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.clear()
        assert len(cache) == 0
