"""
Unit tests for the single-slot TTL cache.
"""

from usage_lens.core.cache import TTLCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestTTLCache:
    """Test freshness and invalidation."""

    def setup_method(self):
        self.clock = FakeClock()
        self.cache = TTLCache(ttl=60.0, clock=self.clock)

    def test_empty_cache(self):
        assert self.cache.get() is None

    def test_fresh_value_is_returned(self):
        self.cache.set([1, 2])
        self.clock.now = 59.9
        assert self.cache.get() == [1, 2]

    def test_value_expires_at_ttl(self):
        self.cache.set("value")
        self.clock.now = 60.0
        assert self.cache.get() is None

    def test_set_restarts_age(self):
        self.cache.set("old")
        self.clock.now = 50.0
        self.cache.set("new")
        self.clock.now = 100.0
        assert self.cache.get() == "new"

    def test_clear(self):
        self.cache.set("value")
        self.cache.clear()
        assert self.cache.get() is None
