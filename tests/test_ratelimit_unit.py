"""Unit tests for fixed-window rate limiting."""

import json

from feed_ingest.config import RateLimitConfig
from feed_ingest.kv import MemoryStore
from feed_ingest.ratelimit import (
    RateLimiter,
    check_rate_limit,
    increment_rate_limit,
    rate_limit_key,
)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRateLimiterUnit:
    """Unit tests for RateLimiter."""

    def setup_method(self):
        """Share one clock between the store and the limiter."""
        self.clock = FakeClock()
        self.store = MemoryStore(clock=self.clock)
        self.limiter = RateLimiter(self.store, RateLimitConfig(), clock=self.clock)

    def test_new_client_has_full_capacity(self):
        result = self.limiter.check("client-1")

        assert result.allowed is True
        assert result.remaining == 100
        assert result.retry_after is None

    def test_check_does_not_mutate(self):
        for _ in range(5):
            self.limiter.check("client-1")

        assert self.store.get(rate_limit_key("client-1")) is None

    def test_increment_decrements_remaining(self):
        self.limiter.increment("client-2")

        assert self.limiter.check("client-2").remaining == 99

    def test_record_shape(self):
        self.limiter.increment("client-3")
        self.limiter.increment("client-3")

        record = json.loads(self.store.get(rate_limit_key("client-3")))
        assert record == {"count": 2, "windowStart": 1_700_000_000_000}

    def test_blocks_after_capacity(self):
        for _ in range(100):
            self.limiter.increment("client-4")

        result = self.limiter.check("client-4")

        assert result.allowed is False
        assert result.remaining == 0
        assert 1 <= result.retry_after <= 60

    def test_retry_after_counts_down(self):
        for _ in range(100):
            self.limiter.increment("client-5")

        self.clock.now += 30.5
        result = self.limiter.check("client-5")

        assert result.allowed is False
        assert result.retry_after == 30

    def test_window_reset_on_check(self):
        for _ in range(100):
            self.limiter.increment("client-6")

        self.clock.now += 60
        result = self.limiter.check("client-6")

        assert result.allowed is True
        assert result.remaining == 100

    def test_increment_after_window_starts_fresh_record(self):
        for _ in range(10):
            self.limiter.increment("client-7")

        self.clock.now += 59
        self.limiter.increment("client-7")
        assert json.loads(self.store.get(rate_limit_key("client-7")))["count"] == 11

        self.clock.now += 1
        self.limiter.increment("client-7")
        record = json.loads(self.store.get(rate_limit_key("client-7")))
        assert record["count"] == 1
        assert record["windowStart"] == int(self.clock.now * 1000)

    def test_records_expire_with_window(self):
        self.limiter.increment("client-8")

        self.clock.now += 60
        assert self.store.get(rate_limit_key("client-8")) is None

    def test_clients_are_independent(self):
        for _ in range(100):
            self.limiter.increment("client-a")
        self.limiter.increment("client-b")

        assert self.limiter.check("client-a").allowed is False
        assert self.limiter.check("client-b").remaining == 99

    def test_malformed_record_treated_as_absent(self):
        self.store.put(rate_limit_key("client-9"), "not json", 60)

        assert self.limiter.check("client-9").remaining == 100
        self.limiter.increment("client-9")
        assert self.limiter.check("client-9").remaining == 99

    def test_custom_configuration(self):
        limiter = RateLimiter(
            self.store, RateLimitConfig(max_requests=2, window_seconds=10), clock=self.clock
        )
        limiter.increment("client-10")
        limiter.increment("client-10")

        result = limiter.check("client-10")
        assert result.allowed is False
        assert result.retry_after == 10

    def test_short_window_record_kept_for_store_minimum(self):
        limiter = RateLimiter(
            self.store, RateLimitConfig(max_requests=1, window_seconds=5), clock=self.clock
        )
        limiter.increment("client-11")

        assert limiter.record_ttl_seconds == 60
        assert self.store._data[rate_limit_key("client-11")][1] == self.clock.now + 60
        assert limiter.check("client-11").allowed is False

        self.clock.now += 5
        assert limiter.check("client-11").allowed is True
        assert self.store.get(rate_limit_key("client-11")) is not None

    def test_module_functions(self):
        store = MemoryStore()

        increment_rate_limit(store, "module-client")
        result = check_rate_limit(store, "module-client")

        assert result.allowed is True
        assert result.remaining == 99
