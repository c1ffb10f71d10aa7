"""Fixed-window per-client rate limiting over the key-value store."""

import json
import math
import time
from collections.abc import Callable

from .config import MIN_STORE_TTL_SECONDS, RateLimitConfig
from .kv import KeyValueStore
from .logging_config import create_execution_logger
from .models import RateLimitResult


def rate_limit_key(client_id: str) -> str:
    return f"ratelimit:{client_id}"


class RateLimiter:
    """Counts requests per client in fixed windows.

    ``check`` never writes; callers invoke ``increment`` once they admit a
    request. The read-then-write pair is not atomic, so concurrent
    requests from one client may overshoot the cap slightly.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.time,
        execution_id: str | None = None,
    ):
        """Initialize the rate limiter.

        Args:
            store: Key-value store holding one record per client
            config: Window length and capacity
            clock: Returns the current time in epoch seconds
            execution_id: Execution ID for logging context
        """
        self.store = store
        self.config = config or RateLimitConfig()
        self.clock = clock
        self.logger = create_execution_logger("rate_limiter", execution_id)

    @property
    def window_ms(self) -> int:
        return self.config.window_seconds * 1000

    @property
    def record_ttl_seconds(self) -> int:
        return max(self.config.window_seconds, MIN_STORE_TTL_SECONDS)

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _load(self, client_id: str) -> dict | None:
        raw = self.store.get(rate_limit_key(client_id))
        if raw is None:
            return None
        try:
            record = json.loads(raw)
            return {"count": int(record["count"]), "windowStart": int(record["windowStart"])}
        except (ValueError, KeyError, TypeError) as e:
            self.logger.warning(
                f"Ignoring malformed rate limit record: {e}",
                client_id=client_id,
                error=str(e),
            )
            return None

    def check(self, client_id: str) -> RateLimitResult:
        """Report whether ``client_id`` may make another request now."""
        record = self._load(client_id)
        now = self._now_ms()

        if record is None:
            return RateLimitResult(allowed=True, remaining=self.config.max_requests)

        window_end = record["windowStart"] + self.window_ms
        if now >= window_end:
            return RateLimitResult(allowed=True, remaining=self.config.max_requests)

        remaining = max(0, self.config.max_requests - record["count"])
        if remaining == 0:
            retry_after = math.ceil((window_end - now) / 1000)
            self.logger.info(
                "Client rate limited", client_id=client_id, retry_after=retry_after
            )
            return RateLimitResult(allowed=False, remaining=0, retry_after=retry_after)

        return RateLimitResult(allowed=True, remaining=remaining)

    def increment(self, client_id: str) -> None:
        """Count one request, starting a new window when the last one ended."""
        record = self._load(client_id)
        now = self._now_ms()

        if record is None or now >= record["windowStart"] + self.window_ms:
            record = {"count": 1, "windowStart": now}
        else:
            record["count"] += 1

        self.store.put(
            rate_limit_key(client_id), json.dumps(record), self.record_ttl_seconds
        )
        self.logger.debug(
            "Recorded request", client_id=client_id, count=record["count"]
        )


def check_rate_limit(
    store: KeyValueStore, client_id: str, config: RateLimitConfig | None = None
) -> RateLimitResult:
    return RateLimiter(store, config).check(client_id)


def increment_rate_limit(
    store: KeyValueStore, client_id: str, config: RateLimitConfig | None = None
) -> None:
    RateLimiter(store, config).increment(client_id)
