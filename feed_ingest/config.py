"""Configuration management for feed ingestion."""

import os
from dataclasses import dataclass

DEFAULT_USER_AGENT = "rss-agent/1.0.0"
DEFAULT_ACCEPT = (
    "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"
)


# Shortest expiry the key-value store accepts
MIN_STORE_TTL_SECONDS = 60


@dataclass
class CacheConfig:
    """Configuration for the conditional feed cache."""

    ttl_seconds: int = 900
    min_ttl_seconds: int = MIN_STORE_TTL_SECONDS


@dataclass
class FetchConfig:
    """Configuration for origin HTTP requests."""

    timeout_seconds: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    accept: str = DEFAULT_ACCEPT
    max_workers: int = 8


@dataclass
class RateLimitConfig:
    """Configuration for the fixed-window rate limiter."""

    max_requests: int = 100
    window_seconds: int = 60


@dataclass
class StoreConfig:
    """Configuration for the DynamoDB key-value table."""

    table_name: str = "feed-ingest-cache"
    aws_region: str = "us-east-1"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Invalid integer for {name}: {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Invalid number for {name}: {raw!r}")


class Config:
    """Main configuration manager."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.table_name = os.getenv("FEED_CACHE_TABLE", "feed-ingest-cache")
        self.aws_region = os.getenv(
            "CURRENT_AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")
        )
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.cache_ttl_seconds = _env_int("CACHE_TTL_SECONDS", 900)
        self.fetch_timeout_seconds = _env_float("FETCH_TIMEOUT_SECONDS", 10.0)
        self.fetch_max_workers = _env_int("FETCH_MAX_WORKERS", 8)
        self.rate_limit_max_requests = _env_int("RATE_LIMIT_MAX_REQUESTS", 100)
        self.rate_limit_window_seconds = _env_int("RATE_LIMIT_WINDOW_SECONDS", 60)

    def get_cache_config(self) -> CacheConfig:
        """Get cache configuration."""
        return CacheConfig(ttl_seconds=self.cache_ttl_seconds)

    def get_fetch_config(self) -> FetchConfig:
        """Get origin fetch configuration."""
        return FetchConfig(
            timeout_seconds=self.fetch_timeout_seconds,
            max_workers=self.fetch_max_workers,
        )

    def get_rate_limit_config(self) -> RateLimitConfig:
        """Get rate limiter configuration."""
        return RateLimitConfig(
            max_requests=self.rate_limit_max_requests,
            window_seconds=self.rate_limit_window_seconds,
        )

    def get_store_config(self) -> StoreConfig:
        """Get key-value store configuration."""
        return StoreConfig(table_name=self.table_name, aws_region=self.aws_region)
