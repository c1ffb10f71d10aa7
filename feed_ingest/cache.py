"""Conditional feed cache over the key-value store."""

import hashlib
import json

from .config import CacheConfig
from .kv import KeyValueStore
from .logging_config import create_execution_logger
from .models import CachedFeedData, CacheMetadata

CONTENT_SUFFIX = "content"
ETAG_SUFFIX = "etag"
MODIFIED_SUFFIX = "modified"


def derive_key(url: str) -> str:
    """Derive the cache key for a feed URL.

    Returns:
        ``feed:`` followed by the hex SHA-256 digest of the URL
    """
    return "feed:" + hashlib.sha256(url.encode("utf-8")).hexdigest()


class FeedCache:
    """Stores parsed feeds and their ETag/Last-Modified validators.

    Content, ETag and Last-Modified live under separate sub-keys, each
    with its own TTL, so any of them may be present without the others.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: CacheConfig | None = None,
        execution_id: str | None = None,
    ):
        """Initialize the cache.

        Args:
            store: Key-value store holding the cache entries
            config: TTL settings
            execution_id: Execution ID for logging context
        """
        self.store = store
        self.config = config or CacheConfig()
        self.logger = create_execution_logger("feed_cache", execution_id)

    def derive_key(self, url: str) -> str:
        return derive_key(url)

    def resolve_ttl(self, ttl_seconds: int | None) -> int:
        """Apply the default TTL and the store's minimum TTL."""
        ttl = self.config.ttl_seconds if ttl_seconds is None else int(ttl_seconds)
        if ttl < self.config.min_ttl_seconds:
            self.logger.warning(
                f"TTL {ttl}s below store minimum, using {self.config.min_ttl_seconds}s",
                requested_ttl=ttl,
            )
            ttl = self.config.min_ttl_seconds
        return ttl

    def read_content(self, key: str) -> CachedFeedData | None:
        """Read cached feed content.

        Returns:
            The cached feed, or None on a miss or an undecodable payload
        """
        raw = self.store.get(f"{key}:{CONTENT_SUFFIX}")
        if raw is None:
            self.logger.debug("Cache miss", cache_key=key)
            return None

        try:
            return CachedFeedData.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            self.logger.warning(
                f"Discarding malformed cache payload: {e}",
                cache_key=key,
                error=str(e),
            )
            return None

    def read_metadata(self, key: str) -> CacheMetadata:
        """Read the stored validators; either may be None."""
        return CacheMetadata(
            etag=self.store.get(f"{key}:{ETAG_SUFFIX}"),
            last_modified=self.store.get(f"{key}:{MODIFIED_SUFFIX}"),
        )

    def write_content(
        self, key: str, data: CachedFeedData, ttl_seconds: int | None = None
    ) -> None:
        ttl = self.resolve_ttl(ttl_seconds)
        self.store.put(f"{key}:{CONTENT_SUFFIX}", json.dumps(data.to_dict()), ttl)
        self.logger.debug(
            "Cached feed content",
            cache_key=key,
            items_count=len(data.items),
            ttl_seconds=ttl,
        )

    def write_metadata(
        self,
        key: str,
        etag: str | None = None,
        last_modified: str | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        """Write whichever validators are provided, sharing one TTL."""
        ttl = self.resolve_ttl(ttl_seconds)
        if etag:
            self.store.put(f"{key}:{ETAG_SUFFIX}", etag, ttl)
        if last_modified:
            self.store.put(f"{key}:{MODIFIED_SUFFIX}", last_modified, ttl)

    def get_cached_feed(self, url: str) -> CachedFeedData | None:
        return self.read_content(self.derive_key(url))

    def get_metadata(self, url: str) -> CacheMetadata:
        return self.read_metadata(self.derive_key(url))

    def cache_feed(
        self,
        url: str,
        data: CachedFeedData,
        etag: str | None = None,
        last_modified: str | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        """Store content then validators for a feed URL under one TTL."""
        key = self.derive_key(url)
        ttl = self.resolve_ttl(ttl_seconds)
        self.write_content(key, data, ttl)
        self.write_metadata(key, etag=etag, last_modified=last_modified, ttl_seconds=ttl)
        self.logger.info(
            "Cached feed",
            feed_url=url,
            cache_key=key,
            has_etag=bool(etag),
            has_last_modified=bool(last_modified),
        )
