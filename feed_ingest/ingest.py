"""Ingestion entry points combining admission, validation, fetching and filtering."""

from dataclasses import dataclass, field, replace

import requests

from .cache import FeedCache
from .config import Config
from .fetch import FeedFetcher
from .filters import apply_filters
from .kv import KeyValueStore
from .logging_config import create_execution_logger
from .models import ErrorCode, Failure, FetchResult
from .ratelimit import RateLimiter
from .validate import validate_url


@dataclass
class BatchSummary:
    """Aggregate counts for a batch ingestion."""

    total_feeds: int = 0
    success_count: int = 0
    failure_count: int = 0
    total_items: int = 0


@dataclass
class BatchResult:
    """Per-URL results of a batch ingestion, in request order."""

    results: list[tuple[str, FetchResult]] = field(default_factory=list)
    summary: BatchSummary = field(default_factory=BatchSummary)


class FeedIngestor:
    """Admits a client, then fetches feeds through the conditional cache."""

    def __init__(
        self,
        config: Config,
        store: KeyValueStore,
        session: requests.Session | None = None,
        execution_id: str | None = None,
    ):
        """Wire the rate limiter, cache and fetcher onto one store.

        Args:
            config: Configuration manager
            store: Key-value store shared by the cache and rate limiter
            session: Optional HTTP session for the fetchers
            execution_id: Execution ID for logging context
        """
        self.config = config
        self.logger = create_execution_logger("ingestor", execution_id)
        self.rate_limiter = RateLimiter(
            store, config.get_rate_limit_config(), execution_id=execution_id
        )
        self.cache = FeedCache(
            store, config.get_cache_config(), execution_id=execution_id
        )
        self.fetcher = FeedFetcher(
            config.get_fetch_config(),
            cache=self.cache,
            session=session,
            execution_id=execution_id,
        )
        # Forced refreshes neither send validators nor update the cache
        self.uncached_fetcher = FeedFetcher(
            config.get_fetch_config(), session=session, execution_id=execution_id
        )

    def admit(self, client_id: str) -> Failure | None:
        """Check and count one request for ``client_id``.

        Returns:
            A rate_limited Failure when the client is over its limit, else None
        """
        result = self.rate_limiter.check(client_id)
        if not result.allowed:
            return Failure(
                ErrorCode.RATE_LIMITED,
                "Too many requests",
                retry_after=result.retry_after,
            )
        self.rate_limiter.increment(client_id)
        return None

    def _fetch_one(
        self,
        url: str,
        since: str | None,
        limit: int | None,
        force_refresh: bool = False,
    ) -> FetchResult:
        validation = validate_url(url)
        if not validation.valid:
            return Failure(ErrorCode.INVALID_URL, validation.message or "Invalid URL")

        fetcher = self.uncached_fetcher if force_refresh else self.fetcher
        result = fetcher.fetch(url)
        if not result.success:
            return result
        return replace(result, items=apply_filters(result.items, since, limit))

    def ingest(
        self,
        url: str,
        client_id: str,
        since: str | None = None,
        limit: int | None = None,
        force_refresh: bool = False,
    ) -> FetchResult:
        """Ingest a single feed on behalf of ``client_id``."""
        refused = self.admit(client_id)
        if refused:
            return refused

        result = self._fetch_one(url, since, limit, force_refresh)
        if result.success:
            self.logger.info(
                "Feed ingested",
                feed_url=url,
                client_id=client_id,
                cached=result.cached,
                items_count=len(result.items),
            )
        else:
            self.logger.warning(
                f"Feed ingestion failed: {result.message}",
                feed_url=url,
                client_id=client_id,
                error=str(result.error),
            )
        return result

    def ingest_batch(
        self,
        urls: list[str],
        client_id: str,
        since: str | None = None,
        limit: int | None = None,
    ) -> BatchResult | Failure:
        """Ingest several feeds concurrently under a single admission."""
        refused = self.admit(client_id)
        if refused:
            return refused

        if not urls:
            return Failure(ErrorCode.INVALID_URL, "feeds array cannot be empty")

        started = self.logger.log_execution_start(
            feed_count=len(urls), client_id=client_id
        )

        results: dict[int, FetchResult] = {}
        valid: list[tuple[int, str]] = []
        for index, url in enumerate(urls):
            validation = validate_url(url)
            if validation.valid:
                valid.append((index, url))
            else:
                results[index] = Failure(
                    ErrorCode.INVALID_URL, validation.message or "Invalid URL"
                )

        fetched = self.fetcher.fetch_many([url for _, url in valid])
        for (index, _), (_, result) in zip(valid, fetched):
            if result.success:
                result = replace(result, items=apply_filters(result.items, since, limit))
            results[index] = result

        batch = BatchResult(results=[(url, results[i]) for i, url in enumerate(urls)])
        for _, result in batch.results:
            batch.summary.total_feeds += 1
            if result.success:
                batch.summary.success_count += 1
                batch.summary.total_items += len(result.items)
            else:
                batch.summary.failure_count += 1

        self.logger.log_metrics(
            {
                "total_feeds": batch.summary.total_feeds,
                "success_count": batch.summary.success_count,
                "failure_count": batch.summary.failure_count,
                "total_items": batch.summary.total_items,
            }
        )
        self.logger.log_execution_end(
            success=batch.summary.failure_count == 0,
            start_time=started,
            client_id=client_id,
        )
        return batch
