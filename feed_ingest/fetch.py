"""Origin fetching with HTTP conditional requests."""

from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime

import requests

from .cache import FeedCache
from .config import FetchConfig
from .logging_config import create_execution_logger
from .models import CachedFeedData, ErrorCode, Failure, FetchResult, FetchSuccess
from .parse import parse_feed


class FeedFetcher:
    """Fetches feeds from their origin, revalidating against the cache."""

    def __init__(
        self,
        config: FetchConfig | None = None,
        cache: FeedCache | None = None,
        session: requests.Session | None = None,
        execution_id: str | None = None,
    ):
        """Initialize FeedFetcher with configuration.

        Args:
            config: Timeout and request header settings
            cache: Optional cache consulted for validators and written on success
            session: HTTP session to use; a new one is created if omitted
            execution_id: Execution ID for logging context
        """
        self.config = config or FetchConfig()
        self.cache = cache
        self.logger = create_execution_logger("feed_fetcher", execution_id)
        self.session = session or requests.Session()
        self.session.headers.update(
            {"User-Agent": self.config.user_agent, "Accept": self.config.accept}
        )

        self.logger.info(
            "FeedFetcher initialized",
            timeout=self.config.timeout_seconds,
            cache_enabled=cache is not None,
        )

    def build_headers(self, url: str, force_refresh: bool = False) -> dict[str, str]:
        """Build request headers, adding validators held in the cache."""
        headers = {
            "User-Agent": self.config.user_agent,
            "Accept": self.config.accept,
        }
        if self.cache is None or force_refresh:
            return headers

        metadata = self.cache.get_metadata(url)
        if metadata.etag:
            headers["If-None-Match"] = metadata.etag
        if metadata.last_modified:
            headers["If-Modified-Since"] = metadata.last_modified
        return headers

    def fetch(
        self, url: str, force_refresh: bool = False, ttl_seconds: int | None = None
    ) -> FetchResult:
        """Fetch and parse a single feed.

        Args:
            url: Feed URL
            force_refresh: Skip conditional headers and always take the origin body
            ttl_seconds: Cache TTL override for this write

        Returns:
            FetchSuccess, or a Failure tagged feed_not_found, parse_error or timeout
        """
        headers = self.build_headers(url, force_refresh)
        conditional = "If-None-Match" in headers or "If-Modified-Since" in headers

        self.logger.info("Fetching feed", feed_url=url, conditional=conditional)

        # requests only bounds each socket read, so the whole download runs
        # under a wall-clock deadline
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self._download, url, headers)
        try:
            response = future.result(timeout=self.config.timeout_seconds)
        except (TimeoutError, requests.Timeout):
            future.add_done_callback(_close_abandoned)
            timeout_ms = int(self.config.timeout_seconds * 1000)
            self.logger.log_fetch_outcome(url, "timeout")
            return Failure(ErrorCode.TIMEOUT, f"Request timed out after {timeout_ms}ms")
        except requests.RequestException as e:
            self.logger.error(
                f"Failed to download feed {url}: {e}", feed_url=url, error=str(e)
            )
            return Failure(ErrorCode.FEED_NOT_FOUND, str(e) or "Unknown error occurred")
        finally:
            executor.shutdown(wait=False)

        return self._handle_response(url, response, ttl_seconds)

    def _download(self, url: str, headers: dict[str, str]) -> requests.Response:
        response = self.session.get(
            url, headers=headers, timeout=self.config.timeout_seconds
        )
        # Load the body inside the deadline too
        response.content
        return response

    def _handle_response(
        self, url: str, response: requests.Response, ttl_seconds: int | None
    ) -> FetchResult:
        status = response.status_code

        if status == 304 and self.cache is not None:
            cached = self.cache.get_cached_feed(url)
            if cached is None:
                self.logger.warning(
                    "Origin returned 304 but cached content is missing", feed_url=url
                )
                return Failure(
                    ErrorCode.FEED_NOT_FOUND,
                    "Received 304 Not Modified but no cached content exists",
                )
            self.logger.log_fetch_outcome(url, "not_modified", len(cached.items))
            metadata = self.cache.get_metadata(url)
            return FetchSuccess(
                feed=cached.feed,
                items=cached.items,
                etag=metadata.etag,
                last_modified=metadata.last_modified,
                cached=True,
            )

        if status in (404, 410):
            self.logger.log_fetch_outcome(url, "not_found", status_code=status)
            return Failure(ErrorCode.FEED_NOT_FOUND, f"Feed not found (HTTP {status})")

        if not 200 <= status < 300:
            self.logger.log_fetch_outcome(url, "http_error", status_code=status)
            return Failure(ErrorCode.FEED_NOT_FOUND, f"HTTP error {status}")

        # requests assumes ISO-8859-1 for text/* without a charset
        if "charset" not in response.headers.get("Content-Type", "").lower():
            response.encoding = "utf-8"
        result = parse_feed(response.text)

        if not result.success:
            self.logger.warning(
                f"Failed to parse feed {url}: {result.message}",
                feed_url=url,
                error=result.message,
            )
            return result

        etag = response.headers.get("ETag") or None
        last_modified = response.headers.get("Last-Modified") or None

        if self.cache is not None:
            self.cache.cache_feed(
                url,
                CachedFeedData(
                    feed=result.feed,
                    items=result.items,
                    cached_at=datetime.now(UTC)
                    .isoformat(timespec="milliseconds")
                    .replace("+00:00", "Z"),
                ),
                etag=etag,
                last_modified=last_modified,
                ttl_seconds=ttl_seconds,
            )

        self.logger.log_fetch_outcome(url, "fetched", len(result.items))
        return FetchSuccess(
            feed=result.feed,
            items=result.items,
            etag=etag,
            last_modified=last_modified,
            cached=False,
        )

    def fetch_many(
        self, urls: list[str], force_refresh: bool = False
    ) -> list[tuple[str, FetchResult]]:
        """Fetch several feeds concurrently.

        Returns:
            (url, result) pairs in the order of ``urls``
        """
        started = self.logger.log_execution_start(feed_count=len(urls))
        if not urls:
            self.logger.log_execution_end(
                success=True, start_time=started, total_items=0
            )
            return []

        workers = max(1, min(self.config.max_workers, len(urls)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(
                executor.map(lambda u: self.fetch(u, force_refresh=force_refresh), urls)
            )

        total_items = sum(len(r.items) for r in results if r.success)
        self.logger.log_execution_end(
            success=True,
            start_time=started,
            total_items=total_items,
            failures=sum(1 for r in results if not r.success),
        )
        return list(zip(urls, results))


def _close_abandoned(future: Future) -> None:
    """Release the connection of a download that finished after its deadline."""
    if not future.cancelled() and future.exception() is None:
        future.result().close()


def fetch_feed(url: str, config: FetchConfig | None = None) -> FetchResult:
    """Fetch a feed without consulting or updating any cache."""
    return FeedFetcher(config).fetch(url)


def fetch_feed_with_cache(
    url: str,
    cache: FeedCache,
    config: FetchConfig | None = None,
    force_refresh: bool = False,
) -> FetchResult:
    """Fetch a feed using ``cache`` for conditional requests and storage."""
    return FeedFetcher(config, cache=cache).fetch(url, force_refresh=force_refresh)
