"""Unit tests for the ingestion facade."""

import os
from unittest.mock import Mock, patch

import requests
from requests.structures import CaseInsensitiveDict

from feed_ingest.config import Config
from feed_ingest.ingest import BatchResult, FeedIngestor
from feed_ingest.kv import MemoryStore
from feed_ingest.models import ErrorCode, Failure

RSS = """<rss version="2.0"><channel>
<title>Batch Feed</title><link>https://example.com</link>
<item><title>New</title><link>https://example.com/new</link>
<pubDate>Fri, 28 Nov 2025 09:00:00 GMT</pubDate></item>
<item><title>Old</title><link>https://example.com/old</link>
<pubDate>Mon, 01 Jan 2024 09:00:00 GMT</pubDate></item>
</channel></rss>"""


def make_response(status: int = 200, body: str = "", headers: dict | None = None):
    response = requests.Response()
    response.status_code = status
    response._content = body.encode("utf-8")
    response.headers = CaseInsensitiveDict(headers or {})
    return response


class TestFeedIngestorUnit:
    """Unit tests for FeedIngestor."""

    def setup_method(self):
        """Build an ingestor over an in-memory store and a mocked session."""
        env = {"RATE_LIMIT_MAX_REQUESTS": "3"}
        with patch.dict(os.environ, env, clear=True):
            self.config = Config()
        self.store = MemoryStore()
        self.session = Mock()
        self.session.headers = {}
        self.session.get.side_effect = lambda url, **kwargs: make_response(
            200, RSS, {"ETag": '"v1"'}
        )
        self.ingestor = FeedIngestor(self.config, self.store, session=self.session)

    def test_ingest_success_then_conditional(self):
        url = "https://example.com/feed.xml"

        first = self.ingestor.ingest(url, "client")
        assert first.success
        assert first.cached is False
        assert len(first.items) == 2

        self.session.get.side_effect = lambda url, **kwargs: make_response(304)
        second = self.ingestor.ingest(url, "client")

        assert second.success
        assert second.cached is True
        assert self.session.get.call_args.kwargs["headers"]["If-None-Match"] == '"v1"'

    def test_filters_applied(self):
        result = self.ingestor.ingest(
            "https://example.com/feed.xml", "client", since="2025-01-01", limit=5
        )

        assert [item.title for item in result.items] == ["New"]

    def test_rate_limited(self):
        for _ in range(3):
            assert self.ingestor.ingest("https://example.com/feed.xml", "busy").success

        result = self.ingestor.ingest("https://example.com/feed.xml", "busy")

        assert isinstance(result, Failure)
        assert result.error == ErrorCode.RATE_LIMITED
        assert result.message == "Too many requests"
        assert 1 <= result.retry_after <= 60
        assert self.session.get.call_count == 3

    def test_invalid_url_counts_against_limit(self):
        result = self.ingestor.ingest("ftp://example.com/feed", "client")

        assert result.error == ErrorCode.INVALID_URL
        assert self.ingestor.rate_limiter.check("client").remaining == 2
        self.session.get.assert_not_called()

    def test_force_refresh_bypasses_cache(self):
        url = "https://example.com/feed.xml"
        self.ingestor.ingest(url, "client")

        result = self.ingestor.ingest(url, "client", force_refresh=True)

        assert result.cached is False
        assert "If-None-Match" not in self.session.get.call_args.kwargs["headers"]

    def test_batch(self):
        def respond(url, **kwargs):
            if "missing" in url:
                return make_response(404)
            return make_response(200, RSS)

        self.session.get.side_effect = respond
        urls = [
            "https://a.example/feed",
            "not a url",
            "https://b.example/missing",
            "https://c.example/feed",
        ]

        batch = self.ingestor.ingest_batch(urls, "client", limit=1)

        assert isinstance(batch, BatchResult)
        assert [url for url, _ in batch.results] == urls
        assert batch.results[0][1].success
        assert len(batch.results[0][1].items) == 1
        assert batch.results[1][1].error == ErrorCode.INVALID_URL
        assert batch.results[2][1].error == ErrorCode.FEED_NOT_FOUND
        assert batch.summary.total_feeds == 4
        assert batch.summary.success_count == 2
        assert batch.summary.failure_count == 2
        assert batch.summary.total_items == 2
        assert self.ingestor.rate_limiter.check("client").remaining == 2

    def test_empty_batch(self):
        result = self.ingestor.ingest_batch([], "client")

        assert result.error == ErrorCode.INVALID_URL
        assert result.message == "feeds array cannot be empty"
