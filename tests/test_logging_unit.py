"""Unit tests for structured logging."""

import json
import logging
from datetime import timedelta
from io import StringIO

from feed_ingest.logging_config import (
    StructuredFormatter,
    create_execution_logger,
    setup_structured_logging,
)


class TestLoggingUnit:
    """Unit tests for the structured formatter and execution logger."""

    def setup_method(self):
        """Capture feed_ingest log output as JSON lines."""
        self.stream = StringIO()
        self.handler = logging.StreamHandler(self.stream)
        self.handler.setFormatter(StructuredFormatter())
        self.logger = logging.getLogger("feed_ingest")
        self.original_level = self.logger.level
        self.logger.addHandler(self.handler)
        self.logger.setLevel(logging.DEBUG)

    def teardown_method(self):
        self.logger.removeHandler(self.handler)
        self.logger.setLevel(self.original_level)

    def records(self) -> list[dict]:
        return [json.loads(line) for line in self.stream.getvalue().splitlines()]

    def test_context_fields_promoted(self):
        logger = create_execution_logger("feed_fetcher", "exec_test")

        logger.info(
            "Fetching feed",
            feed_url="https://example.com/feed.xml",
            cache_key="feed:abc",
            client_id="client-1",
        )

        record = self.records()[-1]
        assert record["message"] == "Fetching feed"
        assert record["level"] == "INFO"
        assert record["logger"] == "feed_ingest.feed_fetcher"
        assert record["execution_id"] == "exec_test"
        assert record["component"] == "feed_fetcher"
        assert record["feed_url"] == "https://example.com/feed.xml"
        assert record["cache_key"] == "feed:abc"
        assert record["client_id"] == "client-1"

    def test_fetch_outcome_fields_emitted(self):
        logger = create_execution_logger("feed_fetcher", "exec_outcome")

        logger.log_fetch_outcome(
            "https://example.com/feed.xml", "http_error", status_code=503
        )
        logger.warning("Cache write failed", error="throttled", ttl_seconds=900)

        outcome, failure = self.records()[-2:]
        assert outcome["outcome"] == "http_error"
        assert outcome["status_code"] == 503
        assert outcome["items_count"] is None
        assert failure["error"] == "throttled"
        assert failure["ttl_seconds"] == 900
        assert "args" not in failure
        assert "levelno" not in failure

    def test_metrics_logged(self):
        logger = create_execution_logger("ingestor", "exec_metrics")

        logger.log_metrics({"total_feeds": 2, "failure_count": 1})

        record = self.records()[-1]
        assert record["metrics"] == {"total_feeds": 2, "failure_count": 1}

    def test_execution_start_and_end(self):
        logger = create_execution_logger("feed_fetcher")

        logger.log_execution_start(feed_count=3)
        logger.log_execution_end(success=True)

        messages = [r["message"] for r in self.records()]
        assert "Starting feed_fetcher execution" in messages
        assert "Completed feed_fetcher execution" in messages
        assert logger.execution_id.startswith("exec_")
        assert logger.start_time <= logger.end_time

    def test_overlapping_executions_keep_their_own_start(self):
        logger = create_execution_logger("feed_fetcher")

        first = logger.log_execution_start(feed_count=1)
        logger.log_execution_start(feed_count=2)
        logger.log_execution_end(success=True, start_time=first - timedelta(seconds=5))

        end = self.records()[-1]
        assert end["message"] == "Completed feed_fetcher execution"
        assert end["execution_duration_seconds"] >= 5

    def test_setup_structured_logging(self):
        root = logging.getLogger()
        original_handlers = root.handlers[:]
        original_level = root.level
        try:
            setup_structured_logging("warning")

            assert root.level == logging.WARNING
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
            assert logging.getLogger("feed_ingest.feed_cache").level == logging.WARNING
        finally:
            root.handlers = original_handlers
            root.setLevel(original_level)
            for name in logging.root.manager.loggerDict:
                if name.startswith("feed_ingest."):
                    logging.getLogger(name).setLevel(logging.NOTSET)
