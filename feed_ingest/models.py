"""Data models for the feed ingestion pipeline."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Stable error tags surfaced to callers."""

    INVALID_URL = "invalid_url"
    FEED_NOT_FOUND = "feed_not_found"
    PARSE_ERROR = "parse_error"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass
class FeedMetadata:
    """Feed-level information extracted from a channel or Atom feed."""

    title: str
    url: str
    description: str | None = None
    last_updated: str | None = None  # ISO-8601

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return _drop_none(
            {
                "title": self.title,
                "url": self.url,
                "description": self.description,
                "lastUpdated": self.last_updated,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedMetadata":
        """Create from dictionary."""
        return cls(
            title=data["title"],
            url=data.get("url", ""),
            description=data.get("description"),
            last_updated=data.get("lastUpdated"),
        )


@dataclass
class FeedItem:
    """Represents a single RSS item or Atom entry."""

    title: str
    url: str
    published: str | None = None  # ISO-8601
    summary: str | None = None
    author: str | None = None
    categories: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        ``categories`` is always emitted, even when empty.
        """
        data = _drop_none(
            {
                "title": self.title,
                "url": self.url,
                "published": self.published,
                "summary": self.summary,
                "author": self.author,
            }
        )
        data["categories"] = list(self.categories)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedItem":
        """Create from dictionary."""
        categories = data.get("categories") or []
        if not isinstance(categories, list):
            raise TypeError("categories must be a list")
        return cls(
            title=data["title"],
            url=data["url"],
            published=data.get("published"),
            summary=data.get("summary"),
            author=data.get("author"),
            categories=[str(category) for category in categories],
        )


@dataclass
class CachedFeedData:
    """Parsed feed as persisted in the cache store."""

    feed: FeedMetadata
    items: list[FeedItem]
    cached_at: str  # ISO-8601

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "feed": self.feed.to_dict(),
            "items": [item.to_dict() for item in self.items],
            "cachedAt": self.cached_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CachedFeedData":
        """Create from dictionary.

        Raises:
            KeyError, TypeError, ValueError: If the payload is malformed
        """
        if not isinstance(data, dict):
            raise TypeError("cached payload must be an object")
        return cls(
            feed=FeedMetadata.from_dict(data["feed"]),
            items=[FeedItem.from_dict(item) for item in data["items"]],
            cached_at=data["cachedAt"],
        )


@dataclass
class CacheMetadata:
    """Conditional-request validators stored alongside cached content."""

    etag: str | None = None
    last_modified: str | None = None


@dataclass
class RateLimitResult:
    """Outcome of a rate limit admission check."""

    allowed: bool
    remaining: int
    retry_after: int | None = None  # seconds


@dataclass
class ParseSuccess:
    """A feed document parsed into metadata and items."""

    feed: FeedMetadata
    items: list[FeedItem]
    success: bool = field(default=True, init=False)


@dataclass
class FetchSuccess:
    """A feed obtained from the origin or from the cache on a 304."""

    feed: FeedMetadata
    items: list[FeedItem]
    etag: str | None = None
    last_modified: str | None = None
    cached: bool = False
    success: bool = field(default=True, init=False)


@dataclass
class Failure:
    """An expected failure carrying a stable error tag and a readable message."""

    error: ErrorCode
    message: str
    retry_after: int | None = None
    success: bool = field(default=False, init=False)


@dataclass
class ValidationResult:
    """Outcome of origin URL validation."""

    valid: bool
    error: ErrorCode | None = None
    message: str | None = None


ParseResult = ParseSuccess | Failure
FetchResult = FetchSuccess | Failure
