"""Item filtering by publication date and count."""

import re
from datetime import UTC, datetime, timedelta

from dateutil import parser as date_parser

from .models import FeedItem

_SHORTHAND_SINCE = re.compile(r"^(\d+)([hd])$")


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def resolve_since(since: str, now: datetime | None = None) -> datetime | None:
    """Turn ``since`` into a UTC datetime.

    Accepts ``24h`` / ``7d`` style shorthand relative to ``now`` as well
    as absolute dates. Returns None when the value cannot be read.
    """
    now = _to_utc(now or datetime.now(UTC))
    match = _SHORTHAND_SINCE.match(since.strip())
    if match:
        amount = int(match.group(1))
        try:
            if match.group(2) == "h":
                return now - timedelta(hours=amount)
            return now - timedelta(days=amount)
        except (OverflowError, ValueError):
            return None

    try:
        return _to_utc(date_parser.isoparse(since.strip()))
    except (ValueError, OverflowError):
        pass
    try:
        return _to_utc(date_parser.parse(since.strip()))
    except (ValueError, OverflowError):
        return None


def filter_since(items: list[FeedItem], since: datetime) -> list[FeedItem]:
    """Keep items published at or after ``since``; undated items are kept."""
    kept = []
    for item in items:
        if not item.published:
            kept.append(item)
            continue
        try:
            published = _to_utc(date_parser.isoparse(item.published))
        except (ValueError, OverflowError):
            kept.append(item)
            continue
        if published >= since:
            kept.append(item)
    return kept


def apply_filters(
    items: list[FeedItem],
    since: str | None = None,
    limit: int | None = None,
    now: datetime | None = None,
) -> list[FeedItem]:
    """Apply the ``since`` filter, then truncate to ``limit`` when positive."""
    filtered = items
    if since:
        cutoff = resolve_since(since, now)
        if cutoff is not None:
            filtered = filter_since(filtered, cutoff)
    if limit and limit > 0:
        filtered = filtered[:limit]
    return filtered
