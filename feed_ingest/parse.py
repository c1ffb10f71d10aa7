"""RSS 2.0 and Atom parsing.

Extraction is pattern based rather than a strict XML parse, so mildly
malformed real-world feeds still yield their title, links and items.
"""

import re
from datetime import UTC, datetime

from dateutil import parser as date_parser
from dateutil import tz

from .models import ErrorCode, Failure, FeedItem, FeedMetadata, ParseResult, ParseSuccess

ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"

_FLAGS = re.IGNORECASE | re.DOTALL

_RSS_TAG = re.compile(r"<rss[^>]*>", re.IGNORECASE)
_ATOM_FEED_WITH_XMLNS = re.compile(
    r"<feed[^>]*xmlns=[\"']" + re.escape(ATOM_NAMESPACE) + r"[\"'][^>]*>",
    re.IGNORECASE,
)
_FEED_TAG = re.compile(r"<feed[^>]*>", re.IGNORECASE)

_CHANNEL_BODY = re.compile(r"<channel[^>]*>(.*)</channel>", _FLAGS)
_FEED_BODY = re.compile(r"<feed[^>]*>(.*)</feed>", _FLAGS)
_ITEM_BODY = re.compile(r"<item[^>]*>(.*?)</item>", _FLAGS)
_ENTRY_BODY = re.compile(r"<entry[^>]*>(.*?)</entry>", _FLAGS)
_ITEM_BLOCK = re.compile(r"<item.*?</item>", _FLAGS)
_ENTRY_BLOCK = re.compile(r"<entry.*?</entry>", _FLAGS)

_LINK_TAG = re.compile(r"<link([^>]*?)/?>(?:</link>)?", re.IGNORECASE)
_CATEGORY_TAG = re.compile(r"<category([^>]*?)/?>(?:</category>)?", re.IGNORECASE)
_AUTHOR_BODY = re.compile(r"<author[^>]*>(.*?)</author>", _FLAGS)

# RFC 822 zone names that dateutil does not resolve on its own
_TZINFOS = {
    "UT": tz.UTC,
    "EST": -5 * 3600,
    "EDT": -4 * 3600,
    "CST": -6 * 3600,
    "CDT": -5 * 3600,
    "MST": -7 * 3600,
    "MDT": -6 * 3600,
    "PST": -8 * 3600,
    "PDT": -7 * 3600,
}

# A date is complete only if it parses the same against both defaults
_DATE_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 1))


def _tag_pattern(tag_name: str) -> re.Pattern:
    name = re.escape(tag_name)
    return re.compile(
        rf"<{name}[^>]*>(?:\s*<!\[CDATA\[(.*?)\]\]>\s*|(.*?))</{name}>", _FLAGS
    )


def _match_text(match: re.Match) -> str | None:
    content = match.group(1) if match.group(1) is not None else match.group(2)
    content = (content or "").strip()
    return content or None


def _attribute(attrs: str, name: str) -> str | None:
    match = re.search(rf"\b{name}=[\"']([^\"']*)[\"']", attrs, re.IGNORECASE)
    return match.group(1) if match else None


def get_tag_content(xml: str, tag_name: str) -> str | None:
    """Return the trimmed text of the first ``tag_name`` element.

    CDATA-wrapped content is unwrapped. Empty content counts as absent.
    """
    match = _tag_pattern(tag_name).search(xml)
    if match is None:
        return None
    return _match_text(match)


def get_all_tag_contents(xml: str, tag_name: str) -> list[str]:
    """Return the non-empty text of every ``tag_name`` element in order."""
    results = []
    for match in _tag_pattern(tag_name).finditer(xml):
        content = _match_text(match)
        if content:
            results.append(content)
    return results


def get_link_href(xml: str, rel: str | None = None) -> str | None:
    """Return the href of the first ``<link>`` matching ``rel``.

    With no ``rel`` the first link carrying an href is returned.
    """
    for match in _LINK_TAG.finditer(xml):
        attrs = match.group(1)
        href = _attribute(attrs, "href")
        if href is None:
            continue
        if rel is None or _attribute(attrs, "rel") == rel:
            return href
    return None


def get_category_terms(xml: str) -> list[str]:
    """Return the non-empty ``term`` attributes of Atom categories in order."""
    terms = []
    for match in _CATEGORY_TAG.finditer(xml):
        term = _attribute(match.group(1), "term")
        if term:
            terms.append(term)
    return terms


def get_author_name(xml: str) -> str | None:
    match = _AUTHOR_BODY.search(xml)
    if match is None:
        return None
    return get_tag_content(match.group(1), "name")


def parse_date(value: str | None) -> str | None:
    """Normalize a feed date to UTC ISO-8601, or None if it cannot be read.

    Accepts RFC 822 (RSS) and ISO-8601 (Atom) forms. Dates without a
    zone are taken as UTC. Partial values such as a bare weekday
    or month are rejected rather than completed from the current date.
    """
    if not value or not value.strip():
        return None
    try:
        parsed, check = [
            date_parser.parse(value.strip(), default=default, tzinfos=_TZINFOS)
            for default in _DATE_DEFAULTS
        ]
        if parsed != check:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        parsed = parsed.astimezone(UTC)
    except (ValueError, OverflowError):
        return None
    return parsed.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_rss_feed(xml: str) -> bool:
    return _RSS_TAG.search(xml) is not None


def is_atom_feed(xml: str) -> bool:
    if _ATOM_FEED_WITH_XMLNS.search(xml):
        return True
    return _FEED_TAG.search(xml) is not None and ATOM_NAMESPACE in xml


def _check_document(xml: str) -> Failure | None:
    if not xml or not xml.strip():
        return Failure(ErrorCode.PARSE_ERROR, "Empty XML content")
    if "<" not in xml or ">" not in xml:
        return Failure(ErrorCode.PARSE_ERROR, "Malformed XML")
    return None


def parse_rss(xml: str) -> ParseResult:
    """Parse an RSS 2.0 document.

    Args:
        xml: Raw feed document

    Returns:
        ParseSuccess with channel metadata and items, or a parse_error Failure
    """
    failure = _check_document(xml)
    if failure:
        return failure

    if not is_rss_feed(xml):
        return Failure(ErrorCode.PARSE_ERROR, "Not a valid RSS feed")

    channel_match = _CHANNEL_BODY.search(xml)
    if channel_match is None:
        return Failure(ErrorCode.PARSE_ERROR, "RSS feed missing channel element")
    channel = channel_match.group(1)

    # Item-level <title>/<link> must not be read as channel metadata
    channel_meta = _ITEM_BLOCK.sub("", channel)

    title = get_tag_content(channel_meta, "title")
    link = get_tag_content(channel_meta, "link")
    if not title or not link:
        return Failure(ErrorCode.PARSE_ERROR, "RSS feed missing required title or link")

    feed = FeedMetadata(
        title=title,
        url=link,
        description=get_tag_content(channel_meta, "description"),
        last_updated=parse_date(get_tag_content(channel_meta, "lastBuildDate")),
    )

    items = []
    for item_match in _ITEM_BODY.finditer(channel):
        body = item_match.group(1)
        item_title = get_tag_content(body, "title")
        item_link = get_tag_content(body, "link")
        if not item_title or not item_link:
            continue

        items.append(
            FeedItem(
                title=item_title,
                url=item_link,
                published=parse_date(get_tag_content(body, "pubDate")),
                summary=get_tag_content(body, "description"),
                author=get_tag_content(body, "author"),
                categories=get_all_tag_contents(body, "category"),
            )
        )

    return ParseSuccess(feed=feed, items=items)


def parse_atom(xml: str) -> ParseResult:
    """Parse an Atom 1.0 document.

    Args:
        xml: Raw feed document

    Returns:
        ParseSuccess with feed metadata and entries, or a parse_error Failure
    """
    failure = _check_document(xml)
    if failure:
        return failure

    feed_match = _FEED_BODY.search(xml)
    if feed_match is None:
        return Failure(ErrorCode.PARSE_ERROR, "Atom feed missing feed element")
    body = feed_match.group(1)

    feed_meta = _ENTRY_BLOCK.sub("", body)

    title = get_tag_content(feed_meta, "title")
    if not title:
        return Failure(ErrorCode.PARSE_ERROR, "Atom feed missing required title")

    url = (
        get_link_href(feed_meta, "alternate")
        or get_link_href(feed_meta, "self")
        or get_link_href(feed_meta)
        or ""
    )

    feed = FeedMetadata(
        title=title,
        url=url,
        description=get_tag_content(feed_meta, "subtitle"),
        last_updated=parse_date(get_tag_content(feed_meta, "updated")),
    )

    items = []
    for entry_match in _ENTRY_BODY.finditer(body):
        entry = entry_match.group(1)
        entry_title = get_tag_content(entry, "title")
        entry_link = get_link_href(entry, "alternate") or get_link_href(entry)
        if not entry_title or not entry_link:
            continue

        published = parse_date(get_tag_content(entry, "published")) or parse_date(
            get_tag_content(entry, "updated")
        )
        summary = get_tag_content(entry, "summary") or get_tag_content(
            entry, "content"
        )

        items.append(
            FeedItem(
                title=entry_title,
                url=entry_link,
                published=published,
                summary=summary,
                author=get_author_name(entry),
                categories=get_category_terms(entry),
            )
        )

    return ParseSuccess(feed=feed, items=items)


def parse_feed(xml: str) -> ParseResult:
    """Detect the feed format and parse it.

    Args:
        xml: Raw feed document

    Returns:
        ParseSuccess, or a parse_error Failure for empty, non-XML or
        unrecognized documents
    """
    failure = _check_document(xml)
    if failure:
        return failure

    if is_rss_feed(xml):
        return parse_rss(xml)
    if is_atom_feed(xml):
        return parse_atom(xml)

    return Failure(ErrorCode.PARSE_ERROR, "Unknown feed format - not RSS or Atom")
