"""Property-based tests for the conditional feed cache."""

from hypothesis import given
from hypothesis import strategies as st

from feed_ingest.cache import FeedCache, derive_key
from feed_ingest.kv import MemoryStore
from feed_ingest.models import CachedFeedData, FeedItem, FeedMetadata

optional_text = st.one_of(st.none(), st.text(min_size=1, max_size=50))

feed_items = st.builds(
    FeedItem,
    title=st.text(min_size=1, max_size=50),
    url=st.text(min_size=1, max_size=80),
    published=optional_text,
    summary=optional_text,
    author=optional_text,
    categories=st.lists(st.text(min_size=1, max_size=20), max_size=4),
)

cached_feeds = st.builds(
    CachedFeedData,
    feed=st.builds(
        FeedMetadata,
        title=st.text(min_size=1, max_size=50),
        url=st.text(max_size=80),
        description=optional_text,
        last_updated=optional_text,
    ),
    items=st.lists(feed_items, max_size=5),
    cached_at=st.text(min_size=1, max_size=30),
)


class TestFeedCacheProperties:
    """Property-based tests for FeedCache."""

    @given(st.text(), st.text())
    def test_key_derivation_property(self, url_a, url_b):
        """Keys are stable per URL and differ between distinct URLs."""
        assert derive_key(url_a) == derive_key(url_a)
        if url_a != url_b:
            assert derive_key(url_a) != derive_key(url_b)

    @given(st.text(min_size=1, max_size=200), cached_feeds)
    def test_round_trip_property(self, url, data):
        """Content written to the cache reads back equal before expiry."""
        cache = FeedCache(MemoryStore())

        cache.cache_feed(url, data)

        assert cache.get_cached_feed(url) == data
