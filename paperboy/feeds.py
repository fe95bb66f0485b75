"""Feed retrieval and article normalisation."""

from __future__ import annotations

import logging
import re
from typing import List, Optional
from urllib.parse import quote

import feedparser
import requests
from bs4 import BeautifulSoup

from .errors import FeedFetchError
from .models import Article, FeedEntry, FeedSource

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
MAX_ITEMS_PER_FEED = 10
DEFAULT_PROXY_HOST = "12ft.io"

# Characters encodeURIComponent leaves untouched besides the RFC 3986 unreserved set.
_URI_COMPONENT_SAFE = "!~*'()"


def fetch_feed(
    source: FeedSource,
    timeout: float = DEFAULT_TIMEOUT,
    max_items: int = MAX_ITEMS_PER_FEED,
) -> List[FeedEntry]:
    """Fetch and parse a single feed, raising FeedFetchError on any failure."""
    logger.info("Fetching feed '%s' (%s)", source.key, source.url)
    try:
        response = requests.get(source.url, timeout=timeout)
        response.raise_for_status()
        content = response.content
    except requests.RequestException as exc:
        raise FeedFetchError(source.url, exc) from exc

    try:
        parsed = feedparser.parse(content)
    except Exception as exc:  # noqa: BLE001 - parser internals vary by payload
        raise FeedFetchError(source.url, exc) from exc

    raw_entries = list(getattr(parsed, "entries", None) or [])
    if getattr(parsed, "bozo", False) and not raw_entries:
        reason = getattr(parsed, "bozo_exception", None) or "malformed feed"
        raise FeedFetchError(source.url, reason)

    feed_meta = getattr(parsed, "feed", None)
    feed_title = getattr(feed_meta, "title", None) if feed_meta is not None else None

    entries = [_to_feed_entry(entry, feed_title) for entry in raw_entries[:max_items]]
    logger.info(
        "Collected %d of %d entries from feed '%s'",
        len(entries),
        len(raw_entries),
        source.url,
    )
    return entries


def fetch_feed_entries(
    source: FeedSource,
    timeout: float = DEFAULT_TIMEOUT,
    max_items: int = MAX_ITEMS_PER_FEED,
) -> List[FeedEntry]:
    """Fetch entries from a single feed, returning an empty list on failure."""
    try:
        return fetch_feed(source, timeout=timeout, max_items=max_items)
    except FeedFetchError as exc:
        logger.warning(
            "Failed to fetch feed '%s' (%s): %s", source.key, source.url, exc.reason
        )
        return []


def _to_feed_entry(entry: object, feed_title: Optional[str]) -> FeedEntry:
    summary = getattr(entry, "summary", None)
    if not summary:
        summary_detail = getattr(entry, "summary_detail", None)
        if summary_detail:
            summary = summary_detail.get("value")
    if not summary:
        content = getattr(entry, "content", None)
        if content:
            try:
                summary = content[0].get("value")
            except (TypeError, KeyError, IndexError, AttributeError):
                summary = None

    published = getattr(entry, "published", None) or getattr(entry, "updated", None)

    return FeedEntry(
        title=getattr(entry, "title", None),
        link=getattr(entry, "link", None),
        summary=summary,
        published=published,
        feed_title=feed_title,
    )


def _strip_html(raw_value: str) -> str:
    """Return text content extracted from HTML fragments."""
    soup = BeautifulSoup(raw_value, "html.parser")
    text = soup.get_text(separator=" ", strip=True)
    text = re.sub(r"\s+([.,;:!?])", r"\1", text)
    text = re.sub(r"\s{2,}", " ", text)
    return text.strip()


def proxy_link(link: str, proxy_host: str = DEFAULT_PROXY_HOST) -> str:
    """Wrap ``link`` in the paywall bypass proxy URL."""
    return f"https://{proxy_host}/proxy?q={quote(link or '', safe=_URI_COMPONENT_SAFE)}"


def normalize_entry(
    entry: FeedEntry,
    source: FeedSource,
    proxy_host: str = DEFAULT_PROXY_HOST,
) -> Article:
    """Map a raw feed entry onto the canonical article record."""
    link = entry.link or ""
    if source.paywalled:
        link = proxy_link(link, proxy_host)

    return Article(
        title=entry.title or "",
        link=link,
        snippet=_strip_html(entry.summary) if entry.summary else "",
        pub_date=entry.published or "",
        source=entry.feed_title or "",
    )
