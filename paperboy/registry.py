"""Publication registry mapping preference keys to feed sources."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional
from xml.etree import ElementTree as ET

from .models import FeedSource

logger = logging.getLogger(__name__)


DEFAULT_SOURCES: List[FeedSource] = [
    FeedSource("nyt", "https://rss.nytimes.com/services/xml/rss/nyt/HomePage.xml"),
    FeedSource("atlantic", "https://www.theatlantic.com/feed/all/", paywalled=True),
    FeedSource("aeon", "https://aeon.co/feed.rss"),
    FeedSource("wired", "https://www.wired.com/feed/rss"),
    FeedSource("wapo", "https://feeds.washingtonpost.com/rss/world"),
    FeedSource("economist", "https://www.economist.com/latest/rss.xml"),
    FeedSource("vice", "https://www.vice.com/en/rss", paywalled=True),
]


class FeedRegistry:
    """Case-insensitive lookup of publication keys."""

    def __init__(self, sources: Iterable[FeedSource] = ()) -> None:
        self._sources: Dict[str, FeedSource] = {}
        for source in sources:
            self.register(source)

    def register(self, source: FeedSource) -> None:
        key = source.key.lower()
        if key in self._sources:
            logger.debug("Overriding registry entry '%s' with %s", key, source.url)
        self._sources[key] = source

    def lookup(self, key: str) -> Optional[FeedSource]:
        """Return the source for ``key`` or None when it is not registered."""
        if not key:
            return None
        return self._sources.get(key.lower())

    def keys(self) -> List[str]:
        return list(self._sources)

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._sources


def parse_registry_file(path: str) -> List[FeedSource]:
    """Parse an OPML file into feed sources.

    Outlines of ``type="rss"`` with an ``xmlUrl`` are registered. The key comes
    from the ``key`` attribute or the lowercased title, and ``paywalled="true"``
    marks the source for proxy rewriting. Nested folders are walked.
    """
    logger.info("Loading feed registry from %s", path)
    tree = ET.parse(path)
    root = tree.getroot()
    body = root.find("body")
    if body is None:
        raise ValueError("Feed registry file is missing the <body> section.")

    sources: List[FeedSource] = []

    def walk(outline: ET.Element) -> None:
        title = outline.attrib.get("title") or outline.attrib.get("text")
        feed_url = outline.attrib.get("xmlUrl")

        if outline.attrib.get("type") == "rss" and feed_url:
            key = outline.attrib.get("key") or title
            if not key:
                logger.warning("Skipping registry outline without key: %s", feed_url)
                return
            paywalled = outline.attrib.get("paywalled", "false").lower() == "true"
            sources.append(FeedSource(key.lower(), feed_url, paywalled))
            logger.debug(
                "Registered publication '%s' (paywalled=%s)", sources[-1].key, paywalled
            )
            return

        for child in outline.findall("outline"):
            walk(child)

    for outline in body.findall("outline"):
        walk(outline)

    logger.info("Loaded %d publications from %s", len(sources), path)
    return sources


def build_registry(feeds_file: Optional[str] = None) -> FeedRegistry:
    """Return the built-in registry, extended by an OPML file if given."""
    registry = FeedRegistry(DEFAULT_SOURCES)
    if feeds_file:
        for source in parse_registry_file(feeds_file):
            registry.register(source)
    return registry
