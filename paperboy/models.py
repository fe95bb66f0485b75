"""Shared data models for paperboy."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class FeedSource:
    """A syndication endpoint plus its paywall flag."""

    key: str
    url: str
    paywalled: bool = False


@dataclass
class FeedEntry:
    """Unprocessed item read from a feed, before normalisation."""

    title: Optional[str] = None
    link: Optional[str] = None
    summary: Optional[str] = None
    published: Optional[str] = None
    feed_title: Optional[str] = None


@dataclass(frozen=True)
class Article:
    """Canonical article record returned to callers."""

    title: str = ""
    link: str = ""
    snippet: str = ""
    pub_date: str = ""
    source: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "title": self.title,
            "link": self.link,
            "snippet": self.snippet,
            "pubDate": self.pub_date,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Article":
        """Rebuild an article from its JSON form, coercing gaps to empty strings."""

        def _text(key: str) -> str:
            value = data.get(key)
            return value if isinstance(value, str) else ""

        return cls(
            title=_text("title"),
            link=_text("link"),
            snippet=_text("snippet"),
            pub_date=_text("pubDate"),
            source=_text("source"),
        )


@dataclass(frozen=True)
class CustomFeed:
    """A user-supplied feed URL."""

    url: str
    paywalled: bool = False

    def to_source(self) -> FeedSource:
        return FeedSource(key=self.url, url=self.url, paywalled=self.paywalled)


@dataclass
class Preferences:
    """Per-user aggregation preferences."""

    email: str
    publications: List[str] = field(default_factory=list)
    daily_limit: int = 9
    custom_feeds: List[CustomFeed] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "email": self.email,
            "publications": list(self.publications),
            "daily_limit": self.daily_limit,
            "custom_feeds": [
                {"url": feed.url, "paywalled": feed.paywalled}
                for feed in self.custom_feeds
            ],
        }
