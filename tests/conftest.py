import types
from datetime import datetime, timezone

import pytest

from paperboy import db, feeds
from paperboy.models import FeedEntry


@pytest.fixture
def session_factory():
    """In-memory SQLite session factory, fresh per test."""
    engine = db.init_engine("sqlite:///:memory:")
    yield db.get_session_factory(engine)
    engine.dispose()


class FrozenClock:
    """Mutable clock for cache tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


def _make_entries(source, count=10):
    return [
        FeedEntry(
            title=f"{source.key} story {index}",
            link=f"{source.url}/item-{index}",
            summary=f"<p>Summary {index}</p>",
            published="Fri, 01 Mar 2024 10:00:00 +0000",
            feed_title=source.key,
        )
        for index in range(count)
    ]


@pytest.fixture
def make_entries():
    """Build `count` normalisable entries whose links live under the source URL."""
    return _make_entries


@pytest.fixture
def stub_network(monkeypatch):
    """Replace the HTTP request and feed parser used by paperboy.feeds.

    Returns a function taking the parsed entries (or a mapping of URL to
    entries) plus optional feed title.
    """

    calls = []

    def install(entries, feed_title="Feed Title", bozo=False, fail_urls=()):
        def fake_get(url, timeout=None):
            calls.append((url, timeout))
            for marker, exc in dict(fail_urls).items():
                if marker in url:
                    raise exc
            return types.SimpleNamespace(
                content=url.encode("utf-8"), raise_for_status=lambda: None
            )

        def fake_parse(content):
            url = content.decode("utf-8")
            items = entries.get(url, []) if isinstance(entries, dict) else entries
            return types.SimpleNamespace(
                entries=items,
                feed=types.SimpleNamespace(title=feed_title),
                bozo=bozo,
            )

        monkeypatch.setattr(feeds.requests, "get", fake_get)
        monkeypatch.setattr(feeds.feedparser, "parse", fake_parse)
        return calls

    return install
