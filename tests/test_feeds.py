import types
from urllib.parse import quote

import pytest
import requests

from paperboy import feeds
from paperboy.errors import FeedFetchError
from paperboy.models import FeedEntry, FeedSource

SOURCE = FeedSource("example", "https://feed.example.com/rss")
PAYWALLED = FeedSource("locked", "https://locked.example.com/rss", paywalled=True)

RSS_DOCUMENT = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Times</title>
    <link>https://example.com/</link>
    <description>News</description>
    {items}
  </channel>
</rss>
"""

RSS_ITEM = """
    <item>
      <title>Story {index}</title>
      <link>https://example.com/story-{index}</link>
      <description>&lt;p&gt;Body &lt;b&gt;{index}&lt;/b&gt;&lt;/p&gt;</description>
      <pubDate>Fri, 01 Mar 2024 10:{index:02d}:00 +0000</pubDate>
    </item>
"""


def _raw_entry(**fields):
    return types.SimpleNamespace(**fields)


def test_fetch_feed_entries_parses_real_rss_and_truncates(monkeypatch):
    document = RSS_DOCUMENT.format(
        items="".join(RSS_ITEM.format(index=index) for index in range(12))
    )
    response = types.SimpleNamespace(
        content=document.encode("utf-8"), raise_for_status=lambda: None
    )
    monkeypatch.setattr(feeds.requests, "get", lambda url, timeout=None: response)

    entries = feeds.fetch_feed_entries(SOURCE)

    assert len(entries) == 10
    assert [entry.title for entry in entries[:3]] == ["Story 0", "Story 1", "Story 2"]
    assert entries[0].link == "https://example.com/story-0"
    assert entries[0].published == "Fri, 01 Mar 2024 10:00:00 +0000"
    assert entries[0].feed_title == "Example Times"

    article = feeds.normalize_entry(entries[0], SOURCE)
    assert article.snippet == "Body 0"
    assert article.source == "Example Times"


def test_fetch_feed_entries_passes_timeout(stub_network):
    calls = stub_network([_raw_entry(title="A", link="https://example.com/a")])

    feeds.fetch_feed_entries(SOURCE, timeout=2.5)

    assert calls == [(SOURCE.url, 2.5)]


def test_fetch_feed_entries_respects_max_items(stub_network):
    stub_network([_raw_entry(title=str(i), link=f"https://e/{i}") for i in range(5)])

    entries = feeds.fetch_feed_entries(SOURCE, max_items=3)

    assert [entry.title for entry in entries] == ["0", "1", "2"]


def test_fetch_feed_entries_summary_fallbacks(stub_network):
    stub_network(
        [
            _raw_entry(
                title="Detail",
                summary=None,
                summary_detail={"value": "<p>Detail <span>summary</span></p>"},
            ),
            _raw_entry(
                title="Content",
                summary=None,
                summary_detail=None,
                content=[{"value": "<div>content <em>summary</em></div>"}],
            ),
        ]
    )

    entries = feeds.fetch_feed_entries(SOURCE)
    snippets = [feeds.normalize_entry(entry, SOURCE).snippet for entry in entries]

    assert snippets == ["Detail summary", "content summary"]


def test_fetch_feed_entries_uses_updated_when_published_missing(stub_network):
    stub_network([_raw_entry(title="A", updated="2024-03-01T10:00:00Z")])

    entries = feeds.fetch_feed_entries(SOURCE)

    assert entries[0].published == "2024-03-01T10:00:00Z"


@pytest.mark.parametrize(
    "error",
    [
        requests.Timeout("read timed out"),
        requests.ConnectionError("refused"),
    ],
)
def test_fetch_feed_entries_returns_empty_on_request_errors(stub_network, error):
    stub_network([], fail_urls={"feed.example.com": error})

    assert feeds.fetch_feed_entries(SOURCE) == []

    with pytest.raises(FeedFetchError) as info:
        feeds.fetch_feed(SOURCE)
    assert info.value.url == SOURCE.url
    assert info.value.reason is error


def test_fetch_feed_entries_returns_empty_on_http_error(monkeypatch):
    def raise_for_status():
        raise requests.HTTPError("503 Server Error")

    response = types.SimpleNamespace(content=b"", raise_for_status=raise_for_status)
    monkeypatch.setattr(feeds.requests, "get", lambda url, timeout=None: response)

    assert feeds.fetch_feed_entries(SOURCE) == []


def test_fetch_feed_rejects_malformed_payload(stub_network):
    stub_network([], bozo=True)

    with pytest.raises(FeedFetchError):
        feeds.fetch_feed(SOURCE)
    assert feeds.fetch_feed_entries(SOURCE) == []


def test_fetch_feed_keeps_entries_from_lenient_parse(stub_network):
    stub_network([_raw_entry(title="A", link="https://e/a")], bozo=True)

    assert len(feeds.fetch_feed(SOURCE)) == 1


def test_normalize_entry_defaults_missing_fields_to_empty_strings():
    article = feeds.normalize_entry(FeedEntry(), SOURCE)

    assert article.title == ""
    assert article.link == ""
    assert article.snippet == ""
    assert article.pub_date == ""
    assert article.source == ""
    assert all(isinstance(value, str) for value in article.to_dict().values())


def test_normalize_entry_passes_link_through_when_not_paywalled():
    entry = FeedEntry(title="T", link="https://example.com/a?b=1")

    assert feeds.normalize_entry(entry, SOURCE).link == "https://example.com/a?b=1"


def test_normalize_entry_rewrites_paywalled_links():
    original = "https://locked.example.com/2024/03/story?ref=rss&x=1"
    article = feeds.normalize_entry(FeedEntry(link=original), PAYWALLED)

    assert article.link.startswith("https://12ft.io/proxy?q=")
    assert article.link == (
        "https://12ft.io/proxy?q="
        "https%3A%2F%2Flocked.example.com%2F2024%2F03%2Fstory%3Fref%3Drss%26x%3D1"
    )
    assert quote(original, safe="") in article.link


def test_normalize_entry_proxies_empty_link():
    article = feeds.normalize_entry(FeedEntry(title="No link"), PAYWALLED)

    assert article.link == "https://12ft.io/proxy?q="


def test_proxy_link_matches_uri_component_encoding():
    assert feeds.proxy_link("a b!~*'()", "proxy.example") == (
        "https://proxy.example/proxy?q=a%20b!~*'()"
    )


def test_strip_html_collapses_whitespace():
    assert (
        feeds._strip_html("  <p>Summary <strong>text</strong> with a <a href='#'>link</a>.</p> ")
        == "Summary text with a link."
    )
