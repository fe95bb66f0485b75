"""Concurrent fan-out over feed sources with randomised selection."""

from __future__ import annotations

import concurrent.futures
import logging
import random
from typing import Callable, List, Optional, Sequence

from .feeds import DEFAULT_PROXY_HOST, fetch_feed_entries, normalize_entry
from .models import Article, FeedEntry, FeedSource

logger = logging.getLogger(__name__)

FetchFn = Callable[[FeedSource], List[FeedEntry]]


def aggregate(
    sources: Sequence[FeedSource],
    limit: int,
    *,
    fetch: Optional[FetchFn] = None,
    proxy_host: str = DEFAULT_PROXY_HOST,
    concurrency: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> List[Article]:
    """Fetch every source concurrently and return up to ``limit`` shuffled articles.

    Each source runs in its own worker and a failing source contributes no
    articles; the remaining sources are unaffected. All workers are awaited
    before the merged list is deduplicated by link, shuffled and truncated.
    """
    if limit <= 0 or not sources:
        logger.info(
            "Nothing to aggregate (limit=%d, sources=%d)", limit, len(sources)
        )
        return []

    fetch = fetch or fetch_feed_entries
    rng = rng or random.Random()

    def process_source(source: FeedSource) -> List[Article]:
        try:
            entries = fetch(source)
            return [normalize_entry(entry, source, proxy_host) for entry in entries]
        except Exception:
            logger.exception("Failed to process feed %s", source.url)
            return []

    merged: List[Article] = []
    with concurrent.futures.ThreadPoolExecutor(
        max_workers=concurrency or len(sources)
    ) as executor:
        future_to_source = {
            executor.submit(process_source, source): source for source in sources
        }
        for future in concurrent.futures.as_completed(future_to_source):
            articles = future.result()
            logger.debug(
                "Feed %s contributed %d articles",
                future_to_source[future].key,
                len(articles),
            )
            merged.extend(articles)

    unique: List[Article] = []
    seen_links = set()
    for article in merged:
        if article.link and article.link in seen_links:
            continue
        unique.append(article)
        seen_links.add(article.link)

    rng.shuffle(unique)
    selected = unique[:limit]
    logger.info(
        "Selected %d of %d unique articles from %d sources (limit %d)",
        len(selected),
        len(unique),
        len(sources),
        limit,
    )
    return selected
