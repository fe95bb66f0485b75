"""High-level orchestration: identity to cached or freshly aggregated articles."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional

from . import db
from .aggregator import aggregate
from .cache import DailyArticleCache, resolve_timezone
from .config import AppConfig
from .errors import AuthenticationRequired, CacheStoreError, PreferencesUnavailable
from .feeds import (
    DEFAULT_PROXY_HOST,
    DEFAULT_TIMEOUT,
    MAX_ITEMS_PER_FEED,
    fetch_feed,
    fetch_feed_entries,
    normalize_entry,
)
from .models import Article, FeedEntry, FeedSource, Preferences
from .preferences import (
    DEFAULT_DAILY_LIMIT,
    DEFAULT_PUBLICATIONS,
    PreferencesStore,
    default_preferences,
)
from .registry import FeedRegistry, build_registry

logger = logging.getLogger(__name__)


@dataclass
class ServiceConfig:
    """Runtime options for aggregation."""

    fetch_timeout: float = DEFAULT_TIMEOUT
    max_items_per_feed: int = MAX_ITEMS_PER_FEED
    concurrency: Optional[int] = None
    proxy_host: str = DEFAULT_PROXY_HOST
    default_publications: List[str] = field(
        default_factory=lambda: list(DEFAULT_PUBLICATIONS)
    )
    default_daily_limit: int = DEFAULT_DAILY_LIMIT


class AggregationService:
    """Public entry point resolving a user's article list."""

    def __init__(
        self,
        registry: FeedRegistry,
        preferences: PreferencesStore,
        cache: DailyArticleCache,
        config: Optional[ServiceConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.registry = registry
        self.preferences = preferences
        self.cache = cache
        self.config = config or ServiceConfig()
        self._rng = rng or random.Random()

    def get_articles_for(self, identity: Optional[str]) -> List[Article]:
        if not identity:
            raise AuthenticationRequired("Not authenticated")

        day = self.cache.today()
        cached = self.cache.lookup(identity, day=day)
        if cached is not None:
            logger.info("Serving %d cached articles for %s", len(cached), identity)
            return cached

        prefs = self.resolve_preferences(identity)
        sources = self.resolve_sources(prefs)
        articles = aggregate(
            sources,
            prefs.daily_limit,
            fetch=self._fetch_entries,
            proxy_host=self.config.proxy_host,
            concurrency=self.config.concurrency,
            rng=self._rng,
        )

        try:
            self.cache.store(identity, articles, day=day)
        except CacheStoreError as exc:
            logger.error("%s", exc)

        return articles

    def resolve_preferences(self, identity: str) -> Preferences:
        """Load preferences, falling back to the defaults when unavailable."""
        try:
            return self.preferences.get(identity)
        except PreferencesUnavailable as exc:
            logger.info("Using default preferences for %s: %s", identity, exc)
            return default_preferences(
                identity,
                self.config.default_publications,
                self.config.default_daily_limit,
            )

    def resolve_sources(self, prefs: Preferences) -> List[FeedSource]:
        """Map publication keys and custom feeds to sources, one per feed URL."""
        candidates: List[FeedSource] = []
        for key in prefs.publications:
            source = self.registry.lookup(key)
            if source is None:
                logger.debug("Ignoring unknown publication '%s'", key)
                continue
            candidates.append(source)
        candidates.extend(feed.to_source() for feed in prefs.custom_feeds)

        sources: List[FeedSource] = []
        seen_urls = set()
        for source in candidates:
            if source.url in seen_urls:
                logger.debug("Skipping duplicate feed %s", source.url)
                continue
            sources.append(source)
            seen_urls.add(source.url)
        logger.debug(
            "Resolved %d sources for %s: %s",
            len(sources),
            prefs.email,
            [source.key for source in sources],
        )
        return sources

    def fetch_custom_feed(self, url: str, paywalled: bool = False) -> List[Article]:
        """Fetch one ad hoc feed, letting FeedFetchError propagate to the caller."""
        source = FeedSource(key=url, url=url, paywalled=paywalled)
        entries = fetch_feed(
            source,
            timeout=self.config.fetch_timeout,
            max_items=self.config.max_items_per_feed,
        )
        return [
            normalize_entry(entry, source, self.config.proxy_host) for entry in entries
        ]

    def _fetch_entries(self, source: FeedSource) -> List[FeedEntry]:
        return fetch_feed_entries(
            source,
            timeout=self.config.fetch_timeout,
            max_items=self.config.max_items_per_feed,
        )


def build_service(app_config: AppConfig) -> AggregationService:
    """Wire the registry, stores and cache described by ``app_config``."""
    engine = db.init_engine(app_config.database.resolve())
    session_factory = db.get_session_factory(engine)

    registry = build_registry(app_config.feeds_file)
    logger.info("Feed registry holds %d publications", len(registry))

    return AggregationService(
        registry=registry,
        preferences=PreferencesStore(
            session_factory, default_daily_limit=app_config.defaults.daily_limit
        ),
        cache=DailyArticleCache(
            session_factory, tz=resolve_timezone(app_config.cache.timezone)
        ),
        config=ServiceConfig(
            fetch_timeout=app_config.fetch.timeout,
            max_items_per_feed=app_config.fetch.max_items,
            concurrency=app_config.fetch.concurrency,
            proxy_host=app_config.proxy_host,
            default_publications=list(app_config.defaults.publications),
            default_daily_limit=app_config.defaults.daily_limit,
        ),
    )
