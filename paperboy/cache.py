"""Per-user daily cache of aggregated articles."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from . import db
from .errors import CacheStoreError
from .models import Article

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_timezone(name: str) -> tzinfo:
    """Return the tzinfo for an IANA timezone name."""
    if name.upper() in ("UTC", "Z"):
        return timezone.utc
    return ZoneInfo(name)


class DailyArticleCache:
    """Caches one article set per (email, calendar date).

    An entry is valid for the rest of the calendar date it was written on,
    with dates taken from ``clock`` in the ``tz`` timezone. Rolling over to a
    new date makes the previous entry unreachable; nothing is evicted.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Optional[Clock] = None,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or _utc_now
        self._tz = tz

    def today(self) -> date:
        return self._clock().astimezone(self._tz).date()

    def lookup(
        self, email: str, day: Optional[date] = None
    ) -> Optional[List[Article]]:
        """Return the cached articles for ``email`` on ``day`` (default today).

        Returns None on a miss.
        """
        day = day or self.today()
        try:
            with self._session_factory() as session:
                payload = db.get_daily_articles(session, email, day)
        except SQLAlchemyError as exc:
            logger.warning("Cache lookup failed for %s on %s: %s", email, day, exc)
            return None

        if payload is None:
            logger.debug("Cache miss for %s on %s", email, day)
            return None

        logger.debug("Cache hit for %s on %s (%d articles)", email, day, len(payload))
        return [Article.from_dict(item) for item in payload if isinstance(item, dict)]

    def store(
        self,
        email: str,
        articles: Sequence[Article],
        day: Optional[date] = None,
    ) -> None:
        """Overwrite the entry for ``email`` on ``day`` (default today)."""
        day = day or self.today()
        try:
            with self._session_factory() as session:
                db.upsert_daily_articles(
                    session, email, day, [article.to_dict() for article in articles]
                )
        except SQLAlchemyError as exc:
            raise CacheStoreError(
                f"Failed to cache articles for {email} on {day}: {exc}"
            ) from exc
        logger.info("Cached %d articles for %s on %s", len(articles), email, day)
