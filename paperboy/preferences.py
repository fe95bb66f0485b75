"""Preferences storage and update validation."""

from __future__ import annotations

import logging
from typing import Any, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from . import db
from .errors import InvalidInput, PreferencesUnavailable
from .models import CustomFeed, Preferences

logger = logging.getLogger(__name__)

DEFAULT_PUBLICATIONS = ["NYT", "Atlantic", "Aeon"]
DEFAULT_DAILY_LIMIT = 9
# Upper bound of a signed 32-bit INTEGER column.
MAX_DAILY_LIMIT = 2**31 - 1


def default_preferences(
    email: str,
    publications: List[str] = DEFAULT_PUBLICATIONS,
    daily_limit: int = DEFAULT_DAILY_LIMIT,
) -> Preferences:
    return Preferences(
        email=email, publications=list(publications), daily_limit=daily_limit
    )


def parse_preferences_update(email: str, payload: Any) -> Preferences:
    """Validate an update payload and build a Preferences record from it."""
    if not isinstance(payload, dict):
        raise InvalidInput("Preferences payload must be a JSON object.")

    publications = payload.get("publications")
    if not isinstance(publications, list) or not all(
        isinstance(item, str) for item in publications
    ):
        raise InvalidInput("'publications' must be a list of strings.")

    daily_limit = payload.get("daily_limit")
    # bool is an int subclass and is rejected explicitly.
    if isinstance(daily_limit, bool) or not isinstance(daily_limit, int):
        raise InvalidInput("'daily_limit' must be an integer.")
    if daily_limit < 0:
        raise InvalidInput("'daily_limit' must not be negative.")
    if daily_limit > MAX_DAILY_LIMIT:
        raise InvalidInput(f"'daily_limit' must not exceed {MAX_DAILY_LIMIT}.")

    raw_feeds = payload.get("custom_feeds", [])
    if raw_feeds is None:
        raw_feeds = []
    if not isinstance(raw_feeds, list):
        raise InvalidInput("'custom_feeds' must be a list.")

    custom_feeds: List[CustomFeed] = []
    for item in raw_feeds:
        if not isinstance(item, dict):
            raise InvalidInput("Each custom feed must be an object.")
        url = item.get("url")
        if not isinstance(url, str) or not url.strip():
            raise InvalidInput("Each custom feed needs a non-empty 'url'.")
        paywalled = item.get("paywalled", False)
        if not isinstance(paywalled, bool):
            raise InvalidInput("Custom feed 'paywalled' must be a boolean.")
        custom_feeds.append(CustomFeed(url=url.strip(), paywalled=paywalled))

    return Preferences(
        email=email,
        publications=list(publications),
        daily_limit=daily_limit,
        custom_feeds=custom_feeds,
    )


class PreferencesStore:
    """Reads and upserts preferences through SQLAlchemy sessions."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        default_daily_limit: int = DEFAULT_DAILY_LIMIT,
    ) -> None:
        self._session_factory = session_factory
        self._default_daily_limit = default_daily_limit

    def get(self, email: str) -> Preferences:
        try:
            with self._session_factory() as session:
                record = db.get_preferences(session, email)
        except SQLAlchemyError as exc:
            raise PreferencesUnavailable(
                f"Failed to load preferences for {email}: {exc}"
            ) from exc

        if record is None:
            raise PreferencesUnavailable(f"No preferences stored for {email}")

        daily_limit = record["daily_limit"]
        return Preferences(
            email=email,
            publications=record["publications"],
            daily_limit=(
                self._default_daily_limit if daily_limit is None else daily_limit
            ),
            custom_feeds=[
                CustomFeed(url=feed["url"], paywalled=feed["paywalled"])
                for feed in record["custom_feeds"]
            ],
        )

    def save(self, preferences: Preferences) -> None:
        with self._session_factory() as session:
            db.upsert_preferences(session, preferences.to_dict())
        logger.info(
            "Saved preferences for %s (%d publications, %d custom feeds, limit %d)",
            preferences.email,
            len(preferences.publications),
            len(preferences.custom_feeds),
            preferences.daily_limit,
        )
