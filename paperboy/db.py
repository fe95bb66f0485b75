"""Database layer for preferences, custom feeds and daily article sets."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Integer,
    String,
    create_engine,
    delete,
    select,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class PreferencesModel(Base):
    """Per-user publication choices and daily limit."""

    __tablename__ = "preferences"

    email = Column(String, primary_key=True)
    publications = Column(JSON, nullable=False, default=list)
    daily_limit = Column(Integer, nullable=True)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


class CustomFeedModel(Base):
    """User-supplied feed URLs."""

    __tablename__ = "custom_feeds"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, index=True)
    url = Column(String, nullable=False)
    paywalled = Column(Boolean, nullable=False, default=False)


class DailyArticlesModel(Base):
    """Article set computed for a user on a given date."""

    __tablename__ = "daily_articles"

    email = Column(String, primary_key=True)
    date = Column(Date, primary_key=True)
    articles = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


def init_engine(connection_string: Optional[str]) -> Optional[Engine]:
    """Initialize the database engine and create missing tables."""
    if not connection_string:
        return None

    logger.info("Initializing database connection: %s", connection_string)
    if connection_string.startswith("sqlite") and ":memory:" in connection_string:
        # One shared connection so every thread sees the same in-memory database.
        engine = create_engine(
            connection_string,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(connection_string)
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory for the given engine."""
    return sessionmaker(bind=engine)


def get_preferences(session: Session, email: str) -> Optional[dict]:
    """Return the stored preferences for ``email`` including custom feeds."""
    stmt = select(PreferencesModel).where(PreferencesModel.email == email)
    result = session.execute(stmt).scalar_one_or_none()
    if not result:
        return None

    feeds_stmt = (
        select(CustomFeedModel)
        .where(CustomFeedModel.email == email)
        .order_by(CustomFeedModel.id)
    )
    feeds = session.execute(feeds_stmt).scalars().all()

    return {
        "email": result.email,
        "publications": list(result.publications or []),
        "daily_limit": result.daily_limit,
        "custom_feeds": [{"url": row.url, "paywalled": row.paywalled} for row in feeds],
    }


_DIALECT_INSERTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


def _upsert(session: Session, model, values: Dict, key: Tuple[str, ...]) -> None:
    """Write ``values`` in one statement, replacing any row with the same ``key``."""
    insert = _DIALECT_INSERTS.get(session.get_bind().dialect.name)
    if insert is None:
        session.merge(model(**values))
        return

    stmt = insert(model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(key),
        set_={name: stmt.excluded[name] for name in values if name not in key},
    )
    session.execute(stmt)

def upsert_preferences(session: Session, data: dict) -> None:
    """Insert or replace a user's preferences and custom feed list."""
    email = data.get("email")
    if not email:
        return

    _upsert(
        session,
        PreferencesModel,
        {
            "email": email,
            "publications": list(data.get("publications") or []),
            "daily_limit": data.get("daily_limit"),
            "updated_at": datetime.now(timezone.utc),
        },
        key=("email",),
    )

    # Custom feeds are replaced wholesale, matching last-write-wins semantics.
    session.execute(delete(CustomFeedModel).where(CustomFeedModel.email == email))
    for feed in data.get("custom_feeds") or []:
        session.add(
            CustomFeedModel(
                email=email,
                url=feed["url"],
                paywalled=bool(feed.get("paywalled", False)),
            )
        )

    try:
        session.commit()
    except Exception:
        session.rollback()
        raise


def get_daily_articles(session: Session, email: str, day: date) -> Optional[List[Dict]]:
    """Return the article payloads stored for ``email`` on ``day``."""
    stmt = select(DailyArticlesModel).where(
        DailyArticlesModel.email == email,
        DailyArticlesModel.date == day,
    )
    result = session.execute(stmt).scalar_one_or_none()
    if result is None:
        return None
    return list(result.articles)


def upsert_daily_articles(
    session: Session, email: str, day: date, articles: List[Dict]
) -> None:
    """Insert or overwrite the article set for ``email`` on ``day``."""
    _upsert(
        session,
        DailyArticlesModel,
        {
            "email": email,
            "date": day,
            "articles": list(articles),
            "updated_at": datetime.now(timezone.utc),
        },
        key=("email", "date"),
    )

    try:
        session.commit()
    except Exception:
        session.rollback()
        raise
