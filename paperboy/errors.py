"""Exception types raised by the aggregation engine."""

from __future__ import annotations


class PaperboyError(Exception):
    """Base class for paperboy errors."""


class AuthenticationRequired(PaperboyError):
    """No resolvable identity was supplied with the request."""


class PreferencesUnavailable(PaperboyError):
    """The preferences store failed or holds no record for the identity."""


class FeedFetchError(PaperboyError):
    """A single feed could not be retrieved or parsed."""

    def __init__(self, url: str, reason: object) -> None:
        super().__init__(f"Failed to fetch feed {url}: {reason}")
        self.url = url
        self.reason = reason


class CacheStoreError(PaperboyError):
    """Persisting a computed article set failed."""


class InvalidInput(PaperboyError, ValueError):
    """A preference update payload has the wrong shape."""
