"""Exceptions raised by the analytics services."""

from __future__ import annotations


class AnalyticsError(Exception):
    """Base class for analytics failures."""


class InvalidInputError(AnalyticsError, ValueError):
    """Raised when a caller supplies values the engine refuses to process."""


class LedgerUnavailableError(AnalyticsError):
    """Raised when the ledger collaborator cannot serve a fetch."""


class CacheBackendError(AnalyticsError):
    """Raised by cache backends; never escapes ``ResultCache``."""


__all__ = [
    "AnalyticsError",
    "InvalidInputError",
    "LedgerUnavailableError",
    "CacheBackendError",
]
