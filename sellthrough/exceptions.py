"""
Exception hierarchy for the sell-through tracker.
"""

from typing import Optional


class SellThroughError(Exception):
    """Base class for all sell-through errors"""


class InvalidInputError(SellThroughError, ValueError):
    """Caller supplied a missing or malformed value; nothing was written"""


class InvalidEventError(InvalidInputError):
    """Inbound event payload failed validation"""

    def __init__(self, event_type: str, message: str):
        super().__init__(f"Invalid {event_type} event: {message}")
        self.event_type = event_type


class CatalogError(SellThroughError):
    """Catalog API request failed"""


class CatalogHTTPError(CatalogError):
    """Catalog API answered with a non-retryable error status"""

    def __init__(self, status_code: int, url: str, body: Optional[str] = None):
        message = f"Catalog API returned HTTP {status_code} for {url}"
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.body = (body or "")[:500]


class CatalogRateLimitError(CatalogHTTPError):
    """Catalog API kept answering 429 after all retries were spent"""

    def __init__(self, url: str, attempts: int, body: Optional[str] = None):
        super().__init__(429, url, body)
        self.attempts = attempts
        self.args = (f"Catalog API still rate limited after {attempts} attempts for {url}",)


__all__ = [
    "SellThroughError",
    "InvalidInputError",
    "InvalidEventError",
    "CatalogError",
    "CatalogHTTPError",
    "CatalogRateLimitError",
]
