"""Exceptions raised by site_analytics.

Remote service failures (google.api_core.exceptions.*) are never wrapped;
they reach the caller unchanged.
"""


class AnalyticsError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(AnalyticsError):
    """Required configuration or credential material is missing."""


class EntityNotFoundError(AnalyticsError):
    """The given URL is not registered in the analytics account."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Site {url} is not present in your Analytics account.")


class QueryTranslationError(AnalyticsError, ValueError):
    """A query option cannot be expressed against the reporting backend."""
