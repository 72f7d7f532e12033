"""Site Analytics - cached reporting queries against Google Analytics"""

from .analytics import Analytics
from .cache import Cache, InMemoryCache, RedisCache, get_cache
from .client import AnalyticsClient
from .errors import (
    AnalyticsError,
    ConfigurationError,
    EntityNotFoundError,
    QueryTranslationError,
)
from .service import ReportingService

__version__ = "0.1.0"

__all__ = [
    "Analytics",
    "AnalyticsClient",
    "ReportingService",
    "Cache",
    "InMemoryCache",
    "RedisCache",
    "get_cache",
    "AnalyticsError",
    "ConfigurationError",
    "EntityNotFoundError",
    "QueryTranslationError",
]
