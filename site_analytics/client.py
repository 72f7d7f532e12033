"""Caching client in front of a reporting service.

Historical and real-time queries are cached independently: each class has
its own lifetime and key namespace, and is only cached when a cache is
present and its lifetime is positive.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from .cache import Cache
from .errors import EntityNotFoundError
from .query import QueryDescriptor
from .service import RawResponse, ReportingService

logger = logging.getLogger(__name__)


class AnalyticsClient:
    """Query a reporting service, memoizing answers in an optional cache."""

    def __init__(
        self,
        service: ReportingService,
        cache: Optional[Cache] = None,
        cache_lifetime_in_minutes: int = 0,
        realtime_cache_lifetime_in_seconds: int = 0,
    ):
        """Initialize the client.

        Args:
            service: Remote reporting service
            cache: Optional cache port; caching is off without one
            cache_lifetime_in_minutes: Lifetime of historical answers (0 disables)
            realtime_cache_lifetime_in_seconds: Lifetime of real-time answers (0 disables)
        """
        self.service = service
        self.cache = cache
        self.cache_lifetime_in_minutes = cache_lifetime_in_minutes
        self.realtime_cache_lifetime_in_seconds = realtime_cache_lifetime_in_seconds
        self._entity_ids: Optional[Dict[str, str]] = None

    def query(
        self,
        entity_id: str,
        start_date: str,
        end_date: str,
        metrics: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> RawResponse:
        """Run a historical query, served from the cache when possible."""
        options = options if options is not None else {}
        descriptor = QueryDescriptor.historical(entity_id, start_date, end_date, metrics, options)
        cache_key = descriptor.cache_key()

        if self.use_cache():
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"[Analytics Client] Cache hit: {cache_key}")
                return cached

        logger.debug(
            f"[Analytics Client] Querying {entity_id} {start_date}..{end_date} metrics={metrics}"
        )
        answer = self.service.run_query(entity_id, start_date, end_date, metrics, options)

        if self.use_cache():
            self.cache.put(cache_key, answer, timedelta(minutes=self.cache_lifetime_in_minutes))

        return answer

    def query_realtime(
        self,
        entity_id: str,
        metrics: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> RawResponse:
        """Run a real-time query, served from the real-time cache when possible."""
        options = options if options is not None else {}
        descriptor = QueryDescriptor.realtime(entity_id, metrics, options)
        cache_key = descriptor.cache_key()

        if self.use_realtime_cache():
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"[Analytics Client] Realtime cache hit: {cache_key}")
                return cached

        logger.debug(f"[Analytics Client] Realtime query {entity_id} metrics={metrics}")
        answer = self.service.run_realtime_query(entity_id, metrics, options)

        if self.use_realtime_cache():
            expiry = datetime.now(timezone.utc) + timedelta(
                seconds=self.realtime_cache_lifetime_in_seconds
            )
            self.cache.put(cache_key, answer, expiry)

        return answer

    def resolve_entity_id(self, url: str) -> str:
        """Return the entity id registered for ``url``.

        Raises:
            EntityNotFoundError: ``url`` is not in the entity listing
        """
        entity_ids = self.get_all_entity_ids()
        if url in entity_ids:
            return entity_ids[url]
        raise EntityNotFoundError(url)

    def get_all_entity_ids(self) -> Dict[str, str]:
        """Return the url -> entity id map, listing it on first use only."""
        if self._entity_ids is not None:
            return self._entity_ids

        self._entity_ids = dict(self.service.list_entities())
        logger.info(f"[Analytics Client] Loaded {len(self._entity_ids)} entities")
        return self._entity_ids

    def use_cache(self) -> bool:
        return self.cache is not None and self.cache_lifetime_in_minutes > 0

    def use_realtime_cache(self) -> bool:
        return self.cache is not None and self.realtime_cache_lifetime_in_seconds > 0

    def set_cache_lifetime_in_minutes(self, minutes: int) -> "AnalyticsClient":
        self.cache_lifetime_in_minutes = minutes
        return self

    def set_realtime_cache_lifetime_in_seconds(self, seconds: int) -> "AnalyticsClient":
        self.realtime_cache_lifetime_in_seconds = seconds
        return self
