"""Cache port and the bundled backends.

Any object implementing ``has``/``get``/``put`` can back the client; the
backends here cover the in-process and Redis cases.
"""

import json
import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple, Union

import redis

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# A relative duration, or an absolute expiry instant.
Lifetime = Union[timedelta, datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def expires_at(lifetime: Lifetime, now: Optional[datetime] = None) -> datetime:
    """Resolve a lifetime to an absolute UTC instant."""
    now = now or _utcnow()
    if isinstance(lifetime, timedelta):
        return now + lifetime
    if lifetime.tzinfo is None:
        return lifetime.replace(tzinfo=timezone.utc)
    return lifetime


def lifetime_seconds(lifetime: Lifetime, now: Optional[datetime] = None) -> int:
    """Remaining lifetime in whole seconds, never below 1."""
    now = now or _utcnow()
    remaining = (expires_at(lifetime, now) - now).total_seconds()
    return max(1, math.ceil(remaining))


class Cache(ABC):
    """Key-value store with expiry supplied by the embedding application."""

    @abstractmethod
    def has(self, key: str) -> bool:  # pragma: no cover
        """Return True if an unexpired item is stored under ``key``."""
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> Any:  # pragma: no cover
        """Return the item stored under ``key``, or None when there is none."""
        raise NotImplementedError

    @abstractmethod
    def put(self, key: str, value: Any, lifetime: Lifetime) -> None:  # pragma: no cover
        """Store ``value`` under ``key``.

        Args:
            key: Cache key
            value: Item to store
            lifetime: ``timedelta`` relative to now, or an absolute ``datetime``
        """
        raise NotImplementedError


class InMemoryCache(Cache):
    """Process-local cache; expired entries read as absent."""

    def __init__(self):
        self._items: Dict[str, Tuple[Any, datetime]] = {}

    def has(self, key: str) -> bool:
        item = self._items.get(key)
        if item is None:
            return False
        if item[1] <= _utcnow():
            del self._items[key]
            return False
        return True

    def get(self, key: str) -> Any:
        if not self.has(key):
            return None
        return self._items[key][0]

    def put(self, key: str, value: Any, lifetime: Lifetime) -> None:
        self._items[key] = (value, expires_at(lifetime))

    def __len__(self) -> int:
        return len(self._items)


class RedisCache(Cache):
    """Redis-backed cache storing JSON-encoded values with SETEX."""

    def __init__(self, client: "redis.Redis"):
        self.redis_client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        return cls(redis.from_url(url, encoding="utf-8", decode_responses=True))

    def has(self, key: str) -> bool:
        return bool(self.redis_client.exists(key))

    def get(self, key: str) -> Any:
        cached = self.redis_client.get(key)
        if cached is None:
            return None
        return json.loads(cached)

    def put(self, key: str, value: Any, lifetime: Lifetime) -> None:
        ttl = lifetime_seconds(lifetime)
        self.redis_client.setex(key, ttl, json.dumps(value))
        logger.debug(f"Cached response for key: {key} (ttl={ttl}s)")


def get_cache(backend: Optional[str] = None, **kwargs) -> Optional[Cache]:
    """Return a cache backend by name.

    Args:
        backend: "none" (default), "memory" or "redis"
        kwargs: ``redis_url`` for the redis backend

    Returns:
        Cache instance, or None when caching is switched off
    """
    be = (backend or "none").strip().lower()

    if be == "none":
        return None
    if be == "memory":
        return InMemoryCache()
    if be == "redis":
        url = kwargs.get("redis_url")
        if not url:
            raise ConfigurationError("redis_url is required for the redis cache backend")
        logger.info("Using Redis cache backend")
        return RedisCache.from_url(url)

    raise ConfigurationError(f"Unknown cache backend: {be!r}")
