"""Query descriptors and cache-key derivation.

The key is a sha256 digest of an explicit JSON serialization of the
arguments exactly as passed: options keep the caller's order and default
values are part of the digest. Two calls only share a cache entry when
they pass the same values in the same order.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

CACHE_NAMESPACE = "site-analytics"
REALTIME_CACHE_NAMESPACE = "site-analytics.realtime"

OptionValue = Union[str, int]


@dataclass(frozen=True)
class QueryDescriptor:
    """A fully specified remote query.

    ``start_date``/``end_date`` are ``YYYY-MM-DD`` strings; both are None
    for real-time queries.
    """

    entity_id: str
    metrics: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    options: Tuple[Tuple[str, OptionValue], ...] = field(default_factory=tuple)

    @classmethod
    def historical(
        cls,
        entity_id: str,
        start_date: str,
        end_date: str,
        metrics: str,
        options: Optional[Mapping[str, OptionValue]] = None,
    ) -> "QueryDescriptor":
        return cls(
            entity_id=entity_id,
            metrics=metrics,
            start_date=start_date,
            end_date=end_date,
            options=tuple((options or {}).items()),
        )

    @classmethod
    def realtime(
        cls,
        entity_id: str,
        metrics: str,
        options: Optional[Mapping[str, OptionValue]] = None,
    ) -> "QueryDescriptor":
        return cls(entity_id=entity_id, metrics=metrics, options=tuple((options or {}).items()))

    @property
    def is_realtime(self) -> bool:
        return self.start_date is None

    def options_dict(self) -> Dict[str, OptionValue]:
        return dict(self.options)

    def serialize(self) -> str:
        """Stable serialization used for the cache key.

        Historical: ``[entity_id, start_date, end_date, metrics, options]``
        Real-time:  ``[entity_id, metrics, options]``
        where ``options`` is a list of ``[key, value]`` pairs in caller order.
        """
        pairs: List[List[Any]] = [[k, v] for k, v in self.options]
        if self.is_realtime:
            payload: List[Any] = [self.entity_id, self.metrics, pairs]
        else:
            payload = [self.entity_id, self.start_date, self.end_date, self.metrics, pairs]
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)

    def cache_key(self) -> str:
        namespace = REALTIME_CACHE_NAMESPACE if self.is_realtime else CACHE_NAMESPACE
        digest = hashlib.sha256(self.serialize().encode("utf-8")).hexdigest()
        return f"{namespace}.{digest}"
