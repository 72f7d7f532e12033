"""Reporting service port.

A reporting service answers canonical queries (``ga:``/``rt:`` field names,
option keys ``dimensions``, ``sort``, ``max-results``, ``filters``) with a raw
response dict::

    {"rows": [[cell, ...], ...] or None, "row_count": int, "metadata": {...}}

Each row holds the dimension values followed by the metric values. ``rows``
is None when the remote side has no data for the query.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

RawResponse = Dict[str, Any]


class ReportingService(ABC):
    """Abstract remote analytics reporting capability."""

    @abstractmethod
    def run_query(
        self,
        entity_id: str,
        start_date: str,
        end_date: str,
        metrics: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> RawResponse:  # pragma: no cover
        """Run a historical query for ``YYYY-MM-DD`` dates (inclusive)."""
        raise NotImplementedError

    @abstractmethod
    def run_realtime_query(
        self,
        entity_id: str,
        metrics: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> RawResponse:  # pragma: no cover
        """Run a real-time query."""
        raise NotImplementedError

    @abstractmethod
    def list_entities(self) -> Dict[str, str]:  # pragma: no cover
        """Return every (url -> entity id) pair visible to the credentials."""
        raise NotImplementedError
