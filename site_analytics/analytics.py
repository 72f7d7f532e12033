"""Reporting facade.

Every report comes in two forms: ``get_x(number_of_days=365, ...)`` covering
the window ending today, and ``get_x_for_period(start_date, end_date, ...)``.
Reports return lists of small dicts; a period without data yields ``[]``.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import logging
import os

from .cache import Cache, get_cache
from .client import AnalyticsClient
from .config import Settings
from .errors import ConfigurationError
from .ga4 import GA4ReportingService
from .service import RawResponse

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]

KEYWORD_FILTERS = "ga:keyword!=(not set);ga:keyword!=(not provided)"


def _sum_sessions(rows: List[Dict[str, Any]]) -> Union[int, float]:
    total: Union[int, float] = 0
    for row in rows:
        value = row["sessions"]
        if isinstance(value, str):
            value = float(value) if "." in value else int(value)
        total += value
    return total


def parse_period(value: Any, group_by: str) -> date:
    """Parse a ``YYYYMMDD`` (date) or ``YYYYMM`` (yearMonth) cell."""
    if group_by == "yearMonth":
        return datetime.strptime(str(value), "%Y%m").date()
    return datetime.strptime(str(value), "%Y%m%d").date()


class Analytics:
    """Named analytics reports for a single tracked site."""

    def __init__(self, client: AnalyticsClient, entity_id: str = ""):
        self.client = client
        self.entity_id = entity_id

    def get_visitors_and_page_views(
        self, number_of_days: int = 365, group_by: str = "date"
    ) -> List[Dict[str, Any]]:
        """Get the amount of visitors and page views.

        Args:
            number_of_days: Size of the window ending today
            group_by: "date" or "yearMonth"
        """
        start_date, end_date = self.calculate_number_of_days(number_of_days)
        return self.get_visitors_and_page_views_for_period(start_date, end_date, group_by)

    def get_visitors_and_page_views_for_period(
        self, start_date: DateLike, end_date: DateLike, group_by: str = "date"
    ) -> List[Dict[str, Any]]:
        answer = self.perform_query(
            start_date,
            end_date,
            "ga:visits,ga:pageviews",
            {"dimensions": f"ga:{group_by}"},
        )

        if not answer.get("rows"):
            return []

        return [
            {
                "period": parse_period(row[0], group_by),
                "visitors": row[1],
                "pageViews": row[2],
            }
            for row in answer["rows"]
        ]

    def get_top_keywords(
        self, number_of_days: int = 365, max_results: int = 30
    ) -> List[Dict[str, Any]]:
        start_date, end_date = self.calculate_number_of_days(number_of_days)
        return self.get_top_keywords_for_period(start_date, end_date, max_results)

    def get_top_keywords_for_period(
        self, start_date: DateLike, end_date: DateLike, max_results: int = 30
    ) -> List[Dict[str, Any]]:
        answer = self.perform_query(
            start_date,
            end_date,
            "ga:sessions",
            {
                "dimensions": "ga:keyword",
                "sort": "-ga:sessions",
                "max-results": max_results,
                "filters": KEYWORD_FILTERS,
            },
        )

        if not answer.get("rows"):
            return []

        return [{"keyword": row[0], "sessions": row[1]} for row in answer["rows"]]

    def get_top_referrers(
        self, number_of_days: int = 365, max_results: int = 20
    ) -> List[Dict[str, Any]]:
        start_date, end_date = self.calculate_number_of_days(number_of_days)
        return self.get_top_referrers_for_period(start_date, end_date, max_results)

    def get_top_referrers_for_period(
        self, start_date: DateLike, end_date: DateLike, max_results: int = 20
    ) -> List[Dict[str, Any]]:
        answer = self.perform_query(
            start_date,
            end_date,
            "ga:pageviews",
            {
                "dimensions": "ga:fullReferrer",
                "sort": "-ga:pageviews",
                "max-results": max_results,
            },
        )

        if not answer.get("rows"):
            return []

        return [{"url": row[0], "pageViews": row[1]} for row in answer["rows"]]

    def get_top_browsers(
        self, number_of_days: int = 365, max_results: int = 6
    ) -> List[Dict[str, Any]]:
        start_date, end_date = self.calculate_number_of_days(number_of_days)
        return self.get_top_browsers_for_period(start_date, end_date, max_results)

    def get_top_browsers_for_period(
        self, start_date: DateLike, end_date: DateLike, max_results: int = 6
    ) -> List[Dict[str, Any]]:
        """Get the top browsers for the given period.

        Returns the first ``max_results - 1`` browsers. When more than
        ``max_results`` browsers were reported, an extra ``"other"`` entry
        carries the summed sessions of every remaining browser. Below 1 the
        cut counts from the end, so ``max_results=0`` keeps all but the last
        browser and buckets that one as ``"other"``.
        """
        answer = self.perform_query(
            start_date,
            end_date,
            "ga:sessions",
            {
                "dimensions": "ga:browser",
                "sort": "-ga:sessions",
            },
        )

        if not answer.get("rows"):
            return []

        browsers = [{"browser": row[0], "sessions": row[1]} for row in answer["rows"]]
        keep = max_results - 1
        top = browsers[:keep]

        if len(browsers) > max_results:
            top.append({"browser": "other", "sessions": _sum_sessions(browsers[keep:])})

        return top

    def get_most_visited_pages(
        self, number_of_days: int = 365, max_results: int = 20
    ) -> List[Dict[str, Any]]:
        start_date, end_date = self.calculate_number_of_days(number_of_days)
        return self.get_most_visited_pages_for_period(start_date, end_date, max_results)

    def get_most_visited_pages_for_period(
        self, start_date: DateLike, end_date: DateLike, max_results: int = 20
    ) -> List[Dict[str, Any]]:
        answer = self.perform_query(
            start_date,
            end_date,
            "ga:pageviews",
            {
                "dimensions": "ga:pagePath",
                "sort": "-ga:pageviews",
                "max-results": max_results,
            },
        )

        if not answer.get("rows"):
            return []

        return [{"url": row[0], "pageViews": row[1]} for row in answer["rows"]]

    def get_active_users(self, options: Optional[Mapping[str, Any]] = None) -> int:
        """Get the number of users active on the site right now.

        ``options`` are passed through to the real-time query; the metric is
        the last cell of the first row.
        """
        answer = self.perform_realtime_query("rt:activeUsers", options or {})

        if not answer.get("rows"):
            return 0

        return int(answer["rows"][0][-1])

    def get_entity_id_by_url(self, url: str) -> str:
        return self.client.resolve_entity_id(url)

    def perform_query(
        self,
        start_date: DateLike,
        end_date: DateLike,
        metrics: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> RawResponse:
        return self.client.query(
            self.entity_id,
            start_date.strftime("%Y-%m-%d"),
            end_date.strftime("%Y-%m-%d"),
            metrics,
            options if options is not None else {},
        )

    def perform_realtime_query(
        self, metrics: str, options: Optional[Mapping[str, Any]] = None
    ) -> RawResponse:
        return self.client.query_realtime(
            self.entity_id, metrics, options if options is not None else {}
        )

    def is_enabled(self) -> bool:
        """Return True if this facade is configured with an entity id."""
        return self.entity_id != ""

    @staticmethod
    def calculate_number_of_days(number_of_days: int) -> Tuple[date, date]:
        end_date = date.today()
        start_date = end_date - timedelta(days=number_of_days)
        return start_date, end_date

    @classmethod
    def create(
        cls,
        entity_id: str,
        credentials_path: Optional[str],
        cache: Optional[Cache] = None,
        cache_lifetime_in_minutes: int = 0,
        realtime_cache_lifetime_in_seconds: int = 0,
    ) -> "Analytics":
        """Build a GA4-backed facade from a service account key file.

        Raises:
            ConfigurationError: the key file cannot be found
        """
        if not credentials_path or not os.path.exists(credentials_path):
            raise ConfigurationError(
                f"Can't find the service account key file in: {credentials_path}"
            )

        service = GA4ReportingService.from_service_account_file(credentials_path)
        client = (
            AnalyticsClient(service, cache)
            .set_cache_lifetime_in_minutes(cache_lifetime_in_minutes)
            .set_realtime_cache_lifetime_in_seconds(realtime_cache_lifetime_in_seconds)
        )
        logger.info(f"Analytics created for entity {entity_id!r}")
        return cls(client, entity_id)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Analytics":
        cache = get_cache(settings.cache_backend, redis_url=settings.redis_url)
        return cls.create(
            settings.entity_id,
            settings.credentials_path,
            cache=cache,
            cache_lifetime_in_minutes=settings.cache_lifetime_in_minutes,
            realtime_cache_lifetime_in_seconds=settings.realtime_cache_lifetime_in_seconds,
        )
