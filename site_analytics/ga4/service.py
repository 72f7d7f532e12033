"""GA4 implementation of the reporting service port.

Historical and real-time reports go through the Google Analytics Data API;
the entity listing comes from the Analytics Admin API (web data streams of
every property visible to the credentials).
"""

from typing import Any, Dict, Mapping, Optional
import logging

from google.analytics.admin_v1beta import AnalyticsAdminServiceClient
from google.analytics.data_v1beta import BetaAnalyticsDataClient
from google.analytics.data_v1beta.types import (
    DateRange,
    Dimension,
    Metric,
    RunRealtimeReportRequest,
    RunReportRequest,
)
from google.oauth2 import service_account

from ..service import RawResponse, ReportingService
from .translate import translate

READONLY_SCOPE = "https://www.googleapis.com/auth/analytics.readonly"

# Warn once daily token usage reaches this share of the quota
QUOTA_WARNING_PCT = 80.0


class GA4ReportingService(ReportingService):
    """Reporting service backed by the GA4 Data and Admin APIs."""

    def __init__(
        self,
        data_client: BetaAnalyticsDataClient,
        admin_client: Optional[AnalyticsAdminServiceClient] = None,
    ):
        """Initialize the service.

        Args:
            data_client: GA4 Data API client
            admin_client: GA4 Admin API client, required for ``list_entities``
        """
        self.client = data_client
        self.admin_client = admin_client
        self._logger = logging.getLogger(__name__)

    @classmethod
    def from_service_account_file(cls, credentials_path: str) -> "GA4ReportingService":
        """Build both API clients from a service account JSON key file."""
        credentials = service_account.Credentials.from_service_account_file(
            credentials_path,
            scopes=[READONLY_SCOPE],
        )
        return cls(
            BetaAnalyticsDataClient(credentials=credentials),
            AnalyticsAdminServiceClient(credentials=credentials),
        )

    @staticmethod
    def _property(entity_id: str) -> str:
        entity_id = str(entity_id)
        if entity_id.startswith("properties/"):
            return entity_id
        if entity_id.startswith("ga:"):
            entity_id = entity_id[3:]
        return f"properties/{entity_id}"

    def run_query(
        self,
        entity_id: str,
        start_date: str,
        end_date: str,
        metrics: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> RawResponse:
        params = translate(metrics, options)

        request = RunReportRequest(
            property=self._property(entity_id),
            date_ranges=[DateRange(start_date=start_date, end_date=end_date)],
            metrics=[Metric(name=m) for m in params["metrics"]],
            dimensions=[Dimension(name=d) for d in params["dimensions"]],
            limit=params["limit"],
            return_property_quota=True,
        )
        if params["dimension_filter"] is not None:
            request.dimension_filter = params["dimension_filter"]
        if params["metric_filter"] is not None:
            request.metric_filter = params["metric_filter"]
        if params["order_bys"]:
            request.order_bys = params["order_bys"]

        self._logger.debug(f"[GA4 Service] run_report {request.property} {start_date}..{end_date}")
        response = self.client.run_report(request)
        self._check_quota(response)
        return self._format_response(response)

    def run_realtime_query(
        self,
        entity_id: str,
        metrics: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> RawResponse:
        params = translate(metrics, options, realtime=True)

        request = RunRealtimeReportRequest(
            property=self._property(entity_id),
            metrics=[Metric(name=m) for m in params["metrics"]],
            dimensions=[Dimension(name=d) for d in params["dimensions"]],
            limit=params["limit"],
            return_property_quota=True,
        )
        if params["dimension_filter"] is not None:
            request.dimension_filter = params["dimension_filter"]
        if params["metric_filter"] is not None:
            request.metric_filter = params["metric_filter"]
        if params["order_bys"]:
            request.order_bys = params["order_bys"]

        self._logger.debug(f"[GA4 Service] run_realtime_report {request.property}")
        response = self.client.run_realtime_report(request)
        self._check_quota(response)
        return self._format_response(response)

    def list_entities(self) -> Dict[str, str]:
        """Map each web stream's default URI to its bare property id."""
        if self.admin_client is None:
            raise RuntimeError("An Admin API client is required to list entities")

        entities: Dict[str, str] = {}
        for account in self.admin_client.list_account_summaries():
            for prop in account.property_summaries:
                property_id = prop.property.split("/")[-1]
                for stream in self.admin_client.list_data_streams(parent=prop.property):
                    uri = stream.web_stream_data.default_uri
                    if uri:
                        entities[uri] = property_id
        self._logger.info(f"[GA4 Service] Listed {len(entities)} web streams")
        return entities

    def _check_quota(self, response: Any) -> None:
        quota = response.property_quota
        if not quota or not quota.tokens_per_day:
            return
        consumed = quota.tokens_per_day.consumed
        remaining = quota.tokens_per_day.remaining
        total = consumed + remaining
        if total > 0:
            usage_pct = (consumed / total) * 100.0
            if usage_pct >= QUOTA_WARNING_PCT:
                self._logger.warning(
                    f"GA4 quota usage high: {usage_pct:.1f}% ({consumed}/{total} tokens/day)"
                )

    def _format_response(self, response: Any) -> RawResponse:
        """Flatten a GA4 report into dimension values followed by metric values per row."""
        rows = [
            [v.value for v in row.dimension_values] + [v.value for v in row.metric_values]
            for row in response.rows
        ]

        return {
            "rows": rows or None,
            "row_count": response.row_count,
            "metadata": {
                "dimension_headers": [h.name for h in response.dimension_headers],
                "metric_headers": [h.name for h in response.metric_headers],
            },
        }
