"""Google Analytics 4 backend for the reporting service port.

Example usage:
    from site_analytics.ga4 import GA4ReportingService

    service = GA4ReportingService.from_service_account_file("/path/to/key.json")
    result = service.run_query(
        "123456789", "2024-01-01", "2024-01-31", "ga:sessions",
        {"dimensions": "ga:browser", "sort": "-ga:sessions"},
    )
"""

from .service import GA4ReportingService
from .translate import field_name, translate

__all__ = ["GA4ReportingService", "field_name", "translate"]
