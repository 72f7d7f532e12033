"""Tests for the caching analytics client."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from site_analytics.cache import InMemoryCache
from site_analytics.client import AnalyticsClient
from site_analytics.errors import EntityNotFoundError
from site_analytics.query import QueryDescriptor
from site_analytics.service import ReportingService

ANSWER = {"rows": [["Chrome", "12"]], "row_count": 1, "metadata": {}}


@pytest.fixture
def service():
    svc = Mock(spec=ReportingService)
    svc.run_query.return_value = ANSWER
    svc.run_realtime_query.return_value = {"rows": [["5"]], "row_count": 1, "metadata": {}}
    svc.list_entities.return_value = {"https://example.com": "123"}
    return svc


def _query(client):
    return client.query("123", "2024-01-01", "2024-01-31", "ga:sessions", {"dimensions": "ga:browser"})


class TestHistoricalCaching:
    """Historical queries are cached only with a cache and a positive lifetime."""

    def test_second_identical_query_hits_cache(self, service):
        client = AnalyticsClient(service, InMemoryCache(), cache_lifetime_in_minutes=10)

        first = _query(client)
        second = _query(client)

        service.run_query.assert_called_once_with(
            "123", "2024-01-01", "2024-01-31", "ga:sessions", {"dimensions": "ga:browser"}
        )
        assert first == second == ANSWER

    def test_zero_lifetime_disables_cache(self, service):
        cache = Mock()
        client = AnalyticsClient(service, cache, cache_lifetime_in_minutes=0)

        _query(client)
        _query(client)

        assert service.run_query.call_count == 2
        cache.get.assert_not_called()
        cache.put.assert_not_called()

    def test_missing_cache_disables_caching(self, service):
        client = AnalyticsClient(service, None, cache_lifetime_in_minutes=10)

        _query(client)
        _query(client)

        assert service.run_query.call_count == 2
        assert client.use_cache() is False

    def test_put_uses_minute_duration(self, service):
        cache = Mock()
        cache.get.return_value = None
        client = AnalyticsClient(service, cache, cache_lifetime_in_minutes=15)

        _query(client)

        key = QueryDescriptor.historical(
            "123", "2024-01-01", "2024-01-31", "ga:sessions", {"dimensions": "ga:browser"}
        ).cache_key()
        cache.put.assert_called_once_with(key, ANSWER, timedelta(minutes=15))

    def test_cached_value_returned_without_remote_call(self, service):
        cache = Mock()
        cache.get.return_value = {"rows": None}
        client = AnalyticsClient(service, cache, cache_lifetime_in_minutes=15)

        assert _query(client) == {"rows": None}
        service.run_query.assert_not_called()

    def test_entry_expiring_between_has_and_get_falls_through(self, service):
        cache = Mock()
        cache.has.return_value = True
        cache.get.return_value = None
        client = AnalyticsClient(service, cache, cache_lifetime_in_minutes=15)

        assert _query(client) == ANSWER
        service.run_query.assert_called_once()
        cache.get.assert_called_once()
        cache.put.assert_called_once()

    def test_remote_errors_propagate(self, service):
        cache = Mock()
        cache.get.return_value = None
        service.run_query.side_effect = PermissionError("denied")
        client = AnalyticsClient(service, cache, cache_lifetime_in_minutes=15)

        with pytest.raises(PermissionError):
            _query(client)
        cache.put.assert_not_called()
        assert service.run_query.call_count == 1

    def test_setters_are_chainable(self, service):
        client = AnalyticsClient(service)
        assert client.set_cache_lifetime_in_minutes(5) is client
        assert client.set_realtime_cache_lifetime_in_seconds(30) is client
        assert client.cache_lifetime_in_minutes == 5
        assert client.realtime_cache_lifetime_in_seconds == 30


class TestRealtimeCaching:
    """Real-time queries use their own lifetime and namespace."""

    def test_realtime_cache_independent_of_historical(self, service):
        cache = InMemoryCache()
        client = AnalyticsClient(
            service, cache, cache_lifetime_in_minutes=0, realtime_cache_lifetime_in_seconds=30
        )

        client.query_realtime("123", "rt:activeUsers", {})
        client.query_realtime("123", "rt:activeUsers", {})
        _query(client)
        _query(client)

        service.run_realtime_query.assert_called_once_with("123", "rt:activeUsers", {})
        assert service.run_query.call_count == 2

    def test_realtime_disabled_when_lifetime_zero(self, service):
        client = AnalyticsClient(
            service, InMemoryCache(), cache_lifetime_in_minutes=10, realtime_cache_lifetime_in_seconds=0
        )

        client.query_realtime("123", "rt:activeUsers")
        client.query_realtime("123", "rt:activeUsers")

        assert service.run_realtime_query.call_count == 2

    def test_put_uses_absolute_expiry(self, service):
        cache = Mock()
        cache.get.return_value = None
        client = AnalyticsClient(service, cache, realtime_cache_lifetime_in_seconds=30)

        before = datetime.now(timezone.utc)
        client.query_realtime("123", "rt:activeUsers", {})
        after = datetime.now(timezone.utc)

        key, value, lifetime = cache.put.call_args[0]
        assert key.startswith("site-analytics.realtime.")
        assert isinstance(lifetime, datetime)
        assert before + timedelta(seconds=30) <= lifetime <= after + timedelta(seconds=30)

    def test_missing_realtime_entry_falls_through(self, service):
        cache = Mock()
        cache.has.return_value = True
        cache.get.return_value = None
        client = AnalyticsClient(service, cache, realtime_cache_lifetime_in_seconds=30)

        assert client.query_realtime("123", "rt:activeUsers", {}) == {
            "rows": [["5"]],
            "row_count": 1,
            "metadata": {},
        }
        service.run_realtime_query.assert_called_once()

    def test_realtime_and_historical_entries_do_not_collide(self, service):
        cache = InMemoryCache()
        client = AnalyticsClient(
            service, cache, cache_lifetime_in_minutes=10, realtime_cache_lifetime_in_seconds=30
        )

        _query(client)
        client.query_realtime("123", "ga:sessions", {"dimensions": "ga:browser"})

        assert len(cache) == 2


class TestEntityResolution:
    """Entity ids are listed once per client instance."""

    def test_resolves_known_url(self, service):
        client = AnalyticsClient(service)
        assert client.resolve_entity_id("https://example.com") == "123"

    def test_listing_is_memoized(self, service):
        client = AnalyticsClient(service)
        client.resolve_entity_id("https://example.com")
        client.resolve_entity_id("https://example.com")
        assert client.get_all_entity_ids() == {"https://example.com": "123"}
        service.list_entities.assert_called_once()

    def test_unknown_url_raises_with_url(self, service):
        client = AnalyticsClient(service)
        with pytest.raises(EntityNotFoundError) as exc:
            client.resolve_entity_id("https://unknown.example")
        assert exc.value.url == "https://unknown.example"
        assert "https://unknown.example" in str(exc.value)

    def test_miss_does_not_refetch_listing(self, service):
        client = AnalyticsClient(service)
        for _ in range(2):
            with pytest.raises(EntityNotFoundError):
                client.resolve_entity_id("https://unknown.example")
        service.list_entities.assert_called_once()

    def test_listing_never_uses_cache(self, service):
        cache = Mock()
        client = AnalyticsClient(service, cache, cache_lifetime_in_minutes=10)
        client.resolve_entity_id("https://example.com")
        cache.get.assert_not_called()
        cache.put.assert_not_called()
