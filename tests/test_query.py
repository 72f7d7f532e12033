"""Tests for query descriptors and cache-key derivation."""

import json

import pytest

from site_analytics.query import (
    CACHE_NAMESPACE,
    REALTIME_CACHE_NAMESPACE,
    QueryDescriptor,
)


class TestCacheKey:
    """Cache keys must be stable and namespaced per call class."""

    def test_identical_arguments_share_key(self):
        a = QueryDescriptor.historical(
            "123", "2024-01-01", "2024-01-31", "ga:sessions", {"dimensions": "ga:browser"}
        )
        b = QueryDescriptor.historical(
            "123", "2024-01-01", "2024-01-31", "ga:sessions", {"dimensions": "ga:browser"}
        )
        assert a == b
        assert a.cache_key() == b.cache_key()

    def test_historical_key_uses_namespace(self):
        key = QueryDescriptor.historical("123", "2024-01-01", "2024-01-31", "ga:sessions").cache_key()
        prefix, digest = key.rsplit(".", 1)
        assert prefix == CACHE_NAMESPACE
        assert len(digest) == 64

    def test_realtime_and_historical_never_collide(self):
        realtime = QueryDescriptor.realtime("123", "rt:activeUsers", {"dimensions": "rt:deviceCategory"})
        historical = QueryDescriptor.historical(
            "123", "2024-01-01", "2024-01-31", "rt:activeUsers", {"dimensions": "rt:deviceCategory"}
        )
        assert realtime.cache_key().startswith(REALTIME_CACHE_NAMESPACE + ".")
        assert realtime.cache_key() != historical.cache_key()

    def test_option_order_is_not_normalized(self):
        a = QueryDescriptor.historical(
            "123", "2024-01-01", "2024-01-31", "ga:sessions",
            {"dimensions": "ga:browser", "sort": "-ga:sessions"},
        )
        b = QueryDescriptor.historical(
            "123", "2024-01-01", "2024-01-31", "ga:sessions",
            {"sort": "-ga:sessions", "dimensions": "ga:browser"},
        )
        assert a.cache_key() != b.cache_key()

    def test_option_value_types_are_part_of_key(self):
        a = QueryDescriptor.historical("123", "2024-01-01", "2024-01-31", "ga:sessions", {"max-results": 30})
        b = QueryDescriptor.historical("123", "2024-01-01", "2024-01-31", "ga:sessions", {"max-results": "30"})
        assert a.cache_key() != b.cache_key()

    @pytest.mark.parametrize(
        "changed",
        [
            {"entity_id": "456"},
            {"start_date": "2024-01-02"},
            {"end_date": "2024-02-01"},
            {"metrics": "ga:pageviews"},
        ],
    )
    def test_each_field_changes_key(self, changed):
        base = dict(entity_id="123", start_date="2024-01-01", end_date="2024-01-31", metrics="ga:sessions")
        other = {**base, **changed}
        assert (
            QueryDescriptor.historical(**base).cache_key()
            != QueryDescriptor.historical(**other).cache_key()
        )


class TestSerialization:
    """The serialization layout is fixed."""

    def test_historical_layout(self):
        d = QueryDescriptor.historical(
            "123", "2024-01-01", "2024-01-31", "ga:sessions",
            {"dimensions": "ga:browser", "max-results": 6},
        )
        assert json.loads(d.serialize()) == [
            "123", "2024-01-01", "2024-01-31", "ga:sessions",
            [["dimensions", "ga:browser"], ["max-results", 6]],
        ]

    def test_realtime_layout(self):
        d = QueryDescriptor.realtime("123", "rt:activeUsers")
        assert d.is_realtime
        assert json.loads(d.serialize()) == ["123", "rt:activeUsers", []]

    def test_options_dict_round_trip(self):
        opts = {"dimensions": "ga:date", "sort": "-ga:date"}
        d = QueryDescriptor.historical("123", "2024-01-01", "2024-01-31", "ga:visits", opts)
        assert d.options_dict() == opts
        assert list(d.options_dict()) == ["dimensions", "sort"]
