"""Translation of canonical query options into GA4 Data API types.

Canonical queries use Universal Analytics conventions: ``ga:``/``rt:``
prefixed field names, comma separated ``dimensions`` and ``sort`` (``-``
prefix for descending), ``max-results`` and a ``filters`` expression where
``;`` is AND, ``,`` is OR and a backslash escapes either.
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from google.analytics.data_v1beta.types import (
    Filter,
    FilterExpression,
    FilterExpressionList,
    NumericValue,
    OrderBy,
)

from ..errors import QueryTranslationError

# Legacy names without a same-named GA4 field
FIELD_NAMES = {
    "visits": "sessions",
    "pageviews": "screenPageViews",
    "keyword": "sessionManualTerm",
    "fullReferrer": "pageReferrer",
    "users": "totalUsers",
    "medium": "sessionMedium",
    "source": "sessionSource",
    "campaign": "sessionCampaignName",
}

# GA4 realtime schema; the realtime API rejects any other field
# https://developers.google.com/analytics/devguides/reporting/data/v1/realtime-api-schema
REALTIME_VALID_DIMENSIONS = frozenset([
    "appVersion", "audienceId", "audienceName", "audienceResourceName",
    "city", "cityId", "country", "countryId", "deviceCategory",
    "eventName", "minutesAgo", "platform", "streamId", "streamName",
    "unifiedScreenName",
])
REALTIME_VALID_METRICS = frozenset([
    "activeUsers", "eventCount", "keyEvents", "screenPageViews",
])

SUPPORTED_OPTIONS = frozenset(["dimensions", "sort", "max-results", "filters"])

DEFAULT_LIMIT = 10000

_CONDITION = re.compile(r"^(?P<field>[A-Za-z][\w:]*?)(?P<op>==|!=|=@|!@|=~|!~|>=|<=|>|<)(?P<value>.*)$", re.S)

_STRING_OPS = {
    "==": (Filter.StringFilter.MatchType.EXACT, False),
    "!=": (Filter.StringFilter.MatchType.EXACT, True),
    "=@": (Filter.StringFilter.MatchType.CONTAINS, False),
    "!@": (Filter.StringFilter.MatchType.CONTAINS, True),
    "=~": (Filter.StringFilter.MatchType.PARTIAL_REGEXP, False),
    "!~": (Filter.StringFilter.MatchType.PARTIAL_REGEXP, True),
}

_NUMERIC_OPS = {
    "==": (Filter.NumericFilter.Operation.EQUAL, False),
    "!=": (Filter.NumericFilter.Operation.EQUAL, True),
    ">": (Filter.NumericFilter.Operation.GREATER_THAN, False),
    ">=": (Filter.NumericFilter.Operation.GREATER_THAN_OR_EQUAL, False),
    "<": (Filter.NumericFilter.Operation.LESS_THAN, False),
    "<=": (Filter.NumericFilter.Operation.LESS_THAN_OR_EQUAL, False),
}


def field_name(name: str) -> str:
    """Map a canonical field name to its GA4 API name."""
    name = name.strip()
    for prefix in ("ga:", "rt:"):
        if name.startswith(prefix):
            name = name[len(prefix):]
            break
    return FIELD_NAMES.get(name, name)


def field_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [field_name(part) for part in str(value).split(",") if part.strip()]


def _split_escaped(value: str, sep: str) -> List[str]:
    parts = re.split(r"(?<!\\)" + re.escape(sep), value)
    return [p for p in parts if p != ""]


def _unescape(value: str) -> str:
    return value.replace("\\,", ",").replace("\\;", ";").replace("\\\\", "\\")


def _parse_condition(text: str) -> Tuple[str, str, str]:
    match = _CONDITION.match(text)
    if not match:
        raise QueryTranslationError(f"Invalid filter condition: {text!r}")
    return field_name(match.group("field")), match.group("op"), _unescape(match.group("value"))


def _numeric_value(raw: str) -> NumericValue:
    try:
        if re.fullmatch(r"-?\d+", raw.strip()):
            return NumericValue(int64_value=int(raw))
        return NumericValue(double_value=float(raw))
    except ValueError:
        raise QueryTranslationError(f"Metric filter value must be numeric: {raw!r}")


def _condition_expression(field: str, op: str, value: str, is_metric: bool) -> FilterExpression:
    if is_metric:
        if op not in _NUMERIC_OPS:
            raise QueryTranslationError(f"Operator {op!r} is not valid for metric {field!r}")
        operation, negate = _NUMERIC_OPS[op]
        expr = FilterExpression(
            filter=Filter(
                field_name=field,
                numeric_filter=Filter.NumericFilter(operation=operation, value=_numeric_value(value)),
            )
        )
    else:
        if op not in _STRING_OPS:
            raise QueryTranslationError(f"Operator {op!r} is not valid for dimension {field!r}")
        match_type, negate = _STRING_OPS[op]
        expr = FilterExpression(
            filter=Filter(
                field_name=field,
                string_filter=Filter.StringFilter(value=value, match_type=match_type),
            )
        )

    if negate:
        return FilterExpression(not_expression=expr)
    return expr


def _combine(expressions: List[FilterExpression], group: str) -> Optional[FilterExpression]:
    if not expressions:
        return None
    if len(expressions) == 1:
        return expressions[0]
    return FilterExpression(**{group: FilterExpressionList(expressions=expressions)})


def build_filters(
    filters: Optional[str], metrics: List[str]
) -> Tuple[Optional[FilterExpression], Optional[FilterExpression]]:
    """Split a canonical filter expression into GA4 dimension and metric filters.

    Args:
        filters: Expression such as ``ga:keyword!=(not set);ga:keyword!=(not provided)``
        metrics: GA4 metric names of the query; conditions on these become metric filters

    Returns:
        (dimension_filter, metric_filter), either may be None
    """
    if not filters:
        return None, None

    dimension_terms: List[FilterExpression] = []
    metric_terms: List[FilterExpression] = []

    for and_term in _split_escaped(str(filters), ";"):
        conditions = [_parse_condition(c) for c in _split_escaped(and_term, ",")]
        kinds = {field in metrics for field, _, _ in conditions}
        if len(kinds) > 1:
            raise QueryTranslationError(
                f"OR group cannot mix dimension and metric conditions: {and_term!r}"
            )
        is_metric = kinds.pop()
        expressions = [_condition_expression(f, op, v, is_metric) for f, op, v in conditions]
        combined = _combine(expressions, "or_group")
        (metric_terms if is_metric else dimension_terms).append(combined)

    return _combine(dimension_terms, "and_group"), _combine(metric_terms, "and_group")


def build_order_bys(sort: Optional[str], metrics: List[str]) -> List[OrderBy]:
    """Build OrderBy objects from ``-ga:sessions,ga:date`` style sort strings."""
    order_bys = []
    for part in (sort or "").split(","):
        part = part.strip()
        if not part:
            continue
        desc = part.startswith("-")
        name = field_name(part.lstrip("-"))
        if name in metrics:
            order_bys.append(OrderBy(metric=OrderBy.MetricOrderBy(metric_name=name), desc=desc))
        else:
            order_bys.append(
                OrderBy(dimension=OrderBy.DimensionOrderBy(dimension_name=name), desc=desc)
            )
    return order_bys


def default_order_bys(dimensions: List[str]) -> List[OrderBy]:
    """Ascending order on every dimension, the ordering of an unsorted UA report."""
    return [
        OrderBy(dimension=OrderBy.DimensionOrderBy(dimension_name=d), desc=False)
        for d in dimensions
    ]


def _check_realtime_fields(metrics: List[str], dimensions: List[str]) -> None:
    invalid_metrics = [m for m in metrics if m not in REALTIME_VALID_METRICS]
    if invalid_metrics:
        raise QueryTranslationError(
            f"Invalid realtime metrics: {', '.join(invalid_metrics)}. "
            f"Valid: {', '.join(sorted(REALTIME_VALID_METRICS))}"
        )
    invalid_dims = [
        d for d in dimensions if d not in REALTIME_VALID_DIMENSIONS and not d.startswith("customUser:")
    ]
    if invalid_dims:
        raise QueryTranslationError(
            f"Invalid realtime dimensions: {', '.join(invalid_dims)}. "
            f"Valid: {', '.join(sorted(REALTIME_VALID_DIMENSIONS))}"
        )


def translate(
    metrics: str, options: Optional[Mapping[str, Any]], realtime: bool = False
) -> Dict[str, Any]:
    """Translate canonical metrics/options into GA4 request keyword arguments.

    Without a ``sort`` option rows are ordered ascending by each dimension.
    Real-time queries only accept fields of the GA4 realtime schema.
    """
    options = dict(options or {})
    unknown = [k for k in options if k not in SUPPORTED_OPTIONS]
    if unknown:
        raise QueryTranslationError(f"Unsupported query options: {', '.join(unknown)}")

    metric_names = field_list(metrics)
    if not metric_names:
        raise QueryTranslationError("At least one metric is required")

    dimension_names = field_list(options.get("dimensions"))
    if realtime:
        _check_realtime_fields(metric_names, dimension_names)

    dimension_filter, metric_filter = build_filters(options.get("filters"), metric_names)

    try:
        limit = int(options.get("max-results") or DEFAULT_LIMIT)
    except (TypeError, ValueError):
        raise QueryTranslationError(f"max-results must be an integer: {options['max-results']!r}")

    if options.get("sort"):
        order_bys = build_order_bys(options["sort"], metric_names)
    else:
        order_bys = default_order_bys(dimension_names)

    return {
        "metrics": metric_names,
        "dimensions": dimension_names,
        "dimension_filter": dimension_filter,
        "metric_filter": metric_filter,
        "order_bys": order_bys,
        "limit": limit,
    }
