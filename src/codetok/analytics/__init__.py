"""Analytics module for aggregating and rendering token usage."""

from codetok.analytics.aggregator import (
    AggregateDimension,
    aggregate_by_date,
    filter_by_date_range,
    group_name_for_dimension,
    model_group_name,
)
from codetok.analytics.dashboard import (
    TokenUnit,
    format_token_by_unit,
    render_daily_dashboard,
    render_sessions_table,
    resolve_token_unit,
    trend_bar,
)

__all__ = [
    # Aggregation
    "AggregateDimension",
    "aggregate_by_date",
    "filter_by_date_range",
    "group_name_for_dimension",
    "model_group_name",
    # Dashboard
    "TokenUnit",
    "format_token_by_unit",
    "render_daily_dashboard",
    "render_sessions_table",
    "resolve_token_unit",
    "trend_bar",
]
