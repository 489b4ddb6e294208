"""Daily aggregation of normalized sessions.

Sessions are bucketed by start date and a grouping dimension (CLI/provider
or model). Output order is total and deterministic so identical input always
renders identically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable

from codetok.model_names import canonical_model_name
from codetok.models import DailyStats, SessionInfo, TokenUsage


class AggregateDimension(str, Enum):
    """Supported grouping dimensions."""

    CLI = "cli"
    MODEL = "model"


def normalize_dimension(dimension: AggregateDimension | str | None) -> AggregateDimension:
    """Resolve a dimension value, falling back to CLI for anything unknown."""
    if dimension == AggregateDimension.MODEL:
        return AggregateDimension.MODEL
    return AggregateDimension.CLI


def model_group_name(model_name: str, provider_name: str) -> str:
    """Group label for the model dimension.

    Sessions without a model are labelled per provider so unidentified
    sessions from different tools stay apart.

    Examples:
        >>> model_group_name("", "codex")
        'unknown (codex)'
        >>> model_group_name("k2.5", "kimi")
        'kimi-k2.5'
    """
    name = canonical_model_name(model_name)
    if name:
        return name
    provider_name = provider_name.strip() or "unknown"
    return f"unknown ({provider_name})"


def group_name_for_dimension(session: SessionInfo, dimension: AggregateDimension) -> str:
    """Return the group label of ``session`` under ``dimension``."""
    if dimension == AggregateDimension.MODEL:
        return model_group_name(session.model_name, session.provider_name)
    return session.provider_name


@dataclass
class _Bucket:
    date: str
    group: str
    sessions: int = 0
    usage: TokenUsage = field(default_factory=TokenUsage)
    providers: set[str] = field(default_factory=set)


def _sort_key(stats: DailyStats) -> tuple[str, str, str, str, int, str]:
    return (
        stats.date,
        stats.group,
        stats.provider_name,
        stats.group_by,
        len(stats.providers),
        ",".join(stats.providers),
    )


def aggregate_by_date(
    sessions: Iterable[SessionInfo],
    dimension: AggregateDimension | str = AggregateDimension.CLI,
) -> list[DailyStats]:
    """Group sessions by date and dimension.

    Args:
        sessions: Normalized sessions, in any order.
        dimension: "cli" or "model"; unknown values group by CLI.

    Returns:
        One DailyStats per distinct (date, group), sorted by date, group,
        provider name, dimension, provider count and joined provider list.
    """
    dim = normalize_dimension(dimension)
    buckets: dict[tuple[str, str], _Bucket] = {}

    for session in sessions:
        date = session.date
        group = group_name_for_dimension(session, dim)
        bucket = buckets.get((date, group))
        if bucket is None:
            bucket = _Bucket(date=date, group=group)
            buckets[(date, group)] = bucket

        provider_name = session.provider_name.strip()
        if provider_name:
            bucket.providers.add(provider_name)
        bucket.sessions += 1
        bucket.usage = bucket.usage + session.token_usage

    result: list[DailyStats] = []
    for bucket in buckets.values():
        providers = sorted(bucket.providers)
        result.append(
            DailyStats(
                date=bucket.date,
                provider_name=providers[0] if len(providers) == 1 else "",
                group_by=dim.value,
                group=bucket.group,
                providers=providers if len(providers) > 1 else [],
                sessions=bucket.sessions,
                token_usage=bucket.usage,
            )
        )

    result.sort(key=_sort_key)
    return result


def filter_by_date_range(
    sessions: Iterable[SessionInfo],
    since: datetime | None = None,
    until: datetime | None = None,
) -> list[SessionInfo]:
    """Keep sessions whose start time falls within ``[since, until]``.

    A None bound is open. Sessions without a start time are dropped when a
    lower bound is set and kept otherwise.
    """
    filtered: list[SessionInfo] = []
    for session in sessions:
        start = session.start_time
        if since is not None and (start is None or start < since):
            continue
        if until is not None and start is not None and start > until:
            continue
        filtered.append(session)
    return filtered
