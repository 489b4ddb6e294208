"""Text dashboard for daily token usage."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

from codetok.analytics.aggregator import AggregateDimension
from codetok.models import TokenUsage

if TYPE_CHECKING:
    from rich.console import Console

    from codetok.models import DailyStats, SessionInfo


TREND_BAR_WIDTH = 10


class TokenUnit(str, Enum):
    """Display units for token counts."""

    RAW = "raw"
    K = "k"
    M = "m"
    G = "g"


UNIT_SCALE = {
    TokenUnit.RAW: 1,
    TokenUnit.K: 1_000,
    TokenUnit.M: 1_000_000,
    TokenUnit.G: 1_000_000_000,
}


@dataclass
class DayTotal:
    """Token usage summed across all groups of one day."""

    date: str
    sessions: int = 0
    token_usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass
class GroupTotal:
    """Token usage summed across all days of one group."""

    name: str
    sessions: int = 0
    token_usage: TokenUsage = field(default_factory=TokenUsage)


def resolve_token_unit(unit: str) -> TokenUnit:
    """Parse a unit name (case-insensitive).

    Raises:
        ValueError: If the unit is not one of raw, k, m, g.
    """
    try:
        return TokenUnit(unit.strip().lower())
    except ValueError:
        raise ValueError(f"invalid unit: {unit!r} (allowed: raw, k, m, g)") from None


def format_token_by_unit(value: int, unit: TokenUnit) -> str:
    """Format a token count in ``unit``.

    Examples:
        >>> format_token_by_unit(1_234_567, TokenUnit.M)
        '1.23m'
        >>> format_token_by_unit(1_234_567, TokenUnit.RAW)
        '1234567'
    """
    if unit == TokenUnit.RAW:
        return str(value)
    return f"{value / UNIT_SCALE[unit]:.2f}{unit.value}"


def token_header(name: str, unit: TokenUnit) -> str:
    """Column header with the unit suffix, e.g. ``Total(m)``."""
    if unit == TokenUnit.RAW:
        return name
    return f"{name}({unit.value})"


def trend_bar(value: int, max_value: int, width: int = TREND_BAR_WIDTH) -> str:
    """Render a fixed-width bar of ``#`` and ``.`` proportional to ``value``.

    Any positive value gets at least one ``#``.
    """
    width = max(width, 1)
    if max_value <= 0 or value <= 0:
        return "." * width
    # Half rounds up.
    filled = int(value / max_value * width + 0.5)
    filled = min(max(filled, 1), width)
    return "#" * filled + "." * (width - filled)


def format_percent(part: int, whole: int) -> str:
    """Format ``part`` as a percentage of ``whole`` with two decimals."""
    if whole <= 0:
        return "0.00%"
    return f"{part * 100 / whole:.2f}%"


def short_date_label(date: str) -> str:
    """Drop the year from a ``YYYY-MM-DD`` date."""
    if len(date) == len("2006-01-02"):
        return date[5:]
    return date


def group_column_title(group_by: AggregateDimension) -> str:
    """Column title for the grouping dimension."""
    if group_by == AggregateDimension.CLI:
        return "CLI"
    return "Model"


def aggregate_totals_by_date(daily: list[DailyStats]) -> list[DayTotal]:
    """Collapse daily buckets into one total per date, sorted by date."""
    totals: dict[str, DayTotal] = {}
    for d in daily:
        total = totals.setdefault(d.date, DayTotal(date=d.date))
        total.sessions += d.sessions
        total.token_usage = total.token_usage + d.token_usage
    return sorted(totals.values(), key=lambda t: t.date)


def aggregate_totals_by_group(daily: list[DailyStats]) -> list[GroupTotal]:
    """Collapse daily buckets into one total per group.

    Sorted by total tokens and session count (both descending), then name.
    """
    totals: dict[str, GroupTotal] = {}
    for d in daily:
        # Buckets without an explicit group fall back to the provider name.
        name = d.group.strip() or d.provider_name
        total = totals.setdefault(name, GroupTotal(name=name))
        total.sessions += d.sessions
        total.token_usage = total.token_usage + d.token_usage
    return sorted(
        totals.values(),
        key=lambda t: (-t.token_usage.total, -t.sessions, t.name),
    )


def render_daily_trend(console: Console, date_totals: list[DayTotal], unit: TokenUnit) -> None:
    """Print the per-day total trend."""
    console.print("[bold]Daily Total Trend[/bold]")
    if not date_totals:
        console.print("[dim]No data for selected range.[/dim]\n")
        return

    max_total = max(d.token_usage.total for d in date_totals)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Date")
    for d in date_totals:
        table.add_column(short_date_label(d.date), justify="right")

    table.add_row("Total", *(format_token_by_unit(d.token_usage.total, unit) for d in date_totals))
    table.add_row("Bar", *(trend_bar(d.token_usage.total, max_total) for d in date_totals))
    console.print(table)
    console.print(f"Max: {format_token_by_unit(max_total, unit)}\n")


def render_group_ranking(
    console: Console,
    group_totals: list[GroupTotal],
    unit: TokenUnit,
    group_by: AggregateDimension,
) -> None:
    """Print all groups ranked by total usage."""
    title = group_column_title(group_by)
    console.print(f"[bold]{title} Total Ranking[/bold]")
    if not group_totals:
        console.print("[dim]No groups for selected range.[/dim]\n")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Rank", justify="right")
    table.add_column(title, style="cyan")
    table.add_column("Sessions", justify="right")
    table.add_column(token_header("Total", unit), justify="right")

    for rank, g in enumerate(group_totals, start=1):
        table.add_row(
            str(rank),
            escape(g.name),
            str(g.sessions),
            format_token_by_unit(g.token_usage.total, unit),
        )

    console.print(table)
    console.print()


def render_top_group_share(
    console: Console,
    group_totals: list[GroupTotal],
    unit: TokenUnit,
    group_by: AggregateDimension,
    top_n: int,
) -> None:
    """Print the share of the top N groups with a token breakdown."""
    title = group_column_title(group_by)
    console.print(f"[bold]Top {top_n} {title} Share[/bold]")
    if not group_totals:
        console.print("[dim]No groups for selected range.[/dim]")
        return

    top = group_totals[:top_n]
    total_usage = sum((g.token_usage for g in group_totals), TokenUsage())
    top_usage = sum((g.token_usage for g in top), TokenUsage())

    console.print(
        f"Coverage: {format_token_by_unit(top_usage.total, unit)} / "
        f"{format_token_by_unit(total_usage.total, unit)} "
        f"({format_percent(top_usage.total, total_usage.total)})"
    )

    table = Table(show_header=True, header_style="bold")
    table.add_column("Rank", justify="right")
    table.add_column(title, style="cyan")
    table.add_column("Share", justify="right")
    table.add_column("Sessions", justify="right")
    for header in ("Total", "Input", "Output", "Cache Read", "Cache Create"):
        table.add_column(token_header(header, unit), justify="right")

    for rank, g in enumerate(top, start=1):
        usage = g.token_usage
        table.add_row(
            str(rank),
            escape(g.name),
            format_percent(usage.total, total_usage.total),
            str(g.sessions),
            format_token_by_unit(usage.total, unit),
            format_token_by_unit(usage.input_other, unit),
            format_token_by_unit(usage.output, unit),
            format_token_by_unit(usage.input_cache_read, unit),
            format_token_by_unit(usage.input_cache_creation, unit),
        )

    console.print(table)


def render_daily_dashboard(
    console: Console,
    daily: list[DailyStats],
    unit: TokenUnit,
    group_by: AggregateDimension,
    top_n: int,
) -> None:
    """Print the trend, ranking and top-N share sections."""
    group_totals = aggregate_totals_by_group(daily)
    render_daily_trend(console, aggregate_totals_by_date(daily), unit)
    render_group_ranking(console, group_totals, unit, group_by)
    render_top_group_share(console, group_totals, unit, group_by, top_n)


def render_sessions_table(console: Console, sessions: list[SessionInfo]) -> None:
    """Print one row per session plus a TOTAL row."""
    if not sessions:
        console.print("[dim]No sessions found.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", show_footer=False)
    table.add_column("Date", style="yellow")
    table.add_column("Provider", style="magenta")
    table.add_column("Session", style="cyan")
    table.add_column("Title", max_width=40)
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Total", justify="right")

    for s in sessions:
        usage = s.token_usage
        table.add_row(
            s.date,
            escape(s.provider_name),
            escape(s.session_id),
            escape(s.title) if s.title else "[dim]Untitled[/dim]",
            f"{usage.total_input:,}",
            f"{usage.output:,}",
            f"{usage.total:,}",
        )

    total = sum((s.token_usage for s in sessions), TokenUsage())
    table.add_row(
        "[bold]TOTAL[/bold]",
        "",
        "",
        "",
        f"{total.total_input:,}",
        f"{total.output:,}",
        f"{total.total:,}",
    )
    console.print(table)
