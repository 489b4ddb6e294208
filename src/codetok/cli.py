"""Command-line interface for codetok."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from codetok import __version__
from codetok.analytics.aggregator import (
    AggregateDimension,
    aggregate_by_date,
    filter_by_date_range,
)
from codetok.analytics.dashboard import (
    render_daily_dashboard,
    render_sessions_table,
    resolve_token_unit,
)
from codetok.config import get_config
from codetok.providers import filter_providers, registry

if TYPE_CHECKING:
    from codetok.config import Config
    from codetok.models import SessionInfo
    from codetok.providers.base import SessionProvider

logger = logging.getLogger(__name__)

console = Console()
error_console = Console(stderr=True)

DATE_FORMAT = "%Y-%m-%d"


class CollectionError(Exception):
    """A provider's session directory exists but could not be read."""


def parse_date(s: str) -> datetime:
    """Parse a ``YYYY-MM-DD`` date as midnight UTC.

    Raises:
        ValueError: If the string is not a valid date.
    """
    return datetime.strptime(s.strip(), DATE_FORMAT).replace(tzinfo=timezone.utc)


def end_of_day(day: datetime) -> datetime:
    """Last representable instant of ``day``."""
    return day + timedelta(days=1) - timedelta(microseconds=1)


def resolve_group_by(group_by: str | None) -> AggregateDimension:
    """Validate a ``--group-by`` value.

    Raises:
        ValueError: If the value is neither 'cli' nor 'model'.
    """
    value = (group_by or "").strip().lower()
    if value in ("", AggregateDimension.CLI.value):
        return AggregateDimension.CLI
    if value == AggregateDimension.MODEL.value:
        return AggregateDimension.MODEL
    raise ValueError(f"invalid --group-by: {group_by!r} (allowed: model, cli)")


def resolve_explicit_range(
    since_str: str | None, until_str: str | None
) -> tuple[datetime | None, datetime | None]:
    """Parse ``--since``/``--until``; ``until`` covers its whole day.

    Raises:
        ValueError: If either date is malformed.
    """
    since: datetime | None = None
    until: datetime | None = None
    if since_str:
        try:
            since = parse_date(since_str)
        except ValueError:
            raise ValueError(f"invalid --since date: {since_str!r} (format: YYYY-MM-DD)") from None
    if until_str:
        try:
            until = end_of_day(parse_date(until_str))
        except ValueError:
            raise ValueError(f"invalid --until date: {until_str!r} (format: YYYY-MM-DD)") from None
    return since, until


def resolve_daily_date_range(
    since_str: str | None,
    until_str: str | None,
    days: int,
    all_history: bool,
    days_changed: bool,
    now: datetime,
) -> tuple[datetime | None, datetime | None]:
    """Resolve the daily report's date window.

    Args:
        since_str: ``--since`` value or None.
        until_str: ``--until`` value or None.
        days: Lookback window in days.
        all_history: ``--all`` was passed.
        days_changed: ``--days`` was passed explicitly.
        now: Current time.

    Returns:
        (since, until); None means unbounded on that side.

    Raises:
        ValueError: On conflicting or invalid options.
    """
    if all_history:
        if since_str or until_str or days_changed:
            raise ValueError("--all cannot be used with --days, --since, or --until")
        return None, None
    if days < 1:
        raise ValueError("invalid --days: must be >= 1")

    if since_str or until_str:
        if days_changed:
            raise ValueError("--days cannot be used with --since or --until")
        return resolve_explicit_range(since_str, until_str)

    utc_now = now.astimezone(timezone.utc)
    start_of_today = utc_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start_of_today - timedelta(days=days - 1), None


def resolve_provider_dir(
    provider: SessionProvider,
    provider_dirs: dict[str, str | None],
    base_dir: str | None,
    config: Config,
) -> Path | None:
    """Pick the directory for a provider.

    Per-provider override, then ``--base-dir``, then the config file path.
    None means the provider's own default.
    """
    override = provider_dirs.get(provider.name)
    if override:
        return Path(override).expanduser()
    if base_dir:
        return Path(base_dir).expanduser()
    return config.get_source_path(provider.name)


def collect_all_sessions(
    provider_filter: str | None,
    base_dir: str | None,
    provider_dirs: dict[str, str | None],
    config: Config,
) -> list[SessionInfo]:
    """Collect sessions from every selected provider.

    Providers disabled in the config are skipped unless named explicitly.
    Providers whose directory does not exist contribute nothing.

    Raises:
        CollectionError: If a provider directory exists but cannot be read.
    """
    sessions: list[SessionInfo] = []
    providers = filter_providers(registry.list_providers(), provider_filter)

    for provider in providers:
        if not provider_filter and not config.is_source_enabled(provider.name):
            logger.debug("Skipping disabled provider: %s", provider.name)
            continue

        directory = resolve_provider_dir(provider, provider_dirs, base_dir, config)
        try:
            collected = provider.collect_sessions(directory, max_workers=config.collect.workers)
        except FileNotFoundError:
            logger.debug("No session directory for %s", provider.name)
            continue
        except OSError as e:
            raise CollectionError(f"collecting sessions from {provider.name}: {e}") from e

        logger.debug("Collected %d session(s) from %s", len(collected), provider.name)
        sessions.extend(collected)

    return sessions


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    error_console.print(f"[red]Error:[/red] {escape(message)}")
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """codetok - Track token usage across coding CLI tools."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=error_console, show_path=False)],
        )


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--since", type=str, help="Start date filter (YYYY-MM-DD)")
@click.option("--until", type=str, help="End date filter (YYYY-MM-DD)")
@click.option("--days", type=int, help="Lookback window in days when --since/--until are not set")
@click.option("--all", "all_history", is_flag=True, help="Include all historical sessions")
@click.option("--unit", type=str, help="Token display unit for dashboard output: raw, k, m, g")
@click.option("--group-by", "group_by", type=str, help="Group by dimension: cli, model")
@click.option("--top", type=int, help="Top N groups to show in the share section")
@click.option("--provider", "-p", type=str, help="Filter by provider name (e.g. kimi, claude, codex)")
@click.option("--base-dir", type=str, help="Override data directory for all providers")
@click.option("--claude-dir", type=str, help="Override Claude Code data directory")
@click.option("--codex-dir", type=str, help="Override Codex CLI data directory")
@click.option("--kimi-dir", type=str, help="Override Kimi CLI data directory")
def daily(
    as_json: bool,
    since: str | None,
    until: str | None,
    days: int | None,
    all_history: bool,
    unit: str | None,
    group_by: str | None,
    top: int | None,
    provider: str | None,
    base_dir: str | None,
    claude_dir: str | None,
    codex_dir: str | None,
    kimi_dir: str | None,
) -> None:
    """Show daily token usage breakdown."""
    config = get_config()

    try:
        dimension = resolve_group_by(group_by or config.daily.group_by)
        top_n = top if top is not None else config.daily.top
        # Unit and top only shape the dashboard.
        if not as_json:
            token_unit = resolve_token_unit(unit or config.daily.unit)
            if top_n < 1:
                raise ValueError("invalid --top: must be >= 1")
        since_dt, until_dt = resolve_daily_date_range(
            since,
            until,
            days if days is not None else config.daily.days,
            all_history,
            days is not None,
            datetime.now(timezone.utc),
        )
    except ValueError as e:
        fail(str(e))

    provider_dirs = {"claude": claude_dir, "codex": codex_dir, "kimi": kimi_dir}
    try:
        sessions = collect_all_sessions(provider, base_dir, provider_dirs, config)
    except CollectionError as e:
        fail(str(e))

    sessions = filter_by_date_range(sessions, since_dt, until_dt)
    stats = aggregate_by_date(sessions, dimension)

    if as_json:
        click.echo(json.dumps([s.to_json_dict() for s in stats], indent=2))
        return

    render_daily_dashboard(console, stats, token_unit, dimension, top_n)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--since", type=str, help="Start date filter (YYYY-MM-DD)")
@click.option("--until", type=str, help="End date filter (YYYY-MM-DD)")
@click.option("--provider", "-p", type=str, help="Filter by provider name")
@click.option("--base-dir", type=str, help="Override data directory for all providers")
def session(
    as_json: bool,
    since: str | None,
    until: str | None,
    provider: str | None,
    base_dir: str | None,
) -> None:
    """Show per-session token usage."""
    config = get_config()

    try:
        since_dt, until_dt = resolve_explicit_range(since, until)
    except ValueError as e:
        fail(str(e))

    try:
        sessions = collect_all_sessions(provider, base_dir, {}, config)
    except CollectionError as e:
        fail(str(e))

    sessions = filter_by_date_range(sessions, since_dt, until_dt)
    sessions.sort(key=lambda s: (s.date, s.provider_name, s.session_id))

    if as_json:
        out = [
            {
                "provider": s.provider_name,
                "session_id": s.session_id,
                "title": s.title,
                "model": s.model_name,
                "date": s.date,
                "turns": s.turns,
                "token_usage": s.token_usage.model_dump(),
            }
            for s in sessions
        ]
        click.echo(json.dumps(out, indent=2, ensure_ascii=False))
        return

    render_sessions_table(console, sessions)


@cli.command()
def providers() -> None:
    """List registered providers and their availability."""
    config = get_config()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Display Name")
    table.add_column("Status")
    table.add_column("Path")

    for p in registry.list_providers():
        path = p.resolve_base_dir(config.get_source_path(p.name))
        if not config.is_source_enabled(p.name):
            status = "[yellow]Disabled[/yellow]"
        elif p.is_available(path):
            status = "[green]Available[/green]"
        else:
            status = "[red]Not Found[/red]"
        table.add_row(p.name, p.display_name, status, escape(str(path)))

    console.print(table)


@cli.command()
def version() -> None:
    """Print version information."""
    click.echo(f"codetok {__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
