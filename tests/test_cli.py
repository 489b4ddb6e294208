"""Tests for the codetok command-line interface."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from click.testing import CliRunner
from rich.console import Console

from codetok import __version__
from codetok.cli import cli, resolve_daily_date_range, resolve_group_by
from codetok.analytics.aggregator import AggregateDimension

NOW = datetime(2026, 2, 15, 13, 30, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Render tables wide enough that cells never wrap."""
    monkeypatch.setattr("codetok.cli.console", Console(width=200))


class TestResolveDailyDateRange:
    """Tests for the daily date window rules."""

    def test_default_window_starts_at_utc_midnight(self):
        """The default window starts at UTC midnight days-1 days ago."""
        since, until = resolve_daily_date_range(None, None, 7, False, False, NOW)
        assert since == datetime(2026, 2, 9, tzinfo=timezone.utc)
        assert until is None

    def test_single_day_window(self):
        """--days 1 covers today only."""
        since, _ = resolve_daily_date_range(None, None, 1, False, True, NOW)
        assert since == datetime(2026, 2, 15, tzinfo=timezone.utc)

    def test_explicit_range_covers_whole_until_day(self):
        """--until includes the whole day."""
        since, until = resolve_daily_date_range("2026-02-01", "2026-02-03", 7, False, False, NOW)
        assert since == datetime(2026, 2, 1, tzinfo=timezone.utc)
        assert until == datetime(2026, 2, 4, tzinfo=timezone.utc) - timedelta(microseconds=1)

    def test_all_history(self):
        """--all removes both bounds."""
        assert resolve_daily_date_range(None, None, 7, True, False, NOW) == (None, None)

    @pytest.mark.parametrize(
        "args",
        [
            ("2026-02-01", None, 7, True, False),
            (None, None, 3, True, True),
            ("2026-02-01", None, 3, False, True),
            (None, None, 0, False, True),
            ("02/01/2026", None, 7, False, False),
            (None, "2026-02-30", 7, False, False),
        ],
    )
    def test_invalid_combinations(self, args):
        """Conflicting or malformed options raise ValueError."""
        with pytest.raises(ValueError):
            resolve_daily_date_range(*args, NOW)


def test_resolve_group_by():
    """Group-by values are case-insensitive and validated."""
    assert resolve_group_by("MODEL") == AggregateDimension.MODEL
    assert resolve_group_by("") == AggregateDimension.CLI
    with pytest.raises(ValueError, match="allowed: model, cli"):
        resolve_group_by("day")


@pytest.fixture
def provider_dirs(tmp_path, write_jsonl, claude_events, codex_events, kimi_events):
    """On-disk session trees for all three providers, dated 2026-02-15."""
    claude = tmp_path / "claude"
    codex = tmp_path / "codex"
    kimi = tmp_path / "kimi" / "sessions"
    write_jsonl(claude / "-home-me-proj" / "c1.jsonl", claude_events)
    write_jsonl(codex / "2026" / "02" / "15" / "rollout-1.jsonl", codex_events)
    write_jsonl(kimi / "hash1" / "k1" / "wire.jsonl", kimi_events)
    return {"claude": claude, "codex": codex, "kimi": kimi}


def _dir_args(dirs):
    return [
        "--claude-dir", str(dirs["claude"]),
        "--codex-dir", str(dirs["codex"]),
        "--kimi-dir", str(dirs["kimi"]),
    ]


class TestDailyCommand:
    """Tests for `codetok daily`."""

    def test_json_by_cli(self, provider_dirs):
        """daily --json reports one bucket per CLI."""
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["daily", "--json", "--since", "2026-02-15", "--until", "2026-02-15", *_dir_args(provider_dirs)],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [(d["group"], d["provider"]) for d in data] == [
            ("claude", "claude"),
            ("codex", "codex"),
            ("kimi", "kimi"),
        ]
        by_group = {d["group"]: d for d in data}
        assert by_group["claude"]["token_usage"]["output"] == 30
        assert by_group["codex"]["token_usage"]["input_other"] == 1000
        assert by_group["kimi"]["token_usage"]["input_cache_read"] == 900
        assert all("providers" not in d for d in data)

    def test_json_by_model(self, provider_dirs):
        """daily --json --group-by model reports one bucket per model."""
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["daily", "--json", "--all", "--group-by", "model", *_dir_args(provider_dirs)],
        )

        assert result.exit_code == 0, result.output
        groups = [d["group"] for d in json.loads(result.output)]
        assert groups == ["claude-sonnet-4-5", "gpt-5-codex", "unknown (kimi)"]

    def test_provider_filter(self, provider_dirs):
        """--provider limits collection to one provider."""
        runner = CliRunner()
        result = runner.invoke(
            cli, ["daily", "--json", "--all", "--provider", "codex", *_dir_args(provider_dirs)]
        )
        assert result.exit_code == 0, result.output
        assert [d["group"] for d in json.loads(result.output)] == ["codex"]

    def test_missing_directories_give_empty_list(self, tmp_path):
        """Missing session directories yield an empty JSON array."""
        runner = CliRunner()
        result = runner.invoke(cli, ["daily", "--json", "--all", "--base-dir", str(tmp_path / "none")])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == []

    def test_range_excludes_other_days(self, provider_dirs):
        """Sessions outside the date range are dropped."""
        runner = CliRunner()
        result = runner.invoke(
            cli, ["daily", "--json", "--since", "2026-02-16", *_dir_args(provider_dirs)]
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == []

    def test_disabled_source_is_skipped(self, tmp_path, monkeypatch, provider_dirs):
        """Sources disabled in the config are not collected."""
        config_path = tmp_path / "config.toml"
        config_path.write_text("[sources.kimi]\nenabled = false\n")
        monkeypatch.setenv("CODETOK_CONFIG", str(config_path))

        runner = CliRunner()
        result = runner.invoke(cli, ["daily", "--json", "--all", *_dir_args(provider_dirs)])
        assert result.exit_code == 0, result.output
        assert [d["group"] for d in json.loads(result.output)] == ["claude", "codex"]

    def test_json_ignores_dashboard_options(self, provider_dirs):
        """--unit and --top only affect the dashboard, so JSON output skips them."""
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["daily", "--json", "--all", "--unit", "bogus", "--top", "0", *_dir_args(provider_dirs)],
        )
        assert result.exit_code == 0, result.output
        assert len(json.loads(result.output)) == 3

    def test_dashboard_output(self, provider_dirs):
        """The dashboard prints all three sections."""
        runner = CliRunner()
        result = runner.invoke(
            cli, ["daily", "--all", "--unit", "k", "--top", "2", *_dir_args(provider_dirs)]
        )
        assert result.exit_code == 0, result.output
        assert "Daily Total Trend" in result.output
        assert "CLI Total Ranking" in result.output
        assert "Top 2 CLI Share" in result.output

    @pytest.mark.parametrize(
        "args, message",
        [
            (["--all", "--days", "3"], "--all cannot be used"),
            (["--days", "3", "--since", "2026-02-01"], "--days cannot be used"),
            (["--group-by", "day"], "invalid --group-by"),
            (["--unit", "t"], "invalid unit"),
            (["--top", "0"], "invalid --top"),
            (["--since", "yesterday"], "invalid --since"),
        ],
    )
    def test_invalid_options_exit_with_error(self, tmp_path, args, message):
        """Invalid options print an error and exit 1."""
        runner = CliRunner()
        result = runner.invoke(cli, ["daily", "--base-dir", str(tmp_path), *args])
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert message in result.output


class TestSessionCommand:
    """Tests for `codetok session`."""

    def test_json_output(self, provider_dirs):
        """session --json emits one object per session."""
        runner = CliRunner()
        result = runner.invoke(
            cli, ["session", "--json", "--provider", "claude", "--base-dir", str(provider_dirs["claude"])]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert len(data) == 1
        assert data[0]["provider"] == "claude"
        assert data[0]["session_id"] == "claude-session-1"
        assert data[0]["title"] == "Refactor the parser"
        assert data[0]["model"] == "claude-sonnet-4-5"
        assert data[0]["date"] == "2026-02-15"
        assert data[0]["turns"] == 1
        assert data[0]["token_usage"]["output"] == 30

    def test_table_output(self, provider_dirs):
        """session prints a table with a TOTAL row."""
        runner = CliRunner()
        result = runner.invoke(
            cli, ["session", "--provider", "codex", "--base-dir", str(provider_dirs["codex"])]
        )
        assert result.exit_code == 0, result.output
        assert "codex-session-1" in result.output
        assert "TOTAL" in result.output


def test_providers_command():
    """All built-in providers are listed."""
    runner = CliRunner()
    result = runner.invoke(cli, ["providers"])
    assert result.exit_code == 0
    for name in ("claude", "codex", "kimi"):
        assert name in result.output


def test_providers_command_uses_configured_paths(tmp_path, monkeypatch):
    """Status reflects the configured directory and disabled sources."""
    codex_dir = tmp_path / "codex-data"
    codex_dir.mkdir()
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        f'[sources.codex]\npath = "{codex_dir.as_posix()}"\n\n[sources.kimi]\nenabled = false\n'
    )
    monkeypatch.setenv("CODETOK_CONFIG", str(config_path))

    runner = CliRunner()
    result = runner.invoke(cli, ["providers"])

    assert result.exit_code == 0, result.output
    rows = {}
    for line in result.output.splitlines():
        for display_name in ("Claude Code", "OpenAI Codex CLI", "Kimi CLI"):
            if display_name in line:
                rows[display_name] = line
    assert "Available" in rows["OpenAI Codex CLI"]
    assert "codex-data" in rows["OpenAI Codex CLI"]
    assert "Not Found" in rows["Claude Code"]
    assert "Disabled" in rows["Kimi CLI"]


def test_version_command():
    """version prints the package version."""
    runner = CliRunner()
    result = runner.invoke(cli, ["version"])
    assert result.exit_code == 0
    assert result.output.strip() == f"codetok {__version__}"
