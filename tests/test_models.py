"""Tests for the normalized token-usage models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from codetok.models import (
    TITLE_MAX_LENGTH,
    DailyStats,
    SessionInfo,
    TokenUsage,
    truncate_title,
)


class TestTokenUsage:
    """Tests for TokenUsage arithmetic and validation."""

    def test_totals(self):
        """Totals include every input counter plus output."""
        usage = TokenUsage(input_other=10, output=5, input_cache_read=100, input_cache_creation=20)
        assert usage.total_input == 130
        assert usage.total == 135

    def test_defaults_are_zero(self):
        """A fresh TokenUsage is all zeros."""
        usage = TokenUsage()
        assert usage.total == 0
        assert usage.total_input == 0

    def test_add_is_field_wise(self):
        """Addition sums each counter."""
        a = TokenUsage(input_other=1, output=2, input_cache_read=3, input_cache_creation=4)
        b = TokenUsage(input_other=10, output=20, input_cache_read=30, input_cache_creation=40)
        assert a + b == TokenUsage(
            input_other=11, output=22, input_cache_read=33, input_cache_creation=44
        )

    def test_sum_starts_from_zero(self):
        """sum() without a start value should work."""
        usages = [TokenUsage(output=1), TokenUsage(output=2), TokenUsage(output=3)]
        assert sum(usages).output == 6

    def test_negative_counts_rejected(self):
        """Negative counters fail validation."""
        with pytest.raises(ValidationError):
            TokenUsage(output=-1)

    def test_frozen(self):
        """TokenUsage is immutable."""
        usage = TokenUsage(output=1)
        with pytest.raises(ValidationError):
            usage.output = 2


class TestSessionInfo:
    """Tests for SessionInfo."""

    def test_date_from_start_time(self):
        """The date comes from the start time."""
        session = SessionInfo(
            provider_name="claude",
            session_id="s1",
            start_time=datetime(2026, 2, 15, 23, 59, tzinfo=timezone.utc),
        )
        assert session.date == "2026-02-15"

    def test_date_unknown_without_start_time(self):
        """No start time gives the unknown date."""
        session = SessionInfo(provider_name="codex", session_id="s1")
        assert session.date == "unknown"

    def test_defaults(self):
        """Optional session fields default to empty values."""
        session = SessionInfo(provider_name="kimi", session_id="s1")
        assert session.model_name == ""
        assert session.turns == 0
        assert session.token_usage == TokenUsage()


class TestDailyStats:
    """Tests for DailyStats JSON serialization."""

    def test_single_provider_json(self):
        """Single-provider buckets serialize without providers."""
        stats = DailyStats(
            date="2026-02-15",
            provider_name="claude",
            group_by="cli",
            group="claude",
            sessions=2,
            token_usage=TokenUsage(input_other=1, output=2),
        )
        data = stats.to_json_dict()
        assert data == {
            "date": "2026-02-15",
            "provider": "claude",
            "group_by": "cli",
            "group": "claude",
            "sessions": 2,
            "token_usage": {
                "input_other": 1,
                "output": 2,
                "input_cache_read": 0,
                "input_cache_creation": 0,
            },
        }

    def test_multi_provider_json_lists_providers(self):
        """Multi-provider buckets list their providers."""
        stats = DailyStats(
            date="2026-02-15",
            provider_name="",
            group_by="model",
            group="kimi-k2.5",
            providers=["claude", "kimi"],
            sessions=2,
        )
        data = stats.to_json_dict()
        assert data["provider"] == ""
        assert data["providers"] == ["claude", "kimi"]

    def test_populate_by_alias(self):
        """The provider alias populates provider_name."""
        stats = DailyStats(date="d", provider="codex", group_by="cli", group="codex")
        assert stats.provider_name == "codex"


class TestTruncateTitle:
    """Tests for title truncation."""

    def test_short_title_unchanged(self):
        """Short titles are unchanged."""
        assert truncate_title("Fix the build") == "Fix the build"

    def test_exact_limit_unchanged(self):
        """Titles at the limit are unchanged."""
        title = "x" * TITLE_MAX_LENGTH
        assert truncate_title(title) == title

    def test_long_title_truncated_with_ellipsis(self):
        """Long titles end with an ellipsis at the limit."""
        result = truncate_title("a" * 200)
        assert len(result) == TITLE_MAX_LENGTH
        assert result.endswith("...")

    def test_counts_code_points_not_bytes(self):
        """Truncation counts characters, not bytes."""
        result = truncate_title("é" * 100)
        assert len(result) == TITLE_MAX_LENGTH
        assert result == "é" * (TITLE_MAX_LENGTH - 3) + "..."
