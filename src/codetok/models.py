"""Normalized token-usage models for codetok.

This module defines the shared vocabulary every provider parser and the
aggregation engine operate on: per-session token counters, the normalized
session record, and the per-day aggregate bucket.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Titles are bounded in code points so multi-byte characters are never split.
TITLE_MAX_LENGTH = 80

UNKNOWN_DATE = "unknown"


class TokenUsage(BaseModel):
    """Token counters for a session or an aggregate bucket."""

    model_config = ConfigDict(frozen=True)

    input_other: int = Field(default=0, ge=0)
    output: int = Field(default=0, ge=0)
    input_cache_read: int = Field(default=0, ge=0)
    input_cache_creation: int = Field(default=0, ge=0)

    @property
    def total_input(self) -> int:
        """Non-cached input plus both cache counters."""
        return self.input_other + self.input_cache_read + self.input_cache_creation

    @property
    def total(self) -> int:
        """All input plus output."""
        return self.total_input + self.output

    def __add__(self, other: TokenUsage) -> TokenUsage:
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage(
            input_other=self.input_other + other.input_other,
            output=self.output + other.output,
            input_cache_read=self.input_cache_read + other.input_cache_read,
            input_cache_creation=self.input_cache_creation + other.input_cache_creation,
        )

    def __radd__(self, other: Any) -> TokenUsage:
        # Lets sum() start from the integer 0.
        if other == 0:
            return self
        return NotImplemented


class SessionInfo(BaseModel):
    """One normalized coding session.

    Created once per raw session file (or directory) while parsing and never
    mutated afterwards. ``start_time``/``end_time`` are None when the log
    carried no usable timestamp.
    """

    model_config = ConfigDict(frozen=True)

    provider_name: str
    model_name: str = ""
    session_id: str
    title: str = ""
    work_dir_hash: str = ""
    start_time: datetime | None = None
    end_time: datetime | None = None
    turns: int = 0
    token_usage: TokenUsage = Field(default_factory=TokenUsage)

    @property
    def date(self) -> str:
        """Calendar date of the session start, or ``"unknown"``."""
        if self.start_time is None:
            return UNKNOWN_DATE
        return self.start_time.strftime("%Y-%m-%d")


class DailyStats(BaseModel):
    """Aggregated token usage for one (date, group) bucket."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    date: str
    # Always carries provider semantics; empty when the group spans providers.
    provider_name: str = Field(default="", alias="provider")
    group_by: str
    group: str
    providers: list[str] = Field(default_factory=list)
    sessions: int = 0
    token_usage: TokenUsage = Field(default_factory=TokenUsage)

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with the field names downstream tooling depends on.

        Returns:
            Dictionary with ``providers`` omitted when empty.
        """
        data = self.model_dump(by_alias=True)
        if not self.providers:
            data.pop("providers")
        return data


def truncate_title(text: str, limit: int = TITLE_MAX_LENGTH) -> str:
    """Truncate a title to ``limit`` code points.

    Examples:
        >>> truncate_title("short")
        'short'
        >>> truncate_title("abcdefghij", 8)
        'abcde...'
    """
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
