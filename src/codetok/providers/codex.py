"""Codex CLI session provider.

Parses token usage from OpenAI Codex CLI rollout files stored in
date-based directories: ~/.codex/sessions/YYYY/MM/DD/rollout-*.jsonl.

Each line is wrapped as ``{"timestamp", "type", "payload"}``. ``token_count``
events carry cumulative totals for the whole session, so the last one in
the file is authoritative. Codex does not report cache-creation tokens.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from codetok.model_names import canonical_model_name
from codetok.models import SessionInfo, TokenUsage, truncate_title
from codetok.providers.base import (
    SessionProvider,
    as_dict,
    coerce_count,
    first_non_empty,
    iter_jsonl,
    list_dir,
    parse_iso_timestamp,
)
from codetok.providers.parallel import parse_parallel

logger = logging.getLogger(__name__)

PROVIDER_NAME = "codex"

MODEL_KEYS = (
    "model",
    "model_name",
    "modelName",
    "model_id",
    "modelId",
    "selected_model",
    "default_model",
)

# Objects known to wrap model settings, searched after the top level.
MODEL_ENVELOPES: tuple[tuple[str, ...], ...] = (
    ("info",),
    ("context",),
    ("turn_context",),
    ("settings",),
    ("config",),
    ("metadata",),
    ("collaboration_mode", "settings"),
)

MODEL_PATHS: tuple[tuple[str, ...], ...] = tuple((key,) for key in MODEL_KEYS) + tuple(
    envelope + (key,) for envelope in MODEL_ENVELOPES for key in MODEL_KEYS
)

PLACEHOLDER_MODELS = frozenset({"auto", "default", "none", "null", "n/a", "unknown"})

RATE_LIMIT_MARKERS = ("rate limit", "rate-limit", "rate_limit", "usage limit", "too many requests")


def lookup_path(document: Any, path: tuple[str, ...]) -> Any:
    """Follow ``path`` through nested objects, returning None on any miss."""
    node = document
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def is_acceptable_model(value: Any) -> bool:
    """Check whether a candidate value looks like a real model name."""
    if not isinstance(value, str):
        return False
    text = value.strip()
    if not text:
        return False
    lowered = text.lower()
    if lowered in PLACEHOLDER_MODELS:
        return False
    return not any(marker in lowered for marker in RATE_LIMIT_MARKERS)


def find_model_name(document: Any) -> str:
    """Search a loosely shaped JSON document for a model name.

    Candidate key paths are tried in a fixed order: well-known keys at the
    top level first, then the same keys under known envelope objects.

    Returns:
        The first acceptable value, stripped, or "" if none is found.

    Examples:
        >>> find_model_name({"info": {"model_name": "gpt-5-codex"}})
        'gpt-5-codex'
        >>> find_model_name({"model": "auto"})
        ''
    """
    if not isinstance(document, dict):
        return ""
    for path in MODEL_PATHS:
        value = lookup_path(document, path)
        if is_acceptable_model(value):
            return value.strip()
    return ""


def usage_from_total(total: dict[str, Any]) -> TokenUsage:
    """Map a cumulative ``total_token_usage`` object to TokenUsage.

    Codex reports cached input as a subset of input tokens.
    """
    input_tokens = coerce_count(total.get("input_tokens"))
    cached = coerce_count(total.get("cached_input_tokens"))
    return TokenUsage(
        input_other=max(input_tokens - cached, 0),
        output=coerce_count(total.get("output_tokens")),
        input_cache_read=cached,
    )


class CodexProvider(SessionProvider):
    """Provider for OpenAI Codex CLI rollout files."""

    @property
    def name(self) -> str:
        """Provider identifier."""
        return PROVIDER_NAME

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return "OpenAI Codex CLI"

    def get_default_path(self) -> Path:
        """Get default path for Codex sessions."""
        return Path.home() / ".codex" / "sessions"

    def collect_sessions(
        self, base_dir: str | Path | None = None, *, max_workers: int = 0
    ) -> list[SessionInfo]:
        """Collect sessions from ``base_dir/YYYY/MM/DD/*.jsonl``.

        Args:
            base_dir: Sessions directory; defaults to ~/.codex/sessions.
            max_workers: Parse concurrency bound, <= 0 for the default.

        Returns:
            Parsed sessions, one per rollout file.

        Raises:
            OSError: If the sessions directory cannot be listed.
        """
        sessions_path = self.resolve_base_dir(base_dir)
        paths = self._find_rollout_files(sessions_path)
        return parse_parallel(paths, max_workers, self.parse_session)

    def _find_rollout_files(self, sessions_path: Path) -> list[Path]:
        """Walk the year/month/day tree and return the JSONL files in it."""
        paths: list[Path] = []
        years = list_dir(sessions_path)

        for year in years:
            if not year.is_dir():
                continue
            for month in self._subdirs(Path(year.path)):
                for day in self._subdirs(month):
                    try:
                        files = list_dir(day)
                    except OSError as e:
                        logger.debug("Skipping unreadable directory %s: %s", day, e)
                        continue
                    for f in files:
                        if f.is_dir() or not f.name.endswith(".jsonl"):
                            continue
                        paths.append(Path(f.path))

        return paths

    def _subdirs(self, path: Path) -> list[Path]:
        try:
            entries = list_dir(path)
        except OSError as e:
            logger.debug("Skipping unreadable directory %s: %s", path, e)
            return []
        return [Path(entry.path) for entry in entries if entry.is_dir()]

    def parse_session(self, path: Path) -> SessionInfo:
        """Parse a single Codex rollout JSONL file.

        Args:
            path: Path to the rollout file.

        Returns:
            SessionInfo carrying the last cumulative usage snapshot.

        Raises:
            OSError: If the file cannot be opened or read.
        """
        session_id = ""
        model_name = ""
        title = ""
        turns = 0
        start_time: datetime | None = None
        end_time: datetime | None = None
        last_usage: TokenUsage | None = None

        for event in iter_jsonl(path):
            if not isinstance(event, dict):
                continue

            ts = parse_iso_timestamp(event.get("timestamp"))
            if ts is not None:
                if start_time is None or ts < start_time:
                    start_time = ts
                if end_time is None or ts > end_time:
                    end_time = ts

            event_type = event.get("type")
            payload = event.get("payload")

            # The first acceptable model name sticks for the whole session.
            if not model_name:
                model_name = find_model_name(payload)

            if event_type == "session_meta":
                meta = as_dict(payload)
                session_id = first_non_empty(meta.get("id")) or session_id
                meta_ts = parse_iso_timestamp(meta.get("timestamp"))
                if meta_ts is not None:
                    start_time = meta_ts

            elif event_type == "event_msg":
                msg = as_dict(payload)
                msg_type = msg.get("type")

                if msg_type == "user_message":
                    turns += 1
                    text = msg.get("message")
                    if not title and isinstance(text, str) and text:
                        title = text

                elif msg_type == "token_count":
                    total = as_dict(msg.get("info")).get("total_token_usage")
                    if isinstance(total, dict):
                        # Cumulative: replace, never add.
                        last_usage = usage_from_total(total)

        return SessionInfo(
            provider_name=PROVIDER_NAME,
            model_name=canonical_model_name(model_name),
            session_id=session_id or path.stem,
            title=truncate_title(title),
            start_time=start_time,
            end_time=end_time,
            turns=turns,
            token_usage=last_usage or TokenUsage(),
        )
