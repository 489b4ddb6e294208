"""Kimi CLI session provider.

Kimi CLI storage structure (~/.kimi/):
    sessions/<work-dir-hash>/<session-uuid>/wire.jsonl     - Event stream (required)
    sessions/<work-dir-hash>/<session-uuid>/metadata.json  - Session metadata (optional)
    logs/kimi*.log                                         - Plain-text CLI logs

``StatusUpdate`` events carry per-step deltas, so usage is summed. When
neither the metadata nor the wire stream names a model, the CLI logs are
searched for the model that was active when the session was created.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
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
)
from codetok.providers.parallel import parse_parallel

logger = logging.getLogger(__name__)

PROVIDER_NAME = "kimi"

WIRE_FILE = "wire.jsonl"
METADATA_FILE = "metadata.json"

CREATED_SESSION_RE = re.compile(
    r"Created new session:\s*([0-9a-f]{8}(?:-[0-9a-f]{4}){3}-[0-9a-f]{12})",
    re.IGNORECASE,
)
USING_MODEL_MARKER = "using llm model:"
MODEL_VALUE_RE = re.compile(r"""model=['"]([^'"]+)['"]""")


def timestamp_to_datetime(ts: Any) -> datetime | None:
    """Convert fractional Unix seconds to a UTC datetime.

    Returns None for missing or non-numeric values.
    """
    if isinstance(ts, bool) or not isinstance(ts, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def usage_from_status(token_usage: dict[str, Any]) -> TokenUsage:
    """Map a ``StatusUpdate`` ``token_usage`` delta to TokenUsage."""
    return TokenUsage(
        input_other=coerce_count(token_usage.get("input_other")),
        output=coerce_count(token_usage.get("output")),
        input_cache_read=coerce_count(token_usage.get("input_cache_read")),
        input_cache_creation=coerce_count(token_usage.get("input_cache_creation")),
    )


def model_from_fields(data: dict[str, Any]) -> str:
    """Return the first non-empty of the model key aliases."""
    return first_non_empty(data.get("model_name"), data.get("model"), data.get("model_id"))


def normalize_session_id(session_id: str) -> str:
    """Normalize a session id for log index lookups."""
    return session_id.strip().lower()


class WireSummary:
    """Totals extracted from one wire.jsonl stream."""

    def __init__(self) -> None:
        self.usage = TokenUsage()
        self.turns = 0
        self.start_time: datetime | None = None
        self.end_time: datetime | None = None
        self.model_name = ""


def parse_wire(path: Path) -> WireSummary:
    """Parse a wire.jsonl file.

    Args:
        path: Path to wire.jsonl.

    Returns:
        Summed usage, turn count, turn time span and first reported model.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    summary = WireSummary()

    for event in iter_jsonl(path):
        if not isinstance(event, dict):
            continue
        message = as_dict(event.get("message"))
        message_type = message.get("type")

        if message_type == "StatusUpdate":
            payload = message.get("payload")
            if not isinstance(payload, dict):
                continue
            if not summary.model_name:
                summary.model_name = model_from_fields(payload)
            summary.usage = summary.usage + usage_from_status(as_dict(payload.get("token_usage")))

        elif message_type == "TurnBegin":
            summary.turns += 1
            ts = timestamp_to_datetime(event.get("timestamp"))
            if ts is not None and (summary.start_time is None or ts < summary.start_time):
                summary.start_time = ts

        elif message_type == "TurnEnd":
            ts = timestamp_to_datetime(event.get("timestamp"))
            if ts is not None and (summary.end_time is None or ts > summary.end_time):
                summary.end_time = ts

    return summary


def load_metadata(path: Path) -> dict[str, Any] | None:
    """Load metadata.json, returning None if it is missing or invalid."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug("No usable metadata at %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def merge_session_models_from_log(log_path: Path, index: dict[str, str]) -> None:
    """Add session -> model bindings found in one log file to ``index``.

    A ``Created new session: <uuid>`` line opens a scope; the first
    ``Using LLM model: ... model='<name>'`` line inside it binds the model.
    Sessions already in the index keep their earlier binding.
    """
    try:
        f = log_path.open("r", encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug("Skipping unreadable log %s: %s", log_path, e)
        return

    current_session = ""
    with f:
        for line in f:
            created = CREATED_SESSION_RE.search(line)
            if created:
                current_session = normalize_session_id(created.group(1))
                continue
            if not current_session or USING_MODEL_MARKER not in line.lower():
                continue

            match = MODEL_VALUE_RE.search(line)
            if not match or not match.group(1).strip():
                continue
            if current_session not in index:
                index[current_session] = canonical_model_name(match.group(1))


def load_session_models_from_logs(logs_dir: Path | None) -> dict[str, str]:
    """Build a session id -> model index from ``kimi*.log`` files."""
    if logs_dir is None or not logs_dir.is_dir():
        return {}

    index: dict[str, str] = {}
    for log_path in sorted(logs_dir.glob("kimi*.log")):
        merge_session_models_from_log(log_path, index)
    return index


class KimiProvider(SessionProvider):
    """Provider for Kimi CLI session directories."""

    @property
    def name(self) -> str:
        """Provider identifier."""
        return PROVIDER_NAME

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return "Kimi CLI"

    def get_default_path(self) -> Path:
        """Get default path for Kimi sessions."""
        return Path.home() / ".kimi" / "sessions"

    def get_default_logs_path(self) -> Path:
        """Get default path for Kimi CLI logs."""
        return Path.home() / ".kimi" / "logs"

    def detect_logs_dir(self, sessions_path: Path) -> Path | None:
        """Find the logs directory that belongs to ``sessions_path``.

        Prefers a sibling ``logs`` directory when the sessions directory is
        named ``sessions``; falls back to ~/.kimi/logs for the default path.
        """
        sibling = sessions_path.parent / "logs"
        if sessions_path.name == "sessions" and sibling.is_dir():
            return sibling

        try:
            is_default = sessions_path.resolve() == self.get_default_path().resolve()
        except OSError:
            is_default = False
        if is_default and self.get_default_logs_path().is_dir():
            return self.get_default_logs_path()
        return None

    def collect_sessions(
        self, base_dir: str | Path | None = None, *, max_workers: int = 0
    ) -> list[SessionInfo]:
        """Collect sessions from ``base_dir/<work-dir-hash>/<session>/``.

        Session directories without a wire.jsonl are skipped.

        Args:
            base_dir: Sessions directory; defaults to ~/.kimi/sessions.
            max_workers: Parse concurrency bound, <= 0 for the default.

        Returns:
            Parsed sessions, one per session directory.

        Raises:
            OSError: If the sessions directory cannot be listed.
        """
        sessions_path = self.resolve_base_dir(base_dir)

        paths: list[Path] = []
        path_to_hash: dict[Path, str] = {}

        work_dirs = list_dir(sessions_path)
        model_index = load_session_models_from_logs(self.detect_logs_dir(sessions_path))

        for work_dir in work_dirs:
            if not work_dir.is_dir():
                continue
            try:
                session_dirs = list_dir(Path(work_dir.path))
            except OSError as e:
                logger.debug("Skipping unreadable directory %s: %s", work_dir.path, e)
                continue

            for session_dir in session_dirs:
                if not session_dir.is_dir():
                    continue
                session_path = Path(session_dir.path)
                if not (session_path / WIRE_FILE).is_file():
                    continue
                paths.append(session_path)
                path_to_hash[session_path] = work_dir.name

        return parse_parallel(
            paths,
            max_workers,
            lambda path: self.parse_session(path, path_to_hash[path], model_index),
        )

    def parse_session(
        self,
        session_path: Path,
        work_dir_hash: str = "",
        model_index: dict[str, str] | None = None,
    ) -> SessionInfo:
        """Parse a single Kimi session directory.

        Args:
            session_path: The ``<session-uuid>`` directory.
            work_dir_hash: Name of the enclosing work directory.
            model_index: Session id -> model bindings from the CLI logs.

        Returns:
            SessionInfo with summed usage.

        Raises:
            OSError: If wire.jsonl cannot be opened or read.
        """
        meta = load_metadata(session_path / METADATA_FILE) or {}
        session_id = first_non_empty(meta.get("session_id")) or session_path.name
        title = meta.get("title") if isinstance(meta.get("title"), str) else ""
        model_name = canonical_model_name(model_from_fields(meta))

        wire = parse_wire(session_path / WIRE_FILE)

        if not model_name:
            model_name = canonical_model_name(wire.model_name)
        if not model_name and model_index:
            for candidate in (session_id, session_path.name):
                lookup_id = normalize_session_id(candidate)
                if lookup_id and lookup_id in model_index:
                    model_name = model_index[lookup_id]
                    break

        return SessionInfo(
            provider_name=PROVIDER_NAME,
            model_name=model_name,
            session_id=session_id,
            title=truncate_title(title),
            work_dir_hash=work_dir_hash,
            start_time=wire.start_time,
            end_time=wire.end_time,
            turns=wire.turns,
            token_usage=wire.usage,
        )
