"""Claude Code session provider.

Parses token usage from Claude Code's JSONL session files stored in
~/.claude/projects/<project-slug>/<session-uuid>.jsonl.

Claude Code re-emits the same assistant message several times while
streaming, each copy carrying a larger usage snapshot. Usage is therefore
keyed by (message id, request id) and only the last snapshot per key counts.
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

PROVIDER_NAME = "claude"

# Model value Claude Code writes for locally generated messages.
SYNTHETIC_MODEL = "<synthetic>"


def dedup_key(message_id: str, request_id: str, counter: list[int]) -> str:
    """Build the streaming dedup key for an assistant usage entry.

    Entries with neither id get a fresh key from ``counter`` so they are
    never merged with anything else.
    """
    if not message_id and not request_id:
        counter[0] += 1
        return f"_unique_{counter[0]}"
    return f"{message_id}:{request_id}"


def extract_user_text(content: Any) -> str:
    """Extract the text of a user message.

    Args:
        content: Either a plain string or a list of content block dicts.

    Returns:
        The string itself, the first non-empty ``text`` block, or "".
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        for block in content:
            if not isinstance(block, dict) or block.get("type") != "text":
                continue
            text = block.get("text")
            if isinstance(text, str) and text:
                return text
    return ""


def usage_from_message(usage: dict[str, Any]) -> TokenUsage:
    """Map a Claude ``message.usage`` object to TokenUsage."""
    return TokenUsage(
        input_other=coerce_count(usage.get("input_tokens")),
        output=coerce_count(usage.get("output_tokens")),
        input_cache_read=coerce_count(usage.get("cache_read_input_tokens")),
        input_cache_creation=coerce_count(usage.get("cache_creation_input_tokens")),
    )


class ClaudeCodeProvider(SessionProvider):
    """Provider for Claude Code session files."""

    @property
    def name(self) -> str:
        """Provider identifier."""
        return PROVIDER_NAME

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return "Claude Code"

    def get_default_path(self) -> Path:
        """Get default path for Claude Code sessions."""
        return Path.home() / ".claude" / "projects"

    def collect_sessions(
        self, base_dir: str | Path | None = None, *, max_workers: int = 0
    ) -> list[SessionInfo]:
        """Collect sessions from ``base_dir/<project-slug>/*.jsonl``.

        Args:
            base_dir: Projects directory; defaults to ~/.claude/projects.
            max_workers: Parse concurrency bound, <= 0 for the default.

        Returns:
            Parsed sessions, one per JSONL file.

        Raises:
            OSError: If the projects directory cannot be listed.
        """
        projects_path = self.resolve_base_dir(base_dir)

        paths: list[Path] = []
        path_to_slug: dict[Path, str] = {}

        for project_dir in list_dir(projects_path):
            if not project_dir.is_dir():
                continue
            project_path = Path(project_dir.path)
            try:
                entries = list_dir(project_path)
            except OSError as e:
                logger.debug("Skipping unreadable project directory %s: %s", project_path, e)
                continue

            for entry in entries:
                if entry.is_dir() or not entry.name.endswith(".jsonl"):
                    continue
                session_path = Path(entry.path)
                paths.append(session_path)
                path_to_slug[session_path] = project_dir.name

        return parse_parallel(
            paths,
            max_workers,
            lambda path: self.parse_session(path, path_to_slug[path]),
        )

    def parse_session(self, path: Path, project_slug: str = "") -> SessionInfo:
        """Parse a single Claude Code JSONL session file.

        Args:
            path: Path to the session file.
            project_slug: Name of the enclosing project directory.

        Returns:
            SessionInfo with deduplicated usage.

        Raises:
            OSError: If the file cannot be opened or read.
        """
        session_id = ""
        model_name = ""
        title = ""
        turns = 0
        start_time: datetime | None = None
        end_time: datetime | None = None

        dedup_usage: dict[str, TokenUsage] = {}
        unique_counter = [0]

        for event in iter_jsonl(path):
            if not isinstance(event, dict):
                continue

            ts = parse_iso_timestamp(event.get("timestamp"))
            if ts is not None:
                if start_time is None or ts < start_time:
                    start_time = ts
                if end_time is None or ts > end_time:
                    end_time = ts

            if not session_id:
                session_id = first_non_empty(event.get("sessionId"))

            message = as_dict(event.get("message"))
            event_type = event.get("type")

            if event_type == "user":
                user_type = event.get("userType")
                if user_type and user_type != "external":
                    continue
                turns += 1
                if not title:
                    title = extract_user_text(message.get("content"))

            elif event_type == "assistant":
                model = first_non_empty(message.get("model"))
                if not model_name and model != SYNTHETIC_MODEL:
                    model_name = model

                usage = message.get("usage")
                if isinstance(usage, dict):
                    key = dedup_key(
                        first_non_empty(message.get("id")),
                        first_non_empty(event.get("requestId")),
                        unique_counter,
                    )
                    # Later streaming snapshots replace earlier ones.
                    dedup_usage[key] = usage_from_message(usage)

        return SessionInfo(
            provider_name=PROVIDER_NAME,
            model_name=canonical_model_name(model_name),
            session_id=session_id or path.stem,
            title=truncate_title(title),
            work_dir_hash=project_slug,
            start_time=start_time,
            end_time=end_time,
            turns=turns,
            token_usage=sum(dedup_usage.values(), TokenUsage()),
        )
