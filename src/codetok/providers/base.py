"""Base provider interface and shared log-parsing helpers."""

from __future__ import annotations

import json
import math
import os
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

if TYPE_CHECKING:
    from codetok.models import SessionInfo

# fromisoformat() wants exactly six fractional digits on older interpreters.
_FRACTION_RE = re.compile(r"\.(\d+)")


class SessionProvider(ABC):
    """Base class for all session providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g., 'claude', 'codex')."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name."""
        ...

    @abstractmethod
    def get_default_path(self) -> Path:
        """Get default session directory for this provider."""
        ...

    @abstractmethod
    def collect_sessions(
        self, base_dir: str | Path | None = None, *, max_workers: int = 0
    ) -> list[SessionInfo]:
        """Collect normalized sessions found under ``base_dir``.

        Args:
            base_dir: Session directory; None or empty uses the default path.
            max_workers: Parse concurrency bound, <= 0 for the default.

        Returns:
            Sessions that parsed successfully, in no particular order.

        Raises:
            OSError: If the base directory itself cannot be listed.
        """
        ...

    def is_available(self, base_dir: str | Path | None = None) -> bool:
        """Check if the session directory (default path when unset) exists."""
        return self.resolve_base_dir(base_dir).is_dir()

    def resolve_base_dir(self, base_dir: str | Path | None) -> Path:
        """Return ``base_dir`` as a Path, or the default path when unset."""
        if base_dir is None or str(base_dir).strip() == "":
            return self.get_default_path()
        return Path(base_dir).expanduser()


def list_dir(path: Path) -> list[os.DirEntry[str]]:
    """List a directory sorted by entry name.

    Raises:
        OSError: If the directory cannot be read.
    """
    with os.scandir(path) as it:
        return sorted(it, key=lambda entry: entry.name)


def iter_jsonl(path: Path) -> Iterator[Any]:
    """Yield decoded JSON values from a JSONL file.

    Blank and malformed lines, including lines that are not valid UTF-8,
    are skipped. Errors opening or reading the file itself propagate to
    the caller.
    """
    with path.open("rb") as f:
        for raw in f:
            try:
                line = raw.decode("utf-8").strip()
                if not line:
                    continue
                yield json.loads(line)
            except (UnicodeDecodeError, json.JSONDecodeError):
                continue


def parse_iso_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp with up to nanosecond precision.

    Naive values are treated as UTC.

    Args:
        value: Timestamp string such as ``2026-02-15T10:00:00.123456789Z``.

    Returns:
        Timezone-aware datetime, or None if the value is not a valid timestamp.
    """
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def coerce_count(value: Any) -> int:
    """Convert a JSON token count to a non-negative int.

    Anything that is not a number (including booleans) counts as zero.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return max(int(value), 0)


def as_dict(value: Any) -> dict[str, Any]:
    """Return ``value`` if it is a JSON object, else an empty dict."""
    return value if isinstance(value, dict) else {}


def first_non_empty(*values: Any) -> str:
    """Return the first string value that is non-empty after stripping."""
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""
