"""Model-name canonicalization shared by providers and aggregation."""

from __future__ import annotations

import re

_SEPARATOR_RE = re.compile(r"[_ ]")
_DASH_RUN_RE = re.compile(r"-{2,}")

KNOWN_ALIASES: dict[str, str] = {
    "k2.5": "kimi-k2.5",
    "k2-5": "kimi-k2.5",
    "kimi-k2.5": "kimi-k2.5",
    "kimi-k2-5": "kimi-k2.5",
    "k2-thinking": "kimi-k2-thinking",
    "k2thinking": "kimi-k2-thinking",
    "kimi-k2-thinking": "kimi-k2-thinking",
    "kimi-k2thinking": "kimi-k2-thinking",
    "haiku": "claude-haiku",
    "claude-haiku": "claude-haiku",
}

# Checked in order after the exact aliases.
KNOWN_PREFIXES: tuple[tuple[str, str], ...] = (
    ("claude-3.5-haiku", "claude-3-5-haiku"),
    ("claude-3-5-haiku", "claude-3-5-haiku"),
    ("claude-3-haiku", "claude-3-haiku"),
)


def alias_key(name: str) -> str:
    """Build the lookup key used to match model aliases.

    Lower-cases, turns ``_`` and spaces into ``-`` and collapses dash runs.
    """
    key = _SEPARATOR_RE.sub("-", name.strip().lower())
    return _DASH_RUN_RE.sub("-", key)


def canonical_model_name(name: str | None) -> str:
    """Map known alias spellings of a model to one preferred spelling.

    Unrecognized names are returned stripped, with their case preserved.

    Examples:
        >>> canonical_model_name("K2_Thinking")
        'kimi-k2-thinking'
        >>> canonical_model_name("GPT-5-Codex")
        'GPT-5-Codex'
        >>> canonical_model_name("  ")
        ''
    """
    if not name:
        return ""
    name = name.strip()
    if not name:
        return ""

    key = alias_key(name)
    if key in KNOWN_ALIASES:
        return KNOWN_ALIASES[key]
    for prefix, canonical in KNOWN_PREFIXES:
        if key.startswith(prefix):
            return canonical
    return name
