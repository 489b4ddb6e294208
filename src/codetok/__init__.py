"""
codetok - Token usage tracker

Collect token usage from local AI coding CLI session logs (Claude Code,
Codex CLI, Kimi CLI) and report it per day, per CLI and per model.
"""

__version__ = "0.1.0"

from codetok.models import DailyStats, SessionInfo, TokenUsage
from codetok.providers import SessionProvider, registry

__all__ = [
    "__version__",
    # Models
    "TokenUsage",
    "SessionInfo",
    "DailyStats",
    # Providers
    "SessionProvider",
    "registry",
]
