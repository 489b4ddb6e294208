"""Session providers for different AI coding tools."""

from codetok.providers.base import SessionProvider
from codetok.providers.claude import ClaudeCodeProvider
from codetok.providers.codex import CodexProvider
from codetok.providers.kimi import KimiProvider
from codetok.providers.parallel import default_workers, parse_parallel
from codetok.providers.registry import ProviderRegistry, filter_providers, registry

# Register all providers
registry.register(ClaudeCodeProvider())
registry.register(CodexProvider())
registry.register(KimiProvider())

__all__ = [
    "ClaudeCodeProvider",
    "CodexProvider",
    "KimiProvider",
    "ProviderRegistry",
    "SessionProvider",
    "default_workers",
    "filter_providers",
    "parse_parallel",
    "registry",
]
