"""Provider registry for managing session providers."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from codetok.providers.base import SessionProvider


class ProviderRegistry:
    """Append-only registry of session providers.

    Registration and reads share one lock; readers always get a copy so
    concurrent registration never exposes the internal list.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers: list[SessionProvider] = []

    def register(self, provider: SessionProvider) -> None:
        """Register a provider with the registry."""
        with self._lock:
            self._providers.append(provider)

    def list_providers(self) -> list[SessionProvider]:
        """Return a snapshot of all registered providers, in registration order."""
        with self._lock:
            return list(self._providers)

    def get_provider(self, name: str) -> SessionProvider:
        """Get a provider by name.

        Args:
            name: The provider identifier.

        Returns:
            The first registered provider with that name.

        Raises:
            KeyError: If no provider with the given name is registered.
        """
        providers = self.list_providers()
        for provider in providers:
            if provider.name == name:
                return provider
        available = ", ".join(p.name for p in providers) or "none"
        raise KeyError(f"Provider '{name}' not found. Available providers: {available}")


def filter_providers(
    providers: list[SessionProvider], name: str | None
) -> list[SessionProvider]:
    """Return providers matching ``name``; an empty name matches all."""
    if not name:
        return list(providers)
    return [p for p in providers if p.name == name]


# Global registry instance
registry = ProviderRegistry()
