"""Configuration management for codetok.

Configuration is loaded from ~/.codetok/config.toml (or the file named by
the CODETOK_CONFIG environment variable) with sensible defaults.

Example config file:
    [sources.claude]
    enabled = true
    path = "~/.claude/projects"

    [sources.kimi]
    enabled = false

    [collect]
    workers = 4

    [daily]
    days = 14
    unit = "k"
    group_by = "model"
    top = 10
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

# Use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

CONFIG_ENV_VAR = "CODETOK_CONFIG"


class SourceConfig(BaseModel):
    """Configuration for a session provider."""

    enabled: bool = True
    path: str = ""


class CollectConfig(BaseModel):
    """Configuration for session collection."""

    # 0 defers to CODETOK_WORKERS / CPU count.
    workers: int = Field(default=0, ge=0)


class DailyConfig(BaseModel):
    """Defaults for the daily report."""

    days: int = Field(default=7, ge=1)
    unit: Literal["raw", "k", "m", "g"] = "m"
    group_by: Literal["cli", "model"] = "cli"
    top: int = Field(default=5, ge=1)


class Config(BaseModel):
    """Main configuration model for codetok."""

    sources: dict[str, SourceConfig] = Field(default_factory=dict)
    collect: CollectConfig = Field(default_factory=CollectConfig)
    daily: DailyConfig = Field(default_factory=DailyConfig)

    def get_source_path(self, source_name: str) -> Path | None:
        """Get the expanded path for a source.

        Args:
            source_name: The name of the source (e.g., 'claude', 'kimi').

        Returns:
            Expanded Path object, or None if source not found or has no path.
        """
        if source_name not in self.sources:
            return None

        path_str = self.sources[source_name].path
        if not path_str:
            return None

        return Path(path_str).expanduser()

    def is_source_enabled(self, source_name: str) -> bool:
        """Check if a source is enabled.

        Sources without a config entry are enabled.
        """
        if source_name not in self.sources:
            return True
        return self.sources[source_name].enabled


def get_default_config() -> Config:
    """Get the default configuration with all sources configured.

    Returns:
        Config object with default values for all sources.
    """
    default_sources = {
        "claude": SourceConfig(enabled=True, path="~/.claude/projects"),
        "codex": SourceConfig(enabled=True, path="~/.codex/sessions"),
        "kimi": SourceConfig(enabled=True, path="~/.kimi/sessions"),
    }

    return Config(
        sources=default_sources,
        collect=CollectConfig(),
        daily=DailyConfig(),
    )


def get_config_path() -> Path:
    """Resolve the config file location."""
    override = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".codetok" / "config.toml"


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from a TOML file.

    If the file doesn't exist or cannot be parsed, returns the default
    configuration. Partial configurations are merged with defaults.

    Args:
        config_path: Path to the config file. Defaults to get_config_path().

    Returns:
        Config object with loaded or default values.
    """
    if config_path is None:
        config_path = get_config_path()

    # Start with defaults
    default_config = get_default_config()

    if not config_path.exists():
        return default_config

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        # Return defaults if file can't be read or parsed
        return default_config

    try:
        return _merge_config(default_config, data)
    except ValidationError:
        return default_config


def _merge_config(default: Config, data: dict[str, Any]) -> Config:
    """Merge loaded config data with defaults.

    Args:
        default: Default configuration.
        data: Loaded TOML data.

    Returns:
        Merged Config object.

    Raises:
        ValidationError: If a section holds invalid values.
    """
    # Start with default sources
    sources = dict(default.sources)

    # Override with loaded sources
    for source_name, source_data in _section(data, "sources").items():
        if not isinstance(source_data, dict):
            continue
        if source_name in sources:
            existing = sources[source_name]
            sources[source_name] = SourceConfig(
                enabled=source_data.get("enabled", existing.enabled),
                path=source_data.get("path", existing.path),
            )
        else:
            sources[source_name] = SourceConfig(**source_data)

    collect = CollectConfig.model_validate({**default.collect.model_dump(), **_section(data, "collect")})
    daily = DailyConfig.model_validate({**default.daily.model_dump(), **_section(data, "daily")})

    return Config(sources=sources, collect=collect, daily=daily)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name)
    return section if isinstance(section, dict) else {}


# Global config cache
_config_cache: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Loads from the config file on first call, then returns cached instance.

    Returns:
        The global Config instance.
    """
    global _config_cache
    if _config_cache is None:
        _config_cache = load_config()
    return _config_cache


def _clear_config_cache() -> None:
    """Clear the config cache. Used for testing."""
    global _config_cache
    _config_cache = None
