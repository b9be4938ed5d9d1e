"""Configuration management for the Gemini REST client.

Resolve once, freeze, then hand the frozen value to clients:

    config = resolve_config(overrides={"model": "gemini-2.0-flash"}).to_frozen()
"""

from pathlib import Path
from typing import Any

from .audit import SourceTracker, generate_telemetry_summary
from .env_loader import EnvironmentConfigLoader
from .resolver import ConfigResolver
from .schema import GeminiSettings
from .types import ConfigOrigin, FrozenConfig, ResolvedConfig, SourceMap


def resolve_config(
    overrides: dict[str, Any] | None = None,
    *,
    env_file: str | Path | None = None,
) -> ResolvedConfig:
    """Resolve configuration from defaults, environment and overrides.

    Args:
        overrides: Programmatic values; highest precedence.
        env_file: Optional .env file loaded before reading GEMINI_* variables.

    Raises:
        ValueError: If the merged configuration is invalid.
    """
    return ConfigResolver().resolve(overrides, use_env_file=env_file)


def print_config_audit(overrides: dict[str, Any] | None = None) -> None:
    """Print where each effective configuration value came from (redacted)."""
    print(resolve_config(overrides).audit())  # noqa: T201


__all__ = [  # noqa: RUF022
    "resolve_config",
    "print_config_audit",
    "ResolvedConfig",
    "FrozenConfig",
    "SourceMap",
    "ConfigOrigin",
    "GeminiSettings",
    "ConfigResolver",
    "EnvironmentConfigLoader",
    "SourceTracker",
    "generate_telemetry_summary",
]
