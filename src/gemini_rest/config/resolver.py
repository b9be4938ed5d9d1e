"""Configuration resolution with precedence handling.

Precedence: Programmatic > Environment (.env file included) > Defaults
"""

import logging
from pathlib import Path
from typing import Any

from .audit import SourceTracker
from .env_loader import EnvironmentConfigLoader
from .schema import GeminiSettings
from .types import ResolvedConfig

log = logging.getLogger(__name__)


class ConfigResolver:
    """Merges configuration sources and validates the result once."""

    def __init__(self) -> None:
        self.env_loader = EnvironmentConfigLoader()

    def resolve(
        self,
        programmatic: dict[str, Any] | None = None,
        *,
        use_env_file: str | Path | None = None,
    ) -> ResolvedConfig:
        """Resolve configuration from all sources with proper precedence.

        Raises:
            ValueError: If validation fails or the environment is malformed.
        """
        source_tracker = SourceTracker()
        merged_config: dict[str, Any] = {}

        # Defaults come from the schema field defaults, not the environment.
        for field, info in GeminiSettings.model_fields.items():
            merged_config[field] = info.default
            source_tracker.set_origin(field, "default")

        try:
            env_config = self.env_loader.load_env_config(env_file=use_env_file)
        except (ValueError, FileNotFoundError) as e:
            raise ValueError(f"Environment configuration error: {e}") from e
        for field, value in env_config.items():
            merged_config[field] = value
            source_tracker.set_origin(field, "env")

        if programmatic:
            for field, value in programmatic.items():
                if field in merged_config:  # Only override known fields
                    merged_config[field] = value
                    source_tracker.set_origin(field, "programmatic")
                else:
                    log.debug("Ignoring unknown configuration field '%s'", field)

        try:
            final_config = _validate_without_env(merged_config)
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}") from e

        return ResolvedConfig(**final_config, origin=source_tracker.get_source_map())


def _validate_without_env(values: dict[str, Any]) -> dict[str, Any]:
    """Validate merged values with the schema, bypassing its env reading.

    ``model_validate`` on a BaseSettings still consults the environment, so
    values are passed as init kwargs, which take priority over every other
    settings source.
    """
    return GeminiSettings(**values).to_dict()
