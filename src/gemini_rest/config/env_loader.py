"""Environment variable configuration loading.

Loads GEMINI_* variables, optionally after reading a .env file, and coerces
them through the settings schema.
"""

import os
from pathlib import Path
from typing import Any

from .schema import GeminiSettings

ENV_VARS = {
    "GEMINI_API_KEY": "api_key",
    "GEMINI_MODEL": "model",
    "GEMINI_BASE_URL": "base_url",
    "GEMINI_UPLOAD_URL": "upload_url",
    "GEMINI_TIMEOUT": "timeout",
    "GEMINI_API_KEY_IN_QUERY": "api_key_in_query",
    "GEMINI_REGION": "region",
    "GEMINI_SERVICE_ACCOUNT_KEY": "service_account_key",
}


class EnvironmentConfigLoader:
    """Loads configuration from GEMINI_* environment variables."""

    def load_env_config(self, env_file: str | Path | None = None) -> dict[str, Any]:
        """Load configuration from environment variables.

        Args:
            env_file: Optional .env file loaded into the environment first.
                Existing environment variables are never overwritten.

        Returns:
            Only the fields actually set in the environment, coerced to their
            schema types.

        Raises:
            ValueError: If environment variables contain invalid values.
        """
        if env_file:
            self._load_env_file(env_file)

        env_values = {
            field_name: os.environ[env_var]
            for env_var, field_name in ENV_VARS.items()
            if env_var in os.environ
        }
        if not env_values:
            return {}

        try:
            settings = GeminiSettings(**env_values)
        except Exception as e:
            env_var_list = [
                "GEMINI_API_KEY=<redacted>"
                if env_var == "GEMINI_API_KEY"
                else f"{env_var}={os.environ[env_var]}"
                for env_var, field_name in ENV_VARS.items()
                if field_name in env_values
            ]
            raise ValueError(
                f"Invalid environment variable values: {', '.join(env_var_list)}. "
                f"Error: {e}"
            ) from e

        return {field_name: getattr(settings, field_name) for field_name in env_values}

    def _load_env_file(self, env_file: str | Path) -> None:
        """Load KEY=VALUE lines from a .env file into os.environ.

        Raises:
            FileNotFoundError: If the .env file doesn't exist.
            ValueError: If the .env file has invalid format.
        """
        env_path = Path(env_file)
        if not env_path.exists():
            raise FileNotFoundError(f"Environment file not found: {env_path}")

        try:
            with env_path.open(encoding="utf-8") as f:
                for line_num, line in enumerate(f, 1):
                    line = line.strip()
                    if not line or line.startswith("#"):
                        continue
                    if "=" not in line:
                        raise ValueError(
                            f"Invalid format at line {line_num}: {line}. "
                            "Expected KEY=VALUE format."
                        )

                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip()
                    if (value.startswith('"') and value.endswith('"')) or (
                        value.startswith("'") and value.endswith("'")
                    ):
                        value = value[1:-1]

                    if key not in os.environ:
                        os.environ[key] = value
        except OSError as e:
            raise ValueError(f"Failed to read environment file {env_path}: {e}") from e

    def get_env_summary(self) -> dict[str, str]:
        """Current GEMINI_* variables with the API key redacted."""
        return {
            env_var: "<redacted>" if env_var == "GEMINI_API_KEY" else os.environ[env_var]
            for env_var in ENV_VARS
            if env_var in os.environ
        }
