"""Configuration schema and validation using Pydantic.

This module defines the settings schema that validates and coerces configuration
values from various sources (environment, .env files, programmatic) into the
correct types with proper defaults.
"""

from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gemini_rest.constants import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    DEFAULT_REGION,
    DEFAULT_TIMEOUT,
    UPLOAD_PATH,
)


class GeminiSettings(BaseSettings):
    """Pydantic settings schema for the client configuration.

    Integrates with environment variables using the GEMINI_ prefix, so
    ``GEMINI_API_KEY`` populates ``api_key``.
    """

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=None,  # Only used when explicitly requested
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown env vars for forward compatibility
    )

    api_key: str | None = Field(
        default=None,
        description="Google Gemini API key",
    )

    model: str = Field(
        default=DEFAULT_MODEL,
        description="Default model identifier",
        min_length=1,
    )

    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Root URL of the generative language API",
        min_length=1,
    )

    upload_url: str | None = Field(
        default=None,
        description="Resumable upload endpoint; derived from base_url when unset",
    )

    timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        description="Per-request timeout in seconds",
        gt=0,
    )

    api_key_in_query: bool = Field(
        default=False,
        description="Send the API key as the legacy 'key' query parameter",
    )

    region: str = Field(
        default=DEFAULT_REGION,
        description="Cloud region for enterprise (Vertex) endpoints",
        min_length=1,
    )

    service_account_key: str | None = Field(
        default=None,
        description="Path to a service-account JSON key for bearer tokens",
    )

    @field_validator("base_url", "upload_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Normalize URLs so path joins never produce double slashes."""
        return v.rstrip("/") if isinstance(v, str) else v

    @field_validator("api_key", mode="after")
    @classmethod
    def blank_key_is_missing(cls, v: str | None) -> str | None:
        """Treat an empty or whitespace-only key as unset."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @model_validator(mode="after")
    def derive_upload_url(self) -> "GeminiSettings":
        """Fill upload_url from base_url when it was not given."""
        if not self.upload_url:
            self.upload_url = f"{self.base_url}{UPLOAD_PATH}"
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary suitable for SourceMap annotation."""
        return {
            "api_key": self.api_key,
            "model": self.model,
            "base_url": self.base_url,
            "upload_url": self.upload_url,
            "timeout": self.timeout,
            "api_key_in_query": self.api_key_in_query,
            "region": self.region,
            "service_account_key": self.service_account_key,
        }
