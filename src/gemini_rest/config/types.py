"""Core configuration data types.

Configuration is resolved once, then frozen and handed to clients.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal, NamedTuple

ConfigOrigin = Literal["programmatic", "env", "default"]
SourceMap = Mapping[str, ConfigOrigin]

_SENSITIVE_FIELDS = frozenset({"api_key"})

FIELD_ORDER = (
    "api_key",
    "model",
    "base_url",
    "upload_url",
    "timeout",
    "api_key_in_query",
    "region",
    "service_account_key",
)


class ResolvedConfig(NamedTuple):
    """Configuration after resolution from all sources, before freezing.

    Carries the origin of each field for auditing.
    """

    api_key: str | None
    model: str
    base_url: str
    upload_url: str
    timeout: float
    api_key_in_query: bool
    region: str
    service_account_key: str | None

    origin: SourceMap

    def __str__(self) -> str:
        """String representation with redacted API key for safe logging."""
        api_key_display = "[REDACTED]" if self.api_key else None
        return (
            f"ResolvedConfig(api_key={api_key_display!r}, model={self.model!r}, "
            f"base_url={self.base_url!r}, timeout={self.timeout!r}, "
            f"api_key_in_query={self.api_key_in_query!r}, region={self.region!r}, "
            f"origin={dict(self.origin)!r})"
        )

    def __repr__(self) -> str:
        return self.__str__()

    def to_frozen(self) -> "FrozenConfig":
        """Convert to the immutable configuration consumed by clients."""
        return FrozenConfig(
            api_key=self.api_key,
            model=self.model,
            base_url=self.base_url,
            upload_url=self.upload_url,
            timeout=self.timeout,
            api_key_in_query=self.api_key_in_query,
            region=self.region,
            service_account_key=self.service_account_key,
        )

    def with_overrides(self, **overrides: object) -> "ResolvedConfig":
        """Create a new ResolvedConfig with programmatic overrides applied.

        Unknown fields are ignored.
        """
        new_values = self._asdict()
        new_origin = dict(self.origin)

        for field, value in overrides.items():
            if field in FIELD_ORDER:
                new_values[field] = value
                new_origin[field] = "programmatic"

        new_values["origin"] = new_origin
        return ResolvedConfig(**new_values)

    def audit(self) -> str:
        """Redacted report of where each field value came from."""
        lines = []
        for field in FIELD_ORDER:
            if field not in self.origin:
                continue
            origin = self.origin[field]
            value = getattr(self, field)
            if field in _SENSITIVE_FIELDS:
                value_display = f"{origin}:None" if value is None else f"{origin}:[REDACTED]"
            elif origin == "env":
                value_display = f"env:GEMINI_{field.upper()}={value}"
            else:
                value_display = f"{origin}:{value}"
            lines.append(f"{field}: {value_display}")
        return "\n".join(lines)


@dataclass(frozen=True)
class FrozenConfig:
    """Immutable configuration attached to clients."""

    api_key: str | None
    model: str
    base_url: str
    upload_url: str
    timeout: float
    api_key_in_query: bool
    region: str
    service_account_key: str | None

    def __str__(self) -> str:
        """String representation with redacted API key for safe logging."""
        api_key_display = "[REDACTED]" if self.api_key else None
        return (
            f"FrozenConfig(api_key={api_key_display!r}, model={self.model!r}, "
            f"base_url={self.base_url!r}, timeout={self.timeout!r}, "
            f"api_key_in_query={self.api_key_in_query!r}, region={self.region!r})"
        )

    def __repr__(self) -> str:
        return self.__str__()
