"""Core data types shared by the request and response layers.

The structures here are immutable. Each wire-facing type knows how to render
itself into the camelCase JSON shape the remote API expects, so builders only
assemble and never inspect fields dynamically.
"""

from __future__ import annotations

import base64
import dataclasses
from enum import Enum
import json
import time
import typing

# --- Minimal guard helpers (clarity > boilerplate) ---


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


# --- Result type ---
# Failures are ordinary values. Every network-facing step returns one of these
# so a failed step short-circuits the rest of the pipeline without try/except.

TSuccess = typing.TypeVar("TSuccess")
TFailure = typing.TypeVar("TFailure", bound=Exception)


@dataclasses.dataclass(frozen=True, slots=True)
class Success[TSuccess]:
    """A successful result."""

    value: TSuccess


@dataclasses.dataclass(frozen=True, slots=True)
class Failure[TFailure]:
    """A failed result, containing the error."""

    error: TFailure


Result = Success[TSuccess] | Failure[TFailure]


def unwrap[T](result: Success[T] | Failure[Exception]) -> T:
    """Return the success value or raise the carried error."""
    if isinstance(result, Failure):
        raise result.error
    return result.value


# --- Content parts ---


@dataclasses.dataclass(frozen=True, slots=True)
class TextPart:
    """A plain text part."""

    text: str

    def __post_init__(self) -> None:
        _require(
            condition=isinstance(self.text, str),
            message="must be str",
            field_name="text",
            exc=TypeError,
        )

    def to_api(self) -> dict[str, typing.Any]:
        return {"text": self.text}


@dataclasses.dataclass(frozen=True, slots=True)
class InlineDataPart:
    """Media embedded in the request as base64."""

    mime_type: str
    data: str

    def __post_init__(self) -> None:
        _require(
            condition=isinstance(self.mime_type, str) and self.mime_type.strip() != "",
            message="must be a non-empty str",
            field_name="mime_type",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.data, str),
            message="must be a base64 str",
            field_name="data",
            exc=TypeError,
        )

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> InlineDataPart:
        return cls(mime_type=mime_type, data=base64.b64encode(data).decode("ascii"))

    def to_api(self) -> dict[str, typing.Any]:
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}


@dataclasses.dataclass(frozen=True, slots=True)
class FileDataPart:
    """A reference to media stored remotely (uploaded file, gs:// or URL)."""

    mime_type: str
    file_uri: str

    def __post_init__(self) -> None:
        _require(
            condition=isinstance(self.mime_type, str) and self.mime_type.strip() != "",
            message="must be a non-empty str",
            field_name="mime_type",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.file_uri, str) and self.file_uri.strip() != "",
            message="must be a non-empty str",
            field_name="file_uri",
            exc=TypeError,
        )

    def to_api(self) -> dict[str, typing.Any]:
        return {"fileData": {"mimeType": self.mime_type, "fileUri": self.file_uri}}


ContentPart = TextPart | InlineDataPart | FileDataPart


def part_from_api(raw: typing.Mapping[str, typing.Any]) -> ContentPart | None:
    """Rebuild a ContentPart from its wire shape, or None for unknown shapes.

    Accepts both camelCase and snake_case keys since the API echoes either.
    """
    if isinstance(raw.get("text"), str):
        return TextPart(raw["text"])
    inline = raw.get("inlineData") or raw.get("inline_data")
    if isinstance(inline, dict):
        mime = inline.get("mimeType") or inline.get("mime_type")
        data = inline.get("data")
        if isinstance(mime, str) and mime and isinstance(data, str):
            return InlineDataPart(mime_type=mime, data=data)
    file_data = raw.get("fileData") or raw.get("file_data")
    if isinstance(file_data, dict):
        mime = file_data.get("mimeType") or file_data.get("mime_type")
        uri = file_data.get("fileUri") or file_data.get("file_uri")
        if isinstance(mime, str) and mime and isinstance(uri, str) and uri:
            return FileDataPart(mime_type=mime, file_uri=uri)
    return None


# --- Conversation model ---


class Role(str, Enum):
    """Speaker of a conversation turn."""

    USER = "user"
    MODEL = "model"


@dataclasses.dataclass(frozen=True, slots=True)
class Turn:
    """A single turn in a conversation history."""

    role: Role
    parts: tuple[ContentPart, ...]

    def __post_init__(self) -> None:
        _require(
            condition=isinstance(self.role, Role),
            message="must be a Role",
            field_name="role",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.parts, tuple)
            and all(isinstance(p, TextPart | InlineDataPart | FileDataPart) for p in self.parts),
            message="must be a tuple of content parts",
            field_name="parts",
            exc=TypeError,
        )

    def to_api(self) -> dict[str, typing.Any]:
        return {"role": self.role.value, "parts": [p.to_api() for p in self.parts]}


@dataclasses.dataclass(frozen=True, slots=True)
class Conversation:
    """Ordered dialogue history; insertion order is the order sent to the model."""

    turns: tuple[Turn, ...] = ()

    def __len__(self) -> int:
        return len(self.turns)

    def to_contents(self) -> list[dict[str, typing.Any]]:
        return [turn.to_api() for turn in self.turns]


# --- Generation configuration ---


@dataclasses.dataclass(frozen=True, slots=True)
class GenerationConfig:
    """Sampling and output settings sent as ``generationConfig``.

    Bounds are checked by ``validation.validate_params`` rather than here so a
    bad value is reported as a Failure instead of an exception.
    Whole-number floats for ``seed`` and ``max_output_tokens`` go on the wire
    as integers.
    """

    temperature: float = 1
    max_output_tokens: int = 8192
    top_k: int = 40
    top_p: float = 0.95
    seed: int = 1234
    response_mime_type: str | None = None
    response_schema: typing.Mapping[str, typing.Any] | None = None
    response_modalities: tuple[str, ...] | None = None

    def to_api(self) -> dict[str, typing.Any]:
        out: dict[str, typing.Any] = {
            "temperature": self.temperature,
            "maxOutputTokens": int(self.max_output_tokens),
            "topP": self.top_p,
            "topK": self.top_k,
            "seed": int(self.seed),
        }
        if self.response_mime_type is not None:
            out["responseMimeType"] = self.response_mime_type
        if self.response_schema is not None:
            out["responseSchema"] = dict(self.response_schema)
        if self.response_modalities is not None:
            out["responseModalities"] = list(self.response_modalities)
        return out


# --- Uploads ---


@dataclasses.dataclass(frozen=True, slots=True)
class UploadSession:
    """An upload URL handed out by the start phase; valid for one finalize call."""

    upload_url: str
    total_bytes: int
    mime_type: str


@dataclasses.dataclass(frozen=True, slots=True)
class UploadedFile:
    """The file handle returned by the finalize phase."""

    uri: str
    mime_type: str
    name: str | None = None
    display_name: str | None = None
    size_bytes: int | None = None
    state: str | None = None
    expiration_time: str | None = None

    def as_part(self) -> FileDataPart:
        return FileDataPart(mime_type=self.mime_type, file_uri=self.uri)


# --- Normalized outputs ---


@dataclasses.dataclass(frozen=True, slots=True)
class TextOutput:
    """A text unit from a candidate."""

    text: str


@dataclasses.dataclass(frozen=True, slots=True)
class InlineOutput:
    """Binary output (generated images) carried inline as base64."""

    mime_type: str
    data: str

    @property
    def text(self) -> str:
        return self.data

    def decode(self) -> bytes:
        return base64.b64decode(self.data)


@dataclasses.dataclass(frozen=True, slots=True)
class RawOutput:
    """A part whose shape is not recognized; kept verbatim."""

    part: typing.Mapping[str, typing.Any]

    @property
    def text(self) -> str:
        return json.dumps(dict(self.part), separators=(",", ":"), ensure_ascii=False)


OutputUnit = TextOutput | InlineOutput | RawOutput


# --- Credentials ---


@dataclasses.dataclass(frozen=True, slots=True)
class ApiKeyCredential:
    """Consumer API key; sent as ``x-goog-api-key`` or the legacy ``key`` query."""

    api_key: str
    placement: typing.Literal["header", "query"] = "header"

    def __post_init__(self) -> None:
        _require(
            condition=self.placement in ("header", "query"),
            message=f"must be 'header' or 'query', got {self.placement!r}",
            field_name="placement",
        )

    def __repr__(self) -> str:
        return f"ApiKeyCredential(api_key='[REDACTED]', placement={self.placement!r})"


@dataclasses.dataclass(frozen=True, slots=True)
class BearerCredential:
    """Short-lived OAuth2 access token bound to one enterprise endpoint.

    There is no automatic refresh; mint a new one before ``expires_at``.
    """

    token: str
    endpoint_url: str
    expires_at: float

    def is_expired(self, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return current >= self.expires_at

    def __repr__(self) -> str:
        return (
            f"BearerCredential(token='[REDACTED]', endpoint_url={self.endpoint_url!r}, "
            f"expires_at={self.expires_at!r})"
        )


Credential = ApiKeyCredential | BearerCredential
