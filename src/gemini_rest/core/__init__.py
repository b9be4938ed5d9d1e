"""Core immutable types for the Gemini REST client."""

from .types import (
    ApiKeyCredential,
    BearerCredential,
    ContentPart,
    Conversation,
    Credential,
    Failure,
    FileDataPart,
    GenerationConfig,
    InlineDataPart,
    InlineOutput,
    OutputUnit,
    RawOutput,
    Result,
    Role,
    Success,
    TextOutput,
    TextPart,
    Turn,
    UploadedFile,
    UploadSession,
    part_from_api,
    unwrap,
)

__all__ = [  # noqa: RUF022
    "Result",
    "Success",
    "Failure",
    "unwrap",
    "ContentPart",
    "TextPart",
    "InlineDataPart",
    "FileDataPart",
    "part_from_api",
    "Role",
    "Turn",
    "Conversation",
    "GenerationConfig",
    "UploadSession",
    "UploadedFile",
    "OutputUnit",
    "TextOutput",
    "InlineOutput",
    "RawOutput",
    "Credential",
    "ApiKeyCredential",
    "BearerCredential",
]
