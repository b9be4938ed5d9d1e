"""Thin REST client for the Gemini generative-AI API."""

import importlib.metadata
import logging

from gemini_rest.client import GeminiClient
from gemini_rest.config import FrozenConfig, ResolvedConfig, resolve_config
from gemini_rest.conversation import ChatReply, ChatSession, append
from gemini_rest.core.types import (
    ApiKeyCredential,
    BearerCredential,
    Conversation,
    Failure,
    FileDataPart,
    GenerationConfig,
    InlineDataPart,
    InlineOutput,
    RawOutput,
    Result,
    Role,
    Success,
    TextOutput,
    TextPart,
    Turn,
    UploadedFile,
    UploadSession,
    unwrap,
)
from gemini_rest.credentials import (
    CredentialProvider,
    EnvironmentCredentialProvider,
    ServiceAccountKey,
    StaticCredentialProvider,
    mint_bearer_token,
)
from gemini_rest.exceptions import (
    APIError,
    CredentialError,
    FileError,
    GeminiRestError,
    MissingKeyError,
    NetworkError,
    ResponseShapeError,
    UnsupportedContentError,
    ValidationError,
)
from gemini_rest.generation import GenerationClient
from gemini_rest.response import normalize_response, output_texts, parse_structured
from gemini_rest.telemetry import TelemetryContext, TelemetryReporter
from gemini_rest.uploads import ResumableUploadClient
from gemini_rest.validation import validate_params

# Version handling
try:
    __version__ = importlib.metadata.version("gemini-rest")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Library code never configures handlers for the application.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API
__all__ = [  # noqa: RUF022
    # Client
    "GeminiClient",
    "GenerationClient",
    "ResumableUploadClient",
    "ChatSession",
    "ChatReply",
    "append",
    # Configuration
    "resolve_config",
    "ResolvedConfig",
    "FrozenConfig",
    # Credentials
    "CredentialProvider",
    "EnvironmentCredentialProvider",
    "StaticCredentialProvider",
    "ServiceAccountKey",
    "mint_bearer_token",
    "ApiKeyCredential",
    "BearerCredential",
    # Telemetry (extension points)
    "TelemetryContext",
    "TelemetryReporter",
    # Core Types & Data Models
    "Conversation",
    "Turn",
    "Role",
    "TextPart",
    "InlineDataPart",
    "FileDataPart",
    "GenerationConfig",
    "UploadSession",
    "UploadedFile",
    "TextOutput",
    "InlineOutput",
    "RawOutput",
    "Result",
    "Success",
    "Failure",
    "unwrap",
    # Helpers
    "validate_params",
    "normalize_response",
    "output_texts",
    "parse_structured",
    # Exceptions
    "GeminiRestError",
    "ValidationError",
    "MissingKeyError",
    "FileError",
    "UnsupportedContentError",
    "NetworkError",
    "APIError",
    "ResponseShapeError",
    "CredentialError",
]
