"""Exception hierarchy for the Gemini REST client.

These exceptions are the payloads of ``Failure`` results. Pipeline code never
raises them for control flow; they are raised only by ``unwrap()``, by
``conversation.append`` and by constructors guarding programming errors.
"""

_BODY_PREVIEW_CHARS = 500


class GeminiRestError(Exception):
    """Base exception for Gemini REST client errors"""  # noqa: D415


class ValidationError(GeminiRestError):
    """Raised when caller input fails validation before any request is sent"""  # noqa: D415

    def __init__(self, reason: str, field: str | None = None) -> None:
        self.reason = reason
        self.field = field
        super().__init__(f"{field}: {reason}" if field else reason)


class MissingKeyError(ValidationError):
    """Raised when required API key or credential is missing"""  # noqa: D415


class FileError(ValidationError):
    """Raised when a local file is missing, empty or unreadable"""  # noqa: D415


class UnsupportedContentError(ValidationError):
    """Raised when content type or model is not supported by an operation"""  # noqa: D415


class NetworkError(GeminiRestError):
    """Raised when the transport fails (connection errors, timeouts)"""  # noqa: D415


class APIError(GeminiRestError):
    """Raised when the remote API answers with a non-200 status."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.body:
            preview = self.body[:_BODY_PREVIEW_CHARS]
            if len(self.body) > _BODY_PREVIEW_CHARS:
                preview += "..."
            parts.append(f"body={preview}")
        return " | ".join(parts)


class ResponseShapeError(GeminiRestError):
    """Raised when a 200 response lacks the expected candidates or payload"""  # noqa: D415


class CredentialError(GeminiRestError):
    """Raised when a bearer token cannot be minted or has expired"""  # noqa: D415
