"""Resumable upload protocol for media too large to inline.

Start -> Uploading -> Finalized. The start call returns an upload URL in a
response header; the bytes are then sent to that URL with the
``upload, finalize`` command in a single request. Each phase is attempted
once. A failed phase ends the upload and later phases are never sent.
"""

from __future__ import annotations

from enum import Enum
import logging
from pathlib import Path
from typing import Any

import httpx

from .config import FrozenConfig
from .constants import (
    DEFAULT_UPLOAD_DISPLAY_NAME,
    HEADER_UPLOAD_COMMAND,
    HEADER_UPLOAD_LENGTH,
    HEADER_UPLOAD_OFFSET,
    HEADER_UPLOAD_PROTOCOL,
    HEADER_UPLOAD_TYPE,
    HEADER_UPLOAD_URL,
    MAX_FILES_API_SIZE,
)
from .core.types import (
    ApiKeyCredential,
    Failure,
    Result,
    Success,
    UploadedFile,
    UploadSession,
)
from .exceptions import (
    FileError,
    GeminiRestError,
    ResponseShapeError,
    ValidationError,
)
from .media import guess_mime_type
from .request_builder import serialize_body
from .telemetry import TelemetryContext, TelemetryContextProtocol
from .transport import (
    JSON_HEADERS,
    auth_headers_and_params,
    create_http_client,
    decode_json,
    perform,
    require_ok,
)
from .validation import validate_file

log = logging.getLogger(__name__)


class UploadPhase(str, Enum):
    """Upload protocol phases."""

    START = "start"
    UPLOADING = "uploading"
    FINALIZED = "finalized"

    @classmethod
    def get_telemetry_scope(cls, phase: UploadPhase) -> str:
        return f"upload.{phase.value}"


class ResumableUploadClient:
    """Runs the two-request upload against the Files endpoint.

    Holds no state beyond the sessions it has already consumed, which are
    remembered so a session can never be finalized twice.
    """

    def __init__(
        self,
        config: FrozenConfig,
        credential: ApiKeyCredential,
        http: httpx.Client | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self.config = config
        self.credential = credential
        self._owns_http = http is None
        self.http = http or create_http_client(config.timeout)
        self._telemetry: TelemetryContextProtocol = telemetry or TelemetryContext()
        self._consumed: set[str] = set()

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    # --- Phase 1 ---

    def start(
        self, total_bytes: int, mime_type: str, display_name: str = DEFAULT_UPLOAD_DISPLAY_NAME
    ) -> Result[UploadSession, GeminiRestError]:
        """Open an upload session and return its upload URL."""
        if isinstance(total_bytes, bool) or not isinstance(total_bytes, int) or total_bytes <= 0:
            return Failure(ValidationError("must be a positive int", "total_bytes"))
        if total_bytes > MAX_FILES_API_SIZE:
            return Failure(
                FileError(
                    f"{total_bytes} bytes exceeds the {MAX_FILES_API_SIZE} byte upload limit",
                    "total_bytes",
                )
            )
        if not mime_type:
            return Failure(ValidationError("must be a non-empty str", "mime_type"))

        auth_headers, params = auth_headers_and_params(self.credential)
        headers = {
            **auth_headers,
            HEADER_UPLOAD_PROTOCOL: "resumable",
            HEADER_UPLOAD_COMMAND: "start",
            HEADER_UPLOAD_LENGTH: str(total_bytes),
            HEADER_UPLOAD_TYPE: mime_type,
            **JSON_HEADERS,
        }
        body = serialize_body({"file": {"display_name": display_name}})

        log.debug("Starting resumable upload (%d bytes, %s)", total_bytes, mime_type)
        with self._telemetry(UploadPhase.get_telemetry_scope(UploadPhase.START)):
            sent = perform(
                self.http,
                "POST",
                self.config.upload_url,
                headers=headers,
                params=params,
                content=body,
                timeout=self.config.timeout,
            )
        if isinstance(sent, Failure):
            return sent
        checked = require_ok(sent.value, "upload start request")
        if isinstance(checked, Failure):
            return checked

        upload_url = checked.value.headers.get(HEADER_UPLOAD_URL)
        if not upload_url:
            return Failure(
                ResponseShapeError(f"upload start response lacks {HEADER_UPLOAD_URL} header")
            )
        return Success(
            UploadSession(upload_url=upload_url, total_bytes=total_bytes, mime_type=mime_type)
        )

    # --- Phase 2 (upload + finalize in one request) ---

    def upload_and_finalize(
        self, session: UploadSession, data: bytes
    ) -> Result[UploadedFile, GeminiRestError]:
        """Send all bytes at offset 0 and finalize; consumes ``session``."""
        if session.upload_url in self._consumed:
            return Failure(ValidationError("upload session was already used", "session"))
        if len(data) != session.total_bytes:
            return Failure(
                ValidationError(
                    f"expected {session.total_bytes} bytes, got {len(data)}", "data"
                )
            )
        self._consumed.add(session.upload_url)

        headers = {
            "Content-Length": str(session.total_bytes),
            HEADER_UPLOAD_OFFSET: "0",
            HEADER_UPLOAD_COMMAND: "upload, finalize",
        }
        log.debug("Uploading %d bytes", session.total_bytes)
        with self._telemetry(UploadPhase.get_telemetry_scope(UploadPhase.UPLOADING)):
            sent = perform(
                self.http,
                "POST",
                session.upload_url,
                headers=headers,
                content=data,
                timeout=self.config.timeout,
            )
        if isinstance(sent, Failure):
            return sent
        checked = require_ok(sent.value, "upload request")
        if isinstance(checked, Failure):
            return checked
        decoded = decode_json(checked.value, "upload finalize")
        if isinstance(decoded, Failure):
            return decoded

        uploaded = _parse_file_handle(decoded.value, session.mime_type)
        if isinstance(uploaded, Success):
            self._telemetry.count(
                UploadPhase.get_telemetry_scope(UploadPhase.FINALIZED),
                session.total_bytes,
            )
            log.debug("Upload finalized as %s", uploaded.value.uri)
        return uploaded

    # --- Convenience ---

    def upload_bytes(
        self,
        data: bytes,
        mime_type: str,
        display_name: str = DEFAULT_UPLOAD_DISPLAY_NAME,
    ) -> Result[UploadedFile, GeminiRestError]:
        """Run both phases for an in-memory payload."""
        if not data:
            return Failure(FileError("upload payload is empty", "data"))
        session = self.start(len(data), mime_type, display_name)
        if isinstance(session, Failure):
            return session
        return self.upload_and_finalize(session.value, data)

    def upload_file(
        self,
        path: str | Path,
        mime_type: str | None = None,
        display_name: str | None = None,
    ) -> Result[UploadedFile, GeminiRestError]:
        """Validate, then upload a local file.

        Missing or empty files fail before the start phase is attempted.
        """
        checked = validate_file(path)
        if isinstance(checked, Failure):
            return checked
        file_path = checked.value

        resolved_mime = mime_type or guess_mime_type(file_path)
        if resolved_mime is None:
            return Failure(
                FileError(f"cannot determine MIME type for {file_path.name}", "mime_type")
            )
        try:
            data = file_path.read_bytes()
        except OSError as e:
            return Failure(FileError(f"failed to read {file_path}: {e}", "path"))
        return self.upload_bytes(data, resolved_mime, display_name or file_path.name)


def _parse_file_handle(payload: Any, fallback_mime: str) -> Result[UploadedFile, ResponseShapeError]:
    file_info = payload.get("file") if isinstance(payload, dict) else None
    if not isinstance(file_info, dict) or not isinstance(file_info.get("uri"), str):
        return Failure(ResponseShapeError("upload response lacks file.uri"))
    size = file_info.get("sizeBytes")
    return Success(
        UploadedFile(
            uri=file_info["uri"],
            mime_type=file_info.get("mimeType") or fallback_mime,
            name=file_info.get("name"),
            display_name=file_info.get("displayName"),
            size_bytes=int(size) if isinstance(size, int | str) and str(size).isdigit() else None,
            state=file_info.get("state"),
            expiration_time=file_info.get("expirationTime"),
        )
    )
