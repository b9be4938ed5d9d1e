"""
MIME type handling and local media helpers
"""  # noqa: D200, D212, D415

from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
from pathlib import Path

from .constants import FILES_API_THRESHOLD
from .core.types import Failure, InlineDataPart, InlineOutput, Result, Success
from .exceptions import FileError, ResponseShapeError, UnsupportedContentError
from .validation import validate_file

log = logging.getLogger(__name__)

mimetypes.init()

AUDIO_MIME_TYPES = {
    ".mp3": "audio/mp3",
    ".wav": "audio/wav",
    ".aiff": "audio/aiff",
    ".aac": "audio/aac",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
}

IMAGE_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
}

# Document kinds accepted by document analysis; the first MIME type is sent.
DOCUMENT_MIME_TYPES: dict[str, tuple[str, ...]] = {
    "PDF": ("application/pdf",),
    "JavaScript": ("application/x-javascript", "text/javascript"),
    "Python": ("application/x-python", "text/x-python"),
    "TXT": ("text/plain",),
    "HTML": ("text/html",),
    "CSS": ("text/css",),
    "Markdown": ("text/md",),
    "CSV": ("text/csv",),
    "XML": ("text/xml",),
    "RTF": ("text/rtf",),
}

_PREFERRED_MIME_MAP = {**AUDIO_MIME_TYPES, **IMAGE_MIME_TYPES, ".pdf": "application/pdf"}


def guess_mime_type(path: str | Path) -> str | None:
    """Preferred mapping first, then the ``mimetypes`` database."""
    suffix = Path(path).suffix.lower()
    if suffix in _PREFERRED_MIME_MAP:
        return _PREFERRED_MIME_MAP[suffix]
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type


def audio_mime_type(path: str | Path) -> Result[str, UnsupportedContentError]:
    suffix = Path(path).suffix.lower()
    if not suffix:
        return Failure(UnsupportedContentError("file extension not found", "audio"))
    if suffix not in AUDIO_MIME_TYPES:
        return Failure(
            UnsupportedContentError(
                f"unsupported audio extension {suffix!r}; expected one of "
                f"{', '.join(sorted(AUDIO_MIME_TYPES))}",
                "audio",
            )
        )
    return Success(AUDIO_MIME_TYPES[suffix])


def document_mime_type(kind: str) -> Result[str, UnsupportedContentError]:
    if kind not in DOCUMENT_MIME_TYPES:
        return Failure(
            UnsupportedContentError(
                f"unsupported type {kind!r}; supported types are: "
                f"{', '.join(DOCUMENT_MIME_TYPES)}",
                "type",
            )
        )
    return Success(DOCUMENT_MIME_TYPES[kind][0])


def requires_upload(size_bytes: int) -> bool:
    """Payloads above the inline threshold must go through resumable upload."""
    return size_bytes > FILES_API_THRESHOLD


def inline_part_from_file(
    path: str | Path, mime_type: str | None = None
) -> Result[InlineDataPart, FileError]:
    """Read a local file into a base64 inline part."""
    checked = validate_file(path)
    if isinstance(checked, Failure):
        return checked
    file_path = checked.value
    resolved = mime_type or guess_mime_type(file_path)
    if resolved is None:
        return Failure(FileError(f"cannot determine MIME type for {file_path.name}", "mime_type"))
    try:
        data = file_path.read_bytes()
    except OSError as e:
        return Failure(FileError(f"failed to read {file_path}: {e}", "path"))
    return Success(InlineDataPart.from_bytes(data, resolved))


def save_inline_image(
    unit: InlineOutput | None, output_path: str | Path, *, overwrite: bool = True
) -> Result[Path, FileError | ResponseShapeError]:
    """Decode a generated image and write it to ``output_path``."""
    if unit is None or not unit.data:
        return Failure(ResponseShapeError("no image data found in response"))
    target = Path(output_path)
    if target.exists() and not overwrite:
        return Failure(
            FileError(f"{target} already exists; pass overwrite=True to replace it", "output_path")
        )
    try:
        image = base64.b64decode(unit.data, validate=True)
    except (binascii.Error, ValueError) as e:
        return Failure(ResponseShapeError(f"image payload is not valid base64: {e}"))
    try:
        target.write_bytes(image)
    except OSError as e:
        return Failure(FileError(f"failed to write {target}: {e}", "output_path"))
    log.info("Image saved to %s", target)
    return Success(target.resolve())
