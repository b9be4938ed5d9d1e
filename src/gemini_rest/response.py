"""Flatten ``candidates[*].content.parts[*]`` into ordered output units."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
import json
import logging
from typing import Any

from .core.types import (
    Failure,
    InlineOutput,
    OutputUnit,
    RawOutput,
    Result,
    Success,
    TextOutput,
)
from .exceptions import ResponseShapeError

log = logging.getLogger(__name__)


def parse_part(part: Mapping[str, Any]) -> OutputUnit:
    """Classify one response part; unknown shapes become ``RawOutput``."""
    text = part.get("text")
    if isinstance(text, str):
        return TextOutput(text)
    inline = part.get("inlineData") or part.get("inline_data")
    if isinstance(inline, Mapping):
        mime = inline.get("mimeType") or inline.get("mime_type")
        data = inline.get("data")
        if isinstance(mime, str) and isinstance(data, str):
            return InlineOutput(mime_type=mime, data=data)
    return RawOutput(dict(part))


def _candidate_parts(candidate: Any) -> list[Mapping[str, Any]]:
    if not isinstance(candidate, Mapping):
        return []
    content = candidate.get("content")
    if not isinstance(content, Mapping):
        return []
    parts = content.get("parts")
    if not isinstance(parts, list):
        return []
    return [p for p in parts if isinstance(p, Mapping)]


def normalize_response(
    payload: Any, *, first_candidate_only: bool = False
) -> Result[tuple[OutputUnit, ...], ResponseShapeError]:
    """Collect every part of every candidate, candidate-then-part order.

    With ``first_candidate_only`` the remaining candidates are ignored.
    Never raises: a payload without candidates or without any parts is a
    ``Failure`` carrying ``ResponseShapeError``.
    """
    if not isinstance(payload, Mapping):
        return Failure(ResponseShapeError("response is not a JSON object"))

    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        feedback = payload.get("promptFeedback")
        reason = "no output: response contained no candidates"
        if isinstance(feedback, Mapping) and feedback.get("blockReason"):
            reason += f" (blockReason={feedback['blockReason']})"
        log.warning(reason)
        return Failure(ResponseShapeError(reason))

    if first_candidate_only:
        candidates = candidates[:1]
    units = tuple(
        parse_part(part)
        for candidate in candidates
        for part in _candidate_parts(candidate)
    )
    if not units:
        finish = [
            c.get("finishReason") for c in candidates if isinstance(c, Mapping)
        ]
        reason = f"no output: candidates carried no content parts (finishReason={finish})"
        log.warning(reason)
        return Failure(ResponseShapeError(reason))
    return Success(units)


def output_texts(units: Iterable[OutputUnit]) -> list[str]:
    """String form of every unit, in order."""
    return [unit.text for unit in units]


def joined_text(units: Iterable[OutputUnit], sep: str = "\n") -> str:
    """Join only the text units."""
    return sep.join(u.text for u in units if isinstance(u, TextOutput))


def first_inline(units: Sequence[OutputUnit]) -> InlineOutput | None:
    return next((u for u in units if isinstance(u, InlineOutput)), None)


def parse_structured(units: Sequence[OutputUnit]) -> Result[Any, ResponseShapeError]:
    """Decode the JSON document a schema-constrained call returns as text."""
    first = next((u for u in units if isinstance(u, TextOutput)), None)
    if first is None:
        return Failure(ResponseShapeError("no text part to parse as JSON"))
    try:
        return Success(json.loads(first.text))
    except json.JSONDecodeError as e:
        return Failure(ResponseShapeError(f"structured output is not valid JSON: {e}"))
