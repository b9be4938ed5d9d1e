"""Parameter validation performed before any request is built or sent.

Every check returns a ``Result`` so callers can short-circuit without
exceptions. Nothing here performs I/O beyond ``stat`` on local files.
"""

from __future__ import annotations

from collections.abc import Mapping
import logging
import math
from numbers import Real
from pathlib import Path
from typing import Any

from .constants import TEMPERATURE_RANGE, TOP_K_RANGE, TOP_P_RANGE
from .core.types import BearerCredential, Failure, Result, Success
from .exceptions import FileError, MissingKeyError, ValidationError

log = logging.getLogger(__name__)

_OK: Success[None] = Success(None)


def _fail(reason: str, field: str | None = None) -> Failure[ValidationError]:
    log.debug("Validation failed for %s: %s", field or "request", reason)
    return Failure(ValidationError(reason, field))


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _check_range(value: Any, bounds: tuple[float, float], field: str) -> Failure[ValidationError] | None:
    low, high = bounds
    if not _is_number(value) or (isinstance(value, float) and math.isnan(value)):
        return _fail("must be a number", field)
    if value < low or value > high:
        return _fail(f"must be between {low} and {high}", field)
    return None


def is_whole_number(value: Any) -> bool:
    """True for ints and integral floats; bools are rejected."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value) and value.is_integer()


def validate_prompt(prompt: Any, *, allow_empty: bool = False) -> Result[None, ValidationError]:
    """Check that a prompt is a string, non-empty unless explicitly allowed."""
    if prompt is None:
        return _fail("must not be None", "prompt")
    if not isinstance(prompt, str):
        return _fail("must be given as a string", "prompt")
    if not allow_empty and not prompt.strip():
        return _fail("must not be empty", "prompt")
    return _OK


def validate_params(
    prompt: Any,
    model: str | None = None,
    temperature: Any = 1,
    top_p: Any = 0.95,
    top_k: Any = 40,
    seed: Any = 1234,
    *,
    use_api_key: bool = True,
    api_key: str | None = None,
    bearer: BearerCredential | None = None,
    allow_empty_prompt: bool = False,
) -> Result[None, ValidationError]:
    """Validate generation parameters and credential presence.

    The prompt is checked first; the remaining checks are independent.

    Args:
        prompt: The prompt text.
        model: Model name; required only on the API-key path.
        temperature: Must lie in [0, 2].
        top_p: Must lie in [0, 1].
        top_k: Must lie in [0, 100].
        seed: Must be a whole number.
        use_api_key: Select the API-key path (True) or the bearer path (False).
        api_key: The resolved API key for the API-key path.
        bearer: The minted credential for the bearer path.
        allow_empty_prompt: Accept ``""`` for operations that document it.

    Returns:
        ``Success(None)`` or a ``Failure`` carrying the first failed rule.
    """
    prompt_check = validate_prompt(prompt, allow_empty=allow_empty_prompt)
    if isinstance(prompt_check, Failure):
        return prompt_check

    if use_api_key and not model:
        return _fail("must not be None", "model")

    if use_api_key:
        if not api_key or not api_key.strip():
            return Failure(
                MissingKeyError(
                    "API key required. Set the GEMINI_API_KEY environment variable "
                    "or pass it programmatically.",
                    "api_key",
                )
            )
    elif bearer is None or not bearer.token or not bearer.endpoint_url:
        return Failure(
            MissingKeyError(
                "a bearer token and endpoint URL are required; mint one with "
                "mint_bearer_token()",
                "credential",
            )
        )

    for value, bounds, field in (
        (temperature, TEMPERATURE_RANGE, "temperature"),
        (top_p, TOP_P_RANGE, "top_p"),
        (top_k, TOP_K_RANGE, "top_k"),
    ):
        failure = _check_range(value, bounds, field)
        if failure is not None:
            return failure

    if not is_whole_number(seed):
        return _fail("must be an integer", "seed")

    return _OK


def validate_max_output_tokens(value: Any) -> Result[None, ValidationError]:
    if not is_whole_number(value) or value <= 0:
        return _fail("must be a positive integer", "max_output_tokens")
    return _OK


def validate_labels(labels: Any) -> Result[None, ValidationError]:
    """Labels must be a mapping with non-empty string keys."""
    if labels is None:
        return _OK
    if not isinstance(labels, Mapping) or not labels:
        return _fail("must be a non-empty mapping of key-value pairs", "labels")
    if not all(isinstance(k, str) and k.strip() for k in labels):
        return _fail("every key must be a non-empty string", "labels")
    return _OK


def validate_file(path: str | Path | None) -> Result[Path, FileError]:
    """Check that a local file exists, is a regular file and is not empty."""
    if path is None:
        return Failure(FileError("must not be None", "path"))
    file_path = Path(path)
    if not file_path.exists():
        return Failure(FileError(f"file does not exist: {file_path}", "path"))
    if not file_path.is_file():
        return Failure(FileError(f"not a regular file: {file_path}", "path"))
    if file_path.stat().st_size == 0:
        return Failure(FileError(f"file is empty: {file_path}", "path"))
    return Success(file_path)
