"""Single-attempt HTTP helpers shared by the generation and upload clients."""

from __future__ import annotations

from collections.abc import Mapping
import json
import logging
from typing import Any

import httpx

from .constants import HEADER_API_KEY
from .core.types import (
    ApiKeyCredential,
    BearerCredential,
    Credential,
    Failure,
    Result,
    Success,
)
from .exceptions import APIError, NetworkError, ResponseShapeError

log = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


def create_http_client(timeout: float) -> httpx.Client:
    """Create a configured HTTP client - centralized configuration"""  # noqa: D415
    return httpx.Client(timeout=timeout)


def auth_headers_and_params(
    credential: Credential,
) -> tuple[dict[str, str], dict[str, str]]:
    """Headers and query parameters that carry ``credential``."""
    if isinstance(credential, BearerCredential):
        return {"Authorization": f"Bearer {credential.token}"}, {}
    if isinstance(credential, ApiKeyCredential):
        if credential.placement == "query":
            return {}, {"key": credential.api_key}
        return {HEADER_API_KEY: credential.api_key}, {}
    raise TypeError(f"Unsupported credential type: {type(credential).__name__}")


def perform(
    http: httpx.Client,
    method: str,
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    params: Mapping[str, str] | None = None,
    content: bytes | None = None,
    data: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> Result[httpx.Response, NetworkError]:
    """Send one request; transport failures become ``NetworkError`` failures.

    Status codes are not inspected here.
    """
    try:
        response = http.request(
            method,
            url,
            headers=dict(headers or {}),
            params=dict(params) if params else None,
            content=content,
            data=dict(data) if data is not None else None,
            timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
        )
    except httpx.TimeoutException:
        log.warning("Request to %s timed out", _redact_url(url))
        return Failure(NetworkError(f"Request timeout: {_redact_url(url)}"))
    except httpx.TransportError as e:
        log.warning("Request to %s failed: %s", _redact_url(url), type(e).__name__)
        return Failure(NetworkError(f"Request failed: {_redact_url(url)}: {e}"))
    return Success(response)


def require_ok(
    response: httpx.Response, what: str
) -> Result[httpx.Response, APIError]:
    """Accept only HTTP 200; otherwise keep the body for diagnostics."""
    if response.status_code == 200:
        return Success(response)
    body = response.text
    log.warning("%s failed with status %s", what, response.status_code)
    return Failure(
        APIError(f"Error in {what}", status_code=response.status_code, body=body)
    )


def decode_json(response: httpx.Response, what: str) -> Result[Any, ResponseShapeError]:
    try:
        return Success(response.json())
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return Failure(ResponseShapeError(f"{what} returned a non-JSON body: {e}"))


def _redact_url(url: str) -> str:
    # Upload URLs carry an opaque session id; query strings may carry a key.
    return url.split("?", 1)[0]
