"""The single ``generateContent`` / ``countTokens`` round-trip."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any

import httpx

from .config import FrozenConfig
from .constants import API_VERSION
from .core.types import (
    BearerCredential,
    Credential,
    Failure,
    Result,
    Success,
)
from .exceptions import CredentialError, GeminiRestError, ResponseShapeError
from .request_builder import normalize_model, serialize_body
from .telemetry import TelemetryContext, TelemetryContextProtocol
from .transport import (
    JSON_HEADERS,
    auth_headers_and_params,
    create_http_client,
    decode_json,
    perform,
    require_ok,
)

log = logging.getLogger(__name__)

T_API_GENERATE = "api.generate"
T_API_COUNT_TOKENS = "api.count_tokens"


class GenerationClient:
    """Posts built bodies to the model endpoint, one attempt per call.

    ``http`` is injectable; when omitted a client with the configured timeout
    is created and owned by this instance.
    """

    def __init__(
        self,
        config: FrozenConfig,
        http: httpx.Client | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self.config = config
        self._owns_http = http is None
        self.http = http or create_http_client(config.timeout)
        self._telemetry: TelemetryContextProtocol = telemetry or TelemetryContext()

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def endpoint_for(self, model: str, operation: str = "generateContent") -> str:
        return (
            f"{self.config.base_url}/{API_VERSION}/models/"
            f"{normalize_model(model)}:{operation}"
        )

    def _target_url(
        self, credential: Credential, model: str | None, operation: str
    ) -> Result[str, GeminiRestError]:
        if isinstance(credential, BearerCredential):
            if credential.is_expired():
                return Failure(
                    CredentialError("bearer token has expired; mint a new one")
                )
            return Success(_swap_operation(credential.endpoint_url, operation))
        target_model = model or self.config.model
        return Success(self.endpoint_for(target_model, operation))

    def _post(
        self,
        body: Mapping[str, Any],
        *,
        credential: Credential,
        model: str | None,
        operation: str,
        scope: str,
    ) -> Result[Any, GeminiRestError]:
        target = self._target_url(credential, model, operation)
        if isinstance(target, Failure):
            return target
        url = target.value
        headers, params = auth_headers_and_params(credential)
        headers.update(JSON_HEADERS)

        log.debug("POST %s (%s)", url, operation)
        with self._telemetry(scope, operation=operation):
            sent = perform(
                self.http,
                "POST",
                url,
                headers=headers,
                params=params,
                content=serialize_body(body),
                timeout=self.config.timeout,
            )
        if isinstance(sent, Failure):
            return sent
        checked = require_ok(sent.value, f"{operation} request")
        if isinstance(checked, Failure):
            return checked
        return decode_json(checked.value, operation)

    def generate(
        self,
        body: Mapping[str, Any],
        *,
        credential: Credential,
        model: str | None = None,
    ) -> Result[dict[str, Any], GeminiRestError]:
        """POST a generation body and return the decoded JSON response."""
        result = self._post(
            body,
            credential=credential,
            model=model,
            operation="generateContent",
            scope=T_API_GENERATE,
        )
        if isinstance(result, Success) and not isinstance(result.value, dict):
            return Failure(ResponseShapeError("generateContent returned non-object JSON"))
        return result

    def count_tokens(
        self,
        body: Mapping[str, Any],
        *,
        credential: Credential,
        model: str | None = None,
    ) -> Result[int, GeminiRestError]:
        """Return ``totalTokens`` for the given contents."""
        result = self._post(
            body,
            credential=credential,
            model=model,
            operation="countTokens",
            scope=T_API_COUNT_TOKENS,
        )
        if isinstance(result, Failure):
            return result
        total = result.value.get("totalTokens") if isinstance(result.value, dict) else None
        if not isinstance(total, int) or isinstance(total, bool):
            return Failure(ResponseShapeError("countTokens response lacks totalTokens"))
        self._telemetry.count("tokens.counted", total)
        return Success(total)


def _swap_operation(endpoint_url: str, operation: str) -> str:
    """Replace the ``:operation`` suffix of a model endpoint URL."""
    head, sep, tail = endpoint_url.rpartition(":")
    if sep and "/" not in tail:
        return f"{head}:{operation}"
    return f"{endpoint_url}:{operation}"
