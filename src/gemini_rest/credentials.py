"""Credential resolution: consumer API keys and enterprise bearer tokens.

Bearer tokens are minted from a service-account key with a signed JWT
assertion exchanged at the OAuth2 token endpoint. Tokens are never refreshed
in the background; ``BearerCredential.expires_at`` tells callers when to mint
a new one.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
import time
from typing import Protocol, runtime_checkable

from google.auth import crypt, jwt
import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .config import FrozenConfig
from .constants import (
    CLOUD_PLATFORM_SCOPE,
    DEFAULT_REGION,
    JWT_BEARER_GRANT,
    OAUTH_TOKEN_URL,
    TOKEN_LIFETIME,
)
from .core.types import (
    ApiKeyCredential,
    BearerCredential,
    Credential,
    Failure,
    GenerationConfig,
    Result,
    Success,
)
from .exceptions import CredentialError, GeminiRestError, MissingKeyError, ValidationError
from .request_builder import normalize_model
from .telemetry import TelemetryContext, TelemetryContextProtocol
from .transport import create_http_client, decode_json, perform, require_ok
from .validation import validate_max_output_tokens, validate_params

log = logging.getLogger(__name__)

T_AUTH_MINT = "auth.mint_token"


class ServiceAccountKey(BaseModel):
    """The fields of a service-account JSON key this client needs."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    client_email: str = Field(min_length=1)
    private_key: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    private_key_id: str | None = None
    token_uri: str = OAUTH_TOKEN_URL

    def __repr__(self) -> str:
        return (
            f"ServiceAccountKey(client_email={self.client_email!r}, "
            f"project_id={self.project_id!r}, private_key='[REDACTED]')"
        )

    @classmethod
    def from_file(cls, path: str | Path) -> Result[ServiceAccountKey, CredentialError]:
        key_path = Path(path)
        try:
            raw = json.loads(key_path.read_text(encoding="utf-8"))
        except OSError as e:
            return Failure(CredentialError(f"cannot read service-account key {key_path}: {e}"))
        except json.JSONDecodeError as e:
            return Failure(CredentialError(f"service-account key {key_path} is not JSON: {e}"))
        try:
            return Success(cls.model_validate(raw))
        except PydanticValidationError as e:
            return Failure(
                CredentialError(f"service-account key {key_path} is incomplete: {e}")
            )


def vertex_endpoint(
    project_id: str,
    region: str,
    model: str,
    operation: str = "generateContent",
) -> str:
    """Region/project/model-specific enterprise endpoint."""
    return (
        f"https://{region}-aiplatform.googleapis.com/v1/projects/{project_id}"
        f"/locations/{region}/publishers/google/models/"
        f"{normalize_model(model)}:{operation}"
    )


def build_jwt_claims(
    key: ServiceAccountKey, *, issued_at: float, lifetime: int = TOKEN_LIFETIME
) -> dict[str, object]:
    iat = int(issued_at)
    return {
        "iss": key.client_email,
        "scope": CLOUD_PLATFORM_SCOPE,
        "aud": key.token_uri,
        "iat": iat,
        "exp": iat + lifetime,
    }


def sign_assertion(key: ServiceAccountKey, claims: dict[str, object]) -> Result[str, CredentialError]:
    """RS256-sign the claims with the service-account private key."""
    try:
        signer = crypt.RSASigner.from_service_account_info(
            {"private_key": key.private_key, "private_key_id": key.private_key_id}
        )
        return Success(jwt.encode(signer, claims).decode("ascii"))
    except (ValueError, TypeError) as e:
        return Failure(CredentialError(f"cannot sign JWT assertion: {e}"))


def mint_bearer_token(
    key: ServiceAccountKey,
    *,
    model: str,
    region: str = DEFAULT_REGION,
    lifetime: int = TOKEN_LIFETIME,
    http: httpx.Client | None = None,
    telemetry: TelemetryContextProtocol | None = None,
    now: float | None = None,
) -> Result[BearerCredential, GeminiRestError]:
    """Exchange a signed JWT for an access token bound to one model endpoint."""
    if lifetime <= 0:
        return Failure(CredentialError("token lifetime must be positive"))
    issued_at = time.time() if now is None else now
    assertion = sign_assertion(key, build_jwt_claims(key, issued_at=issued_at, lifetime=lifetime))
    if isinstance(assertion, Failure):
        return assertion

    client = http or create_http_client(timeout=30.0)
    tele = telemetry or TelemetryContext()
    try:
        log.debug("Requesting access token for %s", key.client_email)
        with tele(T_AUTH_MINT):
            sent = perform(
                client,
                "POST",
                key.token_uri,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion.value},
            )
    finally:
        if http is None:
            client.close()
    if isinstance(sent, Failure):
        return sent
    checked = require_ok(sent.value, "token exchange")
    if isinstance(checked, Failure):
        return checked
    decoded = decode_json(checked.value, "token exchange")
    if isinstance(decoded, Failure):
        return decoded

    payload = decoded.value if isinstance(decoded.value, dict) else {}
    token = payload.get("access_token")
    if not isinstance(token, str) or not token:
        return Failure(CredentialError("token response lacks access_token"))
    expires_in = payload.get("expires_in")
    ttl = expires_in if isinstance(expires_in, int | float) and expires_in > 0 else lifetime
    return Success(
        BearerCredential(
            token=token,
            endpoint_url=vertex_endpoint(key.project_id, region, model),
            expires_at=issued_at + ttl,
        )
    )


@runtime_checkable
class CredentialProvider(Protocol):
    """Source of credentials, injectable so tests never touch process state."""

    def current_api_key(self) -> str | None: ...  # noqa: D102

    def mint_bearer_token(  # noqa: D102
        self,
        key: ServiceAccountKey,
        *,
        model: str,
        region: str = DEFAULT_REGION,
        lifetime: int = TOKEN_LIFETIME,
    ) -> Result[BearerCredential, GeminiRestError]: ...


class _TokenMintingProvider:
    def __init__(
        self,
        http: httpx.Client | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self._http = http
        self._telemetry = telemetry

    def mint_bearer_token(
        self,
        key: ServiceAccountKey,
        *,
        model: str,
        region: str = DEFAULT_REGION,
        lifetime: int = TOKEN_LIFETIME,
    ) -> Result[BearerCredential, GeminiRestError]:
        return mint_bearer_token(
            key,
            model=model,
            region=region,
            lifetime=lifetime,
            http=self._http,
            telemetry=self._telemetry,
        )


class EnvironmentCredentialProvider(_TokenMintingProvider):
    """API key from the resolved configuration (``GEMINI_API_KEY``)."""

    def __init__(
        self,
        config: FrozenConfig,
        http: httpx.Client | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        super().__init__(http, telemetry)
        self._config = config

    def current_api_key(self) -> str | None:
        return self._config.api_key


class StaticCredentialProvider(_TokenMintingProvider):
    """A fixed API key, for explicit wiring and tests."""

    def __init__(
        self,
        api_key: str | None = None,
        http: httpx.Client | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        super().__init__(http, telemetry)
        self._api_key = api_key

    def current_api_key(self) -> str | None:
        return self._api_key


def request_credential(
    prompt: object,
    config: GenerationConfig,
    *,
    provider: CredentialProvider,
    model: str | None,
    bearer: BearerCredential | None = None,
    in_query: bool = False,
    allow_empty_prompt: bool = False,
) -> Result[Credential, ValidationError]:
    """Validate a request and resolve the credential that will carry it.

    Without ``bearer`` the API-key path is used and the key comes from
    ``provider``.
    """
    api_key = provider.current_api_key() if bearer is None else None
    checked = validate_params(
        prompt,
        model,
        config.temperature,
        config.top_p,
        config.top_k,
        config.seed,
        use_api_key=bearer is None,
        api_key=api_key,
        bearer=bearer,
        allow_empty_prompt=allow_empty_prompt,
    )
    if isinstance(checked, Failure):
        return checked
    tokens = validate_max_output_tokens(config.max_output_tokens)
    if isinstance(tokens, Failure):
        return tokens
    return resolve_credential(provider, bearer=bearer, in_query=in_query)


def resolve_credential(
    provider: CredentialProvider,
    *,
    bearer: BearerCredential | None = None,
    in_query: bool = False,
) -> Result[Credential, MissingKeyError]:
    """The bearer credential when given, else an API key from ``provider``."""
    if bearer is not None:
        return Success(bearer)
    api_key = provider.current_api_key()
    if not api_key or not api_key.strip():
        return Failure(
            MissingKeyError(
                "API key required. Set the GEMINI_API_KEY environment variable "
                "or pass it programmatically.",
                "api_key",
            )
        )
    return Success(ApiKeyCredential(api_key, placement="query" if in_query else "header"))
