"""Unified Gemini REST client.

Every capability runs the same pipeline: validate, upload when needed, build
the body, make one generation call, normalize the response. Each method
returns a ``Result``; nothing is raised for expected failures.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
from pathlib import Path
from typing import Any, Literal

import httpx

from .config import FrozenConfig, resolve_config
from .constants import (
    AUDIO_MODEL,
    AUDIO_MODELS,
    DOCUMENT_MODEL,
    IMAGE_EDIT_MODEL,
    IMAGE_GENERATION_MODEL,
    IMAGE_GENERATION_MODELS,
    SEARCH_MODEL,
    SEARCH_RETRIEVAL_MODELS,
)
from .conversation import ChatSession
from .core.types import (
    BearerCredential,
    ContentPart,
    Credential,
    Failure,
    FileDataPart,
    GenerationConfig,
    InlineDataPart,
    OutputUnit,
    Result,
    Role,
    Success,
    TextOutput,
    TextPart,
    UploadedFile,
)
from .credentials import (
    CredentialProvider,
    EnvironmentCredentialProvider,
    ServiceAccountKey,
    request_credential,
    resolve_credential,
)
from .exceptions import (
    CredentialError,
    FileError,
    GeminiRestError,
    ResponseShapeError,
    UnsupportedContentError,
    ValidationError,
)
from .generation import GenerationClient
from .media import (
    audio_mime_type,
    document_mime_type,
    inline_part_from_file,
    requires_upload,
    save_inline_image,
)
from .request_builder import (
    Body,
    build_count_tokens_body,
    build_generate_body,
    google_search_tool,
    normalize_model,
    search_retrieval_tool,
    structured_config,
)
from .response import first_inline, joined_text, normalize_response
from .telemetry import TelemetryContext, TelemetryContextProtocol
from .transport import create_http_client
from .uploads import ResumableUploadClient
from .validation import validate_file, validate_labels, validate_prompt

log = logging.getLogger(__name__)

type Units = tuple[OutputUnit, ...]
type EditMode = Literal["generate", "edit", "transfer"]

_EDIT_IMAGE_COUNTS: dict[str, int] = {"generate": 0, "edit": 1, "transfer": 2}


def _require_model(
    model: str, allowed: frozenset[str]
) -> Result[str, UnsupportedContentError]:
    name = normalize_model(model)
    if name not in allowed:
        return Failure(
            UnsupportedContentError(f"must be one of {', '.join(sorted(allowed))}", "model")
        )
    return Success(name)


class GeminiClient:
    """A zero-ceremony client that uses resolved configuration but accepts
    injected collaborators for every external dependency.

    Examples:
        with GeminiClient() as client:
            result = client.generate("Say hi")

        client = GeminiClient(resolve_config({"model": "2.0-flash"}).to_frozen())
    """

    def __init__(
        self,
        config: FrozenConfig | None = None,
        *,
        credentials: CredentialProvider | None = None,
        http: httpx.Client | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self.config = config or resolve_config().to_frozen()
        self._owns_http = http is None
        self.http = http or create_http_client(self.config.timeout)
        self.tele = telemetry or TelemetryContext()
        self.credentials = credentials or EnvironmentCredentialProvider(
            self.config, self.http, self.tele
        )
        self.generation = GenerationClient(self.config, self.http, self.tele)
        log.debug("GeminiClient initialized with model '%s'", self.config.model)

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> GeminiClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- Pipeline helpers ---

    def _credential(
        self,
        prompt: object,
        config: GenerationConfig,
        model: str | None,
        bearer: BearerCredential | None,
        *,
        allow_empty_prompt: bool = False,
    ) -> Result[Credential, ValidationError]:
        return request_credential(
            prompt,
            config,
            provider=self.credentials,
            model=model,
            bearer=bearer,
            in_query=self.config.api_key_in_query,
            allow_empty_prompt=allow_empty_prompt,
        )

    def _exchange(
        self,
        body: Body,
        credential: Credential,
        model: str | None,
        *,
        first_candidate_only: bool = False,
    ) -> Result[Units, GeminiRestError]:
        response = self.generation.generate(body, credential=credential, model=model)
        if isinstance(response, Failure):
            return response
        return normalize_response(response.value, first_candidate_only=first_candidate_only)

    def _single_shot(
        self,
        prompt: str,
        parts: Sequence[ContentPart],
        *,
        model: str,
        config: GenerationConfig | None,
        credential: BearerCredential | None,
        tools: Sequence[Mapping[str, Any]] | None = None,
        labels: Mapping[str, str] | None = None,
        send_config: bool = True,
        prompt_first: bool | None = None,
        first_candidate_only: bool = False,
    ) -> Result[Units, GeminiRestError]:
        """Validate and run one single-shot call.

        On the bearer path the media parts precede the prompt and the turn
        carries an explicit ``user`` role. ``prompt_first`` overrides the
        placement on either path.
        """
        cfg = config or GenerationConfig()
        checked = self._credential(prompt, cfg, model, credential)
        if isinstance(checked, Failure):
            return checked
        enterprise = credential is not None
        body = build_generate_body(
            prompt,
            parts,
            cfg if send_config or config is not None else None,
            model=model,
            role=Role.USER if enterprise else None,
            tools=tools,
            labels=labels,
            prompt_first=not enterprise if prompt_first is None else prompt_first,
        )
        return self._exchange(
            body, checked.value, model, first_candidate_only=first_candidate_only
        )

    def _local_media_part(
        self,
        path: str | Path,
        mime_type: str | None = None,
        *,
        allow_upload: bool = True,
    ) -> Result[ContentPart, GeminiRestError]:
        """Inline a local file, or upload it first when it is too large to inline.

        Uploaded files are only addressable with an API key, so bearer calls
        pass ``allow_upload=False`` and always inline.
        """
        checked = validate_file(path)
        if isinstance(checked, Failure):
            return checked
        file_path = checked.value
        if allow_upload and requires_upload(file_path.stat().st_size):
            log.debug("%s exceeds the inline limit; uploading", file_path.name)
            uploaded = self.upload(file_path, mime_type)
            if isinstance(uploaded, Failure):
                return uploaded
            return Success(uploaded.value.as_part())
        return inline_part_from_file(file_path, mime_type)

    # --- Text ---

    def generate(
        self,
        prompt: str,
        *,
        model: str | None = None,
        config: GenerationConfig | None = None,
        credential: BearerCredential | None = None,
        labels: Mapping[str, str] | None = None,
    ) -> Result[Units, GeminiRestError]:
        """Generate content from a text prompt.

        Image-generation models automatically request text and image
        modalities. ``labels`` are only accepted with a bearer credential.
        """
        if labels is not None:
            prompt_check = validate_prompt(prompt)
            if isinstance(prompt_check, Failure):
                return prompt_check
            if credential is None:
                return Failure(
                    ValidationError("are only supported with a bearer credential", "labels")
                )
            checked_labels = validate_labels(labels)
            if isinstance(checked_labels, Failure):
                return checked_labels
        return self._single_shot(
            prompt,
            (),
            model=model or self.config.model,
            config=config,
            credential=credential,
            labels=labels,
        )

    def chat(
        self,
        *,
        model: str | None = None,
        config: GenerationConfig | None = None,
        credential: BearerCredential | None = None,
        record_failed_prompts: bool = False,
    ) -> ChatSession:
        """Start a multi-turn session bound to this client."""
        return ChatSession(
            self.generation,
            credentials=self.credentials,
            model=model,
            config=config,
            credential=credential,
            record_failed_prompts=record_failed_prompts,
        )

    def generate_structured(
        self,
        prompt: str,
        schema: Mapping[str, Any],
        *,
        model: str | None = None,
        config: GenerationConfig | None = None,
        credential: BearerCredential | None = None,
    ) -> Result[str, GeminiRestError]:
        """Return the JSON document text; decode it with ``parse_structured``."""
        if not isinstance(schema, Mapping) or not schema:
            return Failure(ValidationError("must be a non-empty JSON schema mapping", "schema"))
        units = self._single_shot(
            prompt,
            (),
            model=model or self.config.model,
            config=structured_config(config, schema),
            credential=credential,
        )
        if isinstance(units, Failure):
            return units
        first = next((u for u in units.value if isinstance(u, TextOutput)), None)
        if first is None:
            return Failure(ResponseShapeError("structured response carried no text part"))
        return Success(first.text)

    # --- Search ---

    def search(
        self,
        prompt: str,
        *,
        config: GenerationConfig | None = None,
        credential: BearerCredential | None = None,
    ) -> Result[Units, GeminiRestError]:
        """Answer with grounding from live search results."""
        return self._single_shot(
            prompt,
            (),
            model=SEARCH_MODEL,
            config=config,
            credential=credential,
            tools=[google_search_tool()],
        )

    def search_retrieval(
        self,
        prompt: str,
        *,
        model: str = "gemini-1.5-flash",
        mode: str = "MODE_DYNAMIC",
        dynamic_threshold: float = 1,
        config: GenerationConfig | None = None,
        credential: BearerCredential | None = None,
    ) -> Result[Units, GeminiRestError]:
        """Search grounding through dynamic retrieval (1.5-series models only)."""
        checked_model = _require_model(model, SEARCH_RETRIEVAL_MODELS)
        if isinstance(checked_model, Failure):
            return checked_model
        if (
            isinstance(dynamic_threshold, bool)
            or not isinstance(dynamic_threshold, int | float)
            or not 0 <= dynamic_threshold <= 1
        ):
            return Failure(ValidationError("must be between 0 and 1", "dynamic_threshold"))
        return self._single_shot(
            prompt,
            (),
            model=checked_model.value,
            config=config,
            credential=credential,
            tools=[search_retrieval_tool(mode, dynamic_threshold)],
        )

    # --- Media analysis ---

    def describe_image(
        self,
        image: str | Path,
        prompt: str = "Explain this image",
        *,
        model: str | None = None,
        mime_type: str | None = None,
        config: GenerationConfig | None = None,
        credential: BearerCredential | None = None,
    ) -> Result[Units, GeminiRestError]:
        """Describe a local image.

        The image is sent inline as base64, or uploaded first when it is larger
        than the inline limit (API-key calls only).
        """
        target_model = model or self.config.model
        checked = self._credential(
            prompt, config or GenerationConfig(), target_model, credential
        )
        if isinstance(checked, Failure):
            return checked
        part = self._local_media_part(image, mime_type, allow_upload=credential is None)
        if isinstance(part, Failure):
            return part
        return self._single_shot(
            prompt,
            (part.value,),
            model=target_model,
            config=config,
            credential=credential,
        )

    def upload(
        self,
        path: str | Path,
        mime_type: str | None = None,
        display_name: str | None = None,
    ) -> Result[UploadedFile, GeminiRestError]:
        """Upload a local file through the resumable protocol."""
        key = resolve_credential(self.credentials, in_query=self.config.api_key_in_query)
        if isinstance(key, Failure):
            return key
        uploader = ResumableUploadClient(self.config, key.value, self.http, self.tele)
        return uploader.upload_file(path, mime_type, display_name)

    def analyze_audio(
        self,
        audio: str | Path,
        prompt: str = "Describe this audio",
        *,
        model: str = AUDIO_MODEL,
        config: GenerationConfig | None = None,
        credential: BearerCredential | None = None,
    ) -> Result[Units, GeminiRestError]:
        """Analyze audio.

        With an API key ``audio`` is a local file that is uploaded first and
        referenced by URI. With a bearer credential ``audio`` is already a
        remote file URI (for example ``gs://...``).
        """
        mime = audio_mime_type(audio)
        if isinstance(mime, Failure):
            return mime

        if credential is not None:
            part = FileDataPart(mime_type=mime.value, file_uri=str(audio))
            return self._single_shot(
                prompt, (part,), model=model, config=config, credential=credential
            )

        checked_model = _require_model(model, AUDIO_MODELS)
        if isinstance(checked_model, Failure):
            return checked_model
        cfg = config or GenerationConfig()
        checked = self._credential(prompt, cfg, checked_model.value, None)
        if isinstance(checked, Failure):
            return checked
        uploaded = self.upload(audio, mime.value, "AUDIO")
        if isinstance(uploaded, Failure):
            return uploaded
        # A later generation failure leaves the uploaded file to expire remotely.
        body = build_generate_body(
            prompt, (uploaded.value.as_part(),), cfg, model=checked_model.value
        )
        return self._exchange(body, checked.value, checked_model.value)

    def analyze_documents(
        self,
        sources: Sequence[str | Path],
        prompt: str,
        *,
        kind: str = "PDF",
        mime_type: str | None = None,
        config: GenerationConfig | None = None,
        credential: BearerCredential | None = None,
    ) -> Result[str, GeminiRestError]:
        """Summarize or question one or more documents; returns joined text.

        With an API key ``sources`` are local files, sent inline or uploaded
        first when larger than the inline limit. With a bearer credential they
        are remote file URIs. Documents precede the prompt, and only the first
        candidate's text is returned.
        """
        if isinstance(sources, str | Path) or not sources:
            return Failure(
                ValidationError("at least one document must be provided", "sources")
            )
        if mime_type is None:
            resolved = document_mime_type(kind)
            if isinstance(resolved, Failure):
                return resolved
            mime_type = resolved.value

        parts: list[ContentPart] = []
        if credential is not None:
            parts.extend(FileDataPart(mime_type=mime_type, file_uri=str(s)) for s in sources)
        else:
            checked = self._credential(
                prompt, config or GenerationConfig(), DOCUMENT_MODEL, None
            )
            if isinstance(checked, Failure):
                return checked
            for source in sources:
                part = self._local_media_part(source, mime_type)
                if isinstance(part, Failure):
                    return part
                parts.append(part.value)

        units = self._single_shot(
            prompt,
            parts,
            model=DOCUMENT_MODEL,
            config=config,
            credential=credential,
            send_config=credential is not None,
            prompt_first=False,
            first_candidate_only=True,
        )
        if isinstance(units, Failure):
            return units
        return Success(joined_text(units.value))

    def analyze_file_uris(
        self,
        file_uris: Sequence[str],
        prompt: str,
        *,
        mime_type: str,
        model: str | None = None,
        config: GenerationConfig | None = None,
        credential: BearerCredential | None = None,
    ) -> Result[Units, GeminiRestError]:
        """Run a prompt over files already uploaded or stored remotely."""
        if isinstance(file_uris, str) or not file_uris:
            return Failure(ValidationError("at least one file URI must be provided", "file_uris"))
        try:
            parts = [FileDataPart(mime_type=mime_type, file_uri=uri) for uri in file_uris]
        except (TypeError, ValueError) as e:
            return Failure(ValidationError(str(e), "file_uris"))
        return self._single_shot(
            prompt,
            parts,
            model=model or self.config.model,
            config=config,
            credential=credential,
        )

    # --- Images ---

    def generate_image(
        self,
        prompt: str,
        output_path: str | Path = "gemini_image.png",
        *,
        model: str = IMAGE_GENERATION_MODEL,
        overwrite: bool = True,
        config: GenerationConfig | None = None,
    ) -> Result[Path, GeminiRestError]:
        """Generate an image and save the first inline image to ``output_path``."""
        checked_model = _require_model(model, IMAGE_GENERATION_MODELS)
        if isinstance(checked_model, Failure):
            return checked_model
        if Path(output_path).exists() and not overwrite:
            return Failure(
                FileError(
                    f"{output_path} already exists; pass overwrite=True to replace it",
                    "output_path",
                )
            )
        units = self._single_shot(
            prompt, (), model=checked_model.value, config=config, credential=None
        )
        if isinstance(units, Failure):
            return units
        return save_inline_image(first_inline(units.value), output_path, overwrite=overwrite)

    def edit_image(
        self,
        prompt: str,
        output_path: str | Path,
        *,
        mode: EditMode = "generate",
        images: Sequence[str | Path] = (),
        config: GenerationConfig | None = None,
    ) -> Result[Path, GeminiRestError]:
        """Generate, edit or style-transfer images.

        ``generate`` takes no input image, ``edit`` takes one and
        ``transfer`` takes two (content then style).
        """
        expected = _EDIT_IMAGE_COUNTS.get(mode)
        if expected is None:
            return Failure(
                ValidationError(
                    f"must be one of {', '.join(_EDIT_IMAGE_COUNTS)}, got {mode!r}", "mode"
                )
            )
        if len(images) != expected:
            return Failure(
                ValidationError(
                    f"mode {mode!r} takes {expected} image(s), got {len(images)}", "images"
                )
            )
        checked = self._credential(
            prompt, config or GenerationConfig(), IMAGE_EDIT_MODEL, None
        )
        if isinstance(checked, Failure):
            return checked
        parts: list[ContentPart] = []
        for image in images:
            part = self._local_media_part(image)
            if isinstance(part, Failure):
                return part
            parts.append(part.value)

        units = self._single_shot(
            prompt, parts, model=IMAGE_EDIT_MODEL, config=config, credential=None
        )
        if isinstance(units, Failure):
            return units
        return save_inline_image(first_inline(units.value), output_path)

    # --- Tokens and credentials ---

    def count_tokens(
        self,
        content: str | ContentPart | Sequence[str | ContentPart],
        *,
        model: str | None = None,
        credential: BearerCredential | None = None,
    ) -> Result[int, GeminiRestError]:
        """Count tokens for text and/or inline media parts."""
        if isinstance(content, Sequence) and not isinstance(content, str):
            items = list(content)
        else:
            items = [content]
        if not items:
            return Failure(ValidationError("must contain at least one part", "content"))
        parts: list[ContentPart] = []
        for item in items:
            if isinstance(item, str):
                checked = validate_prompt(item)
                if isinstance(checked, Failure):
                    return Failure(ValidationError("text parts must not be empty", "content"))
                parts.append(TextPart(item))
            elif isinstance(item, TextPart | InlineDataPart | FileDataPart):
                parts.append(item)
            else:
                return Failure(
                    ValidationError(
                        f"parts must be str or content parts, got {type(item).__name__}",
                        "content",
                    )
                )

        resolved = resolve_credential(
            self.credentials, bearer=credential, in_query=self.config.api_key_in_query
        )
        if isinstance(resolved, Failure):
            return resolved
        return self.generation.count_tokens(
            build_count_tokens_body(parts), credential=resolved.value, model=model
        )

    def mint_bearer_token(
        self,
        key: ServiceAccountKey | str | Path | None = None,
        *,
        model: str | None = None,
        region: str | None = None,
    ) -> Result[BearerCredential, GeminiRestError]:
        """Mint a bearer credential for the enterprise endpoint of ``model``.

        ``key`` defaults to the configured ``service_account_key`` path.
        """
        source = key if key is not None else self.config.service_account_key
        if source is None:
            return Failure(
                CredentialError(
                    "no service-account key given; pass one or set GEMINI_SERVICE_ACCOUNT_KEY"
                )
            )
        if not isinstance(source, ServiceAccountKey):
            checked_path = validate_file(source)
            if isinstance(checked_path, Failure):
                return checked_path
            loaded = ServiceAccountKey.from_file(checked_path.value)
            if isinstance(loaded, Failure):
                return loaded
            source = loaded.value
        return self.credentials.mint_bearer_token(
            source,
            model=model or self.config.model,
            region=region or self.config.region,
        )
