"""Request body construction for generation and token-counting calls.

Builders return plain JSON-serializable dicts; ``serialize_body`` turns them
into the exact bytes sent on the wire.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
import dataclasses
import json
from typing import Any

from .constants import IMAGE_GENERATION_MODELS, JSON_MIME_TYPE, RESPONSE_MODALITIES
from .core.types import (
    ContentPart,
    Conversation,
    GenerationConfig,
    Role,
    TextPart,
)

type Body = dict[str, Any]


def normalize_model(model: str) -> str:
    """Expand short model ids (``"2.0-flash"``) to full names (``"gemini-2.0-flash"``).

    Names that already carry a family prefix or a resource path are returned
    unchanged.
    """
    name = model.strip()
    if name.startswith("models/"):
        name = name.removeprefix("models/")
    if "/" in name or name.startswith(("gemini-", "gemma-", "learnlm-", "imagen-")):
        return name
    return f"gemini-{name}"


def is_image_generation_model(model: str | None) -> bool:
    return model is not None and normalize_model(model) in IMAGE_GENERATION_MODELS


def generation_config_for(model: str | None, config: GenerationConfig) -> GenerationConfig:
    """Set or clear ``responseModalities`` depending on the target model."""
    if is_image_generation_model(model):
        return dataclasses.replace(config, response_modalities=RESPONSE_MODALITIES)
    if config.response_modalities is not None:
        return dataclasses.replace(config, response_modalities=None)
    return config


def structured_config(
    config: GenerationConfig | None, schema: Mapping[str, Any]
) -> GenerationConfig:
    """Switch a config to strict JSON output constrained by ``schema``."""
    base = config or GenerationConfig()
    return dataclasses.replace(
        base, response_mime_type=JSON_MIME_TYPE, response_schema=dict(schema)
    )


# --- Tools ---


def google_search_tool() -> dict[str, Any]:
    """Grounding with live search results."""
    return {"google_search": {}}


def search_retrieval_tool(
    mode: str = "MODE_DYNAMIC", dynamic_threshold: float = 1
) -> dict[str, Any]:
    """Legacy search retrieval with a dynamic threshold (1.5-series models)."""
    return {
        "google_search_retrieval": {
            "dynamic_retrieval_config": {
                "mode": mode,
                "dynamic_threshold": dynamic_threshold,
            }
        }
    }


# --- Builders ---


def _user_turn(parts: Sequence[ContentPart], role: Role | None) -> dict[str, Any]:
    turn: dict[str, Any] = {}
    if role is not None:
        turn["role"] = role.value
    turn["parts"] = [p.to_api() for p in parts]
    return turn


def build_generate_body(
    prompt: str | None,
    parts: Iterable[ContentPart] = (),
    config: GenerationConfig | None = None,
    *,
    model: str | None = None,
    role: Role | None = None,
    tools: Sequence[Mapping[str, Any]] | None = None,
    labels: Mapping[str, str] | None = None,
    prompt_first: bool = True,
) -> Body:
    """Build a single-shot ``generateContent`` body.

    All parts go into one implicit user turn. The prompt is placed before the
    media parts unless ``prompt_first`` is False (documents and enterprise
    audio put the media first). ``role`` is emitted only when given; the
    enterprise endpoint expects ``"user"``.
    """
    media = list(parts)
    all_parts: list[ContentPart] = []
    if prompt is not None and prompt_first:
        all_parts.append(TextPart(prompt))
    all_parts.extend(media)
    if prompt is not None and not prompt_first:
        all_parts.append(TextPart(prompt))

    body: Body = {"contents": [_user_turn(all_parts, role)]}

    if config is None and is_image_generation_model(model):
        config = GenerationConfig()
    if config is not None:
        body["generationConfig"] = generation_config_for(model, config).to_api()
    if tools:
        body["tools"] = [dict(t) for t in tools]
    if labels:
        body["labels"] = dict(labels)
    return body


def build_chat_body(
    conversation: Conversation, config: GenerationConfig | None = None
) -> Body:
    """Send the whole conversation, in order, as ``contents``."""
    body: Body = {"contents": conversation.to_contents()}
    if config is not None:
        body["generationConfig"] = config.to_api()
    return body


def build_count_tokens_body(parts: Iterable[ContentPart]) -> Body:
    return {"contents": [{"parts": [p.to_api() for p in parts]}]}


# --- Serialization ---


def serialize_body(body: Mapping[str, Any]) -> bytes:
    """Compact UTF-8 JSON; key order follows insertion order of the builders."""
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _scalar(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def render_search_body_raw(prompt: str, config: GenerationConfig) -> bytes:
    """Assemble a search-grounded body from string fragments.

    Some transports mangle the empty ``google_search`` object when encoding
    the structured form; this path writes the document by hand. It must stay
    byte-identical to ``serialize_body(build_generate_body(prompt, config=config,
    tools=[google_search_tool()]))``.
    """
    fields = [
        f'"temperature":{_scalar(config.temperature)}',
        f'"maxOutputTokens":{_scalar(int(config.max_output_tokens))}',
        f'"topP":{_scalar(config.top_p)}',
        f'"topK":{_scalar(config.top_k)}',
        f'"seed":{_scalar(int(config.seed))}',
    ]
    if config.response_mime_type is not None:
        fields.append(f'"responseMimeType":{_scalar(config.response_mime_type)}')
    if config.response_schema is not None:
        fields.append(f'"responseSchema":{_scalar(dict(config.response_schema))}')
    raw = (
        '{"contents":[{"parts":[{"text":'
        + _scalar(prompt)
        + '}]}],"generationConfig":{'
        + ",".join(fields)
        + '},"tools":[{"google_search":{}}]}'
    )
    return raw.encode("utf-8")
