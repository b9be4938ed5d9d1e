"""Multi-turn chat history.

A ``Conversation`` is an immutable value; ``append`` returns a new one. A
``ChatSession`` owns the current value and threads it through successive
generation calls. Sessions are not thread-safe.
"""

from __future__ import annotations

from collections.abc import Sequence
import dataclasses
import logging

from .core.types import (
    BearerCredential,
    ContentPart,
    Conversation,
    Failure,
    FileDataPart,
    GenerationConfig,
    InlineDataPart,
    InlineOutput,
    OutputUnit,
    RawOutput,
    Result,
    Role,
    Success,
    TextOutput,
    TextPart,
    Turn,
    part_from_api,
)
from .credentials import CredentialProvider, request_credential
from .exceptions import GeminiRestError, ValidationError
from .generation import GenerationClient
from .request_builder import build_chat_body
from .response import normalize_response

log = logging.getLogger(__name__)

CHAT_CONFIG = GenerationConfig(temperature=0.5, max_output_tokens=1024)


def append(
    conversation: Conversation,
    role: Role | str,
    parts: str | Sequence[ContentPart],
) -> Conversation:
    """Return ``conversation`` extended by one turn.

    Raises:
        ValidationError: If ``role`` is not ``user`` or ``model``.
    """
    try:
        turn_role = Role(role)
    except ValueError:
        raise ValidationError(
            f"must be one of {[r.value for r in Role]}, got {role!r}", "role"
        ) from None
    turn_parts = (TextPart(parts),) if isinstance(parts, str) else tuple(parts)
    return Conversation(turns=(*conversation.turns, Turn(turn_role, turn_parts)))


def model_turn_parts(unit: OutputUnit) -> tuple[ContentPart, ...]:
    """Convert the first output unit back into content parts for history."""
    if isinstance(unit, TextOutput):
        return (TextPart(unit.text),)
    if isinstance(unit, InlineOutput):
        return (InlineDataPart(mime_type=unit.mime_type, data=unit.data),)
    rebuilt = part_from_api(unit.part) if isinstance(unit, RawOutput) else None
    return (rebuilt,) if rebuilt is not None else (TextPart(unit.text),)


@dataclasses.dataclass(frozen=True, slots=True)
class ChatReply:
    """Outputs of one exchange and the conversation after it."""

    outputs: tuple[OutputUnit, ...]
    conversation: Conversation


class ChatSession:
    """Owns one conversation and sends it, whole, on every turn.

    By default a user turn is recorded only when the exchange succeeds, so a
    failed call leaves the history unchanged. With
    ``record_failed_prompts=True`` the user turn is appended before the call
    and stays even if the call fails.
    """

    def __init__(
        self,
        client: GenerationClient,
        *,
        credentials: CredentialProvider,
        model: str | None = None,
        config: GenerationConfig | None = None,
        credential: BearerCredential | None = None,
        record_failed_prompts: bool = False,
        conversation: Conversation | None = None,
    ) -> None:
        self.client = client
        self.credentials = credentials
        self.model = model or client.config.model
        self.config = config or CHAT_CONFIG
        self.credential = credential
        self.record_failed_prompts = record_failed_prompts
        self.conversation = conversation or Conversation()

    @property
    def history(self) -> tuple[Turn, ...]:
        return self.conversation.turns

    def reset(self) -> None:
        self.conversation = Conversation()

    def send(
        self, prompt: str, parts: Sequence[FileDataPart | InlineDataPart] = ()
    ) -> Result[ChatReply, GeminiRestError]:
        """Send one user turn and record the first output as the model turn."""
        credential = request_credential(
            prompt,
            self.config,
            provider=self.credentials,
            model=self.model,
            bearer=self.credential,
            in_query=self.client.config.api_key_in_query,
        )
        if isinstance(credential, Failure):
            return credential

        with_prompt = append(self.conversation, Role.USER, (TextPart(prompt), *parts))
        if self.record_failed_prompts:
            self.conversation = with_prompt

        response = self.client.generate(
            build_chat_body(with_prompt, self.config),
            credential=credential.value,
            model=self.model,
        )
        if isinstance(response, Failure):
            return response
        outputs = normalize_response(response.value)
        if isinstance(outputs, Failure):
            return outputs

        # Extra candidates are returned but never stored.
        self.conversation = append(with_prompt, Role.MODEL, model_turn_parts(outputs.value[0]))
        log.debug("Chat history now holds %d turns", len(self.conversation))
        return Success(ChatReply(outputs=outputs.value, conversation=self.conversation))
