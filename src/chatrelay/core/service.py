"""ChatService: validates a request, builds the conversation, calls the provider.

One instance per request (see ``get_chat_service``).  Nothing is kept
between requests: the conversation is assembled from the caller's
history, trimmed to the model's token budget, sent, and dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Annotated

from fastapi import Depends

from chatrelay.configs.config import get_chat_config, get_llm_config
from chatrelay.configs.system import ChatConfig, LLMConfig
from chatrelay.core.exceptions import EmptyCompletion, InvalidChatRequest
from chatrelay.core.metrics import (
    PROMPT_ESTIMATED_TOKENS,
    PROMPT_MESSAGES_DROPPED_TOTAL,
    PROMPT_TRIMMED_TOTAL,
)
from chatrelay.core.models import (
    ROLE_SYSTEM,
    ROLE_USER,
    ChatReply,
    Message,
)
from chatrelay.core.provider import ProviderClient, get_provider_client
from chatrelay.core.trimmer import optimize_messages
from chatrelay.infra.telemetry import (
    ATTR_CHAT_HISTORY_LEN,
    ATTR_CHAT_SENT_MESSAGES,
    SPAN_CHAT_HANDLE,
    tracer,
)
from chatrelay.infra.tokens import (
    estimate_conversation_tokens,
    fits_within_limit,
    get_token_limit,
)

logger = logging.getLogger(__name__)


class ChatService:
    """Turns one user message (plus optional history) into one reply."""

    def __init__(
        self,
        provider: ProviderClient,
        llm_config: LLMConfig,
        chat_config: ChatConfig,
    ) -> None:
        self._provider = provider
        self._llm = llm_config
        self._chat = chat_config

    # ------------------------------------------------------------------
    # Request shaping
    # ------------------------------------------------------------------

    def validate_message(self, message: str) -> str:
        """Return *message* stripped, or raise ``InvalidChatRequest``."""
        stripped = message.strip()
        if not stripped:
            raise InvalidChatRequest("Message must not be empty")
        if len(message) > self._chat.max_message_length:
            raise InvalidChatRequest(
                f"Message must not exceed {self._chat.max_message_length} characters"
            )
        return stripped

    def select_model(self, requested: str | None) -> str:
        if requested and requested in self._llm.allowed_models:
            return requested
        if requested:
            logger.info(
                "Model %r is not allowed; using %s", requested, self._llm.default_model
            )
        return self._llm.default_model

    def clamp_temperature(self, requested: float | None) -> float:
        value = self._chat.default_temperature if requested is None else requested
        return max(self._chat.min_temperature, min(self._chat.max_temperature, value))

    def clamp_max_tokens(self, requested: int | None) -> int:
        value = self._chat.default_max_tokens if requested is None else requested
        return max(1, min(self._chat.max_response_tokens, value))

    def build_conversation(
        self, message: str, history: Sequence[Message]
    ) -> list[Message]:
        """System prompt, the most recent history, then the new user turn.

        History entries with the ``system`` role are discarded so that the
        configured system prompt stays the only one.
        """
        turns = [m for m in history if m.role != ROLE_SYSTEM]
        if len(turns) != len(history):
            logger.debug(
                "Dropped %d system message(s) from caller history",
                len(history) - len(turns),
            )
        limit = self._chat.max_history_messages
        recent = turns[-limit:] if limit > 0 else []
        return [
            Message(role=ROLE_SYSTEM, content=self._chat.system_prompt),
            *recent,
            Message(role=ROLE_USER, content=message),
        ]

    def fit_to_budget(self, messages: list[Message], model: str) -> list[Message]:
        """Trim *messages* for *model*, logging and counting what was dropped."""
        trimmed = optimize_messages(messages, model)
        estimated = estimate_conversation_tokens(trimmed)
        dropped = len(messages) - len(trimmed)
        if dropped > 0:
            logger.warning(
                "Trimmed %d message(s) to fit context budget "
                "(model=%s, limit=%d, estimated=%d, fits=%s)",
                dropped,
                model,
                get_token_limit(model),
                estimated,
                fits_within_limit(trimmed, model),
            )
            PROMPT_TRIMMED_TOTAL.labels(model_name=model).inc()
            PROMPT_MESSAGES_DROPPED_TOTAL.labels(model_name=model).inc(dropped)
        PROMPT_ESTIMATED_TOKENS.labels(model_name=model).observe(estimated)
        return trimmed

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def chat(
        self,
        message: str,
        conversation: Sequence[Message] = (),
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ChatReply:
        """Send *message* with its *conversation* history and return the reply.

        Raises ``InvalidChatRequest``, ``ProviderError`` or
        ``EmptyCompletion``.
        """
        with tracer.start_as_current_span(SPAN_CHAT_HANDLE) as span:
            span.set_attribute(ATTR_CHAT_HISTORY_LEN, len(conversation))

            text = self.validate_message(message)
            selected = self.select_model(model)
            messages = self.fit_to_budget(
                self.build_conversation(text, conversation), selected
            )
            span.set_attribute(ATTR_CHAT_SENT_MESSAGES, len(messages))

            completion = await self._provider.complete(
                messages,
                model=selected,
                temperature=self.clamp_temperature(temperature),
                max_tokens=self.clamp_max_tokens(max_tokens),
            )

        if completion.choice_count == 0:
            raise EmptyCompletion(f"{self._llm.provider_name} returned no choices")

        content = (completion.content or "").strip()
        if not content:
            raise EmptyCompletion("The model returned an empty message")

        return ChatReply(message=content, model=selected, usage=completion.usage)


# ---------------------------------------------------------------------------
# Per-request dependency
# ---------------------------------------------------------------------------


def get_chat_service(
    provider: Annotated[ProviderClient, Depends(get_provider_client)],
    llm_config: Annotated[LLMConfig, Depends(get_llm_config)],
    chat_config: Annotated[ChatConfig, Depends(get_chat_config)],
) -> ChatService:
    """Create a ``ChatService`` per request from explicit dependencies."""
    return ChatService(provider, llm_config, chat_config)
