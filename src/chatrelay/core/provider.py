"""ProviderClient: one non-streaming chat completion per call.

Talks to any OpenAI-compatible ``/chat/completions`` endpoint (DeepSeek
by default) through the ``openai`` SDK, and turns HTTP failures into
``ProviderError`` with a message fit to show an end user.

``build_provider`` is entered from the application lifespan: it creates
the client, attaches it to ``app.state``, and closes it on shutdown.
When no API key is configured the client is not created and every chat
request fails with ``ProviderNotConfigured``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

import openai
from fastapi import FastAPI, Request

from chatrelay.configs.config import AppConfig
from chatrelay.configs.system import LLMConfig
from chatrelay.core.exceptions import ProviderError, ProviderNotConfigured
from chatrelay.core.metrics import (
    PROVIDER_ERRORS_TOTAL,
    PROVIDER_LATENCY_SECONDS,
    PROVIDER_TOKENS_TOTAL,
)
from chatrelay.core.models import Completion, Message, Usage
from chatrelay.infra.telemetry import (
    ATTR_PROVIDER_COMPLETION_TOKENS,
    ATTR_PROVIDER_MODEL,
    ATTR_PROVIDER_PROMPT_TOKENS,
    ATTR_PROVIDER_STATUS,
    SPAN_PROVIDER_COMPLETION,
    tracer,
)

logger = logging.getLogger(__name__)

CONTEXT_LENGTH_MARKER = "maximum context length"
RATE_LIMIT_MARKER = "rate limit"
QUOTA_MARKER = "quota"

_SERVER_ERROR_STATUSES = frozenset({500, 502, 503, 504})


def describe_status_error(status: int, detail: str) -> str:
    """Map a provider HTTP status (plus its error text) to a user message."""
    lowered = detail.lower()

    if status == 400:
        if CONTEXT_LENGTH_MARKER in lowered:
            return (
                "The conversation is too long; shorten the message "
                "or clear the history"
            )
        return f"Invalid request: {detail}"
    if status == 401:
        return "The API key is invalid or has expired"
    if status == 403:
        return "No permission to access this model"
    if status == 429:
        if QUOTA_MARKER in lowered and RATE_LIMIT_MARKER not in lowered:
            return "The API quota is exhausted; check the account balance"
        return "Too many requests; please try again later"
    if status in _SERVER_ERROR_STATUSES:
        return "The provider is temporarily unavailable; please try again later"
    return f"Provider API error ({status}): {detail}"


def _error_detail(exc: openai.APIStatusError) -> str:
    """Best human-readable detail from a provider error body."""
    body = exc.body
    if isinstance(body, Mapping):
        detail = body.get("message")
        if isinstance(detail, str) and detail:
            return detail
    return exc.message or "unknown error"


def _to_completion(response: Any, requested_model: str) -> Completion:
    choices = response.choices or []
    first = choices[0] if choices else None
    usage = response.usage
    return Completion(
        content=first.message.content if first is not None else None,
        model=getattr(response, "model", None) or requested_model,
        finish_reason=first.finish_reason if first is not None else None,
        choice_count=len(choices),
        usage=Usage(
            prompt_tokens=(usage.prompt_tokens or 0) if usage else 0,
            completion_tokens=(usage.completion_tokens or 0) if usage else 0,
            total_tokens=(usage.total_tokens or 0) if usage else 0,
        ),
    )


class ProviderClient:
    """OpenAI-compatible chat-completion client.

    Public API
    ----------
    ``complete(messages, model=..., temperature=..., max_tokens=...)``
        Sends *messages* verbatim and returns a normalized ``Completion``.
        Raises ``ProviderError`` on any HTTP or transport failure.

    ``aclose()``
        Closes the underlying HTTP connection pool.
    """

    def __init__(self, config: LLMConfig) -> None:
        self._config = config
        self._openai = openai.AsyncOpenAI(
            base_url=config.endpoint,
            api_key=config.api_key,
            timeout=config.request_timeout.total_seconds(),
            max_retries=config.max_retries,
            default_headers={"User-Agent": config.user_agent},
        )

    @property
    def name(self) -> str:
        return self._config.provider_name

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> Completion:
        """Run one chat completion for *messages* on *model*."""
        start = time.monotonic()
        with tracer.start_as_current_span(SPAN_PROVIDER_COMPLETION) as span:
            span.set_attribute(ATTR_PROVIDER_MODEL, model)
            try:
                response = await self._openai.chat.completions.create(
                    model=model,
                    messages=[m.model_dump() for m in messages],
                    temperature=temperature,
                    max_tokens=max_tokens,
                    top_p=self._config.top_p,
                    frequency_penalty=self._config.frequency_penalty,
                    presence_penalty=self._config.presence_penalty,
                    stream=False,
                )
            except openai.APIStatusError as exc:
                span.set_attribute(ATTR_PROVIDER_STATUS, exc.status_code)
                PROVIDER_ERRORS_TOTAL.labels(status=str(exc.status_code)).inc()
                logger.error(
                    "%s API error: status=%d body=%s",
                    self.name,
                    exc.status_code,
                    exc.body,
                )
                raise ProviderError(
                    describe_status_error(exc.status_code, _error_detail(exc)),
                    status_code=exc.status_code,
                    provider_code=exc.code,
                ) from exc
            except openai.APIConnectionError as exc:
                PROVIDER_ERRORS_TOTAL.labels(status="connection").inc()
                logger.error("%s API unreachable: %s", self.name, exc)
                raise ProviderError(
                    f"Could not reach {self.name}; please try again later"
                ) from exc
            finally:
                PROVIDER_LATENCY_SECONDS.labels(model_name=model).observe(
                    time.monotonic() - start
                )

            completion = _to_completion(response, model)
            span.set_attribute(
                ATTR_PROVIDER_PROMPT_TOKENS, completion.usage.prompt_tokens
            )
            span.set_attribute(
                ATTR_PROVIDER_COMPLETION_TOKENS, completion.usage.completion_tokens
            )

        PROVIDER_TOKENS_TOTAL.labels(model_name=model, kind="prompt").inc(
            completion.usage.prompt_tokens
        )
        PROVIDER_TOKENS_TOTAL.labels(model_name=model, kind="completion").inc(
            completion.usage.completion_tokens
        )
        return completion

    async def aclose(self) -> None:
        await self._openai.close()


# ---------------------------------------------------------------------------
# Lifespan resource
# ---------------------------------------------------------------------------


@asynccontextmanager
async def build_provider(
    app: FastAPI,
    config: AppConfig,
) -> AsyncGenerator[None, None]:
    """Create a ``ProviderClient``, attach to ``app.state``; close on shutdown."""
    if not config.llm.api_key:
        logger.warning(
            "No %s API key configured (CHATRELAY_LLM__API_KEY); "
            "chat requests will fail until it is set.",
            config.llm.provider_name,
        )
        app.state.provider = None
        yield
        return

    provider = ProviderClient(config.llm)
    app.state.provider = provider
    logger.info(
        "ProviderClient ready (provider=%s, endpoint=%s)",
        config.llm.provider_name,
        config.llm.endpoint,
    )
    try:
        yield
    finally:
        app.state.provider = None
        await provider.aclose()


# ---------------------------------------------------------------------------
# Per-request dependency: reads from app.state
# ---------------------------------------------------------------------------


def get_provider_client(request: Request) -> ProviderClient:
    """Return the ``ProviderClient`` from ``app.state``."""
    provider = getattr(request.app.state, "provider", None)
    if provider is None:
        raise ProviderNotConfigured("The provider API key is not configured")
    return provider
