"""Chat-domain exceptions.

The API layer maps these to HTTP responses (REST) or to
``success=false`` envelopes (GraphQL).
"""

from __future__ import annotations


class ChatRelayError(Exception):
    """Base class for errors surfaced to callers with a readable message."""

    code = "CHAT_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidChatRequest(ChatRelayError):
    """The caller's message or conversation failed validation."""

    code = "INVALID_REQUEST"


class ProviderNotConfigured(ChatRelayError):
    """No provider API key is configured."""

    code = "PROVIDER_NOT_CONFIGURED"


class ProviderError(ChatRelayError):
    """The provider call failed (HTTP error, timeout or connection error)."""

    code = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.provider_code = provider_code


class EmptyCompletion(ChatRelayError):
    """The provider answered without choices or with blank content."""

    code = "EMPTY_COMPLETION"
