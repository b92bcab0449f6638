"""Pydantic models for the REST API."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from chatrelay.core.models import ChatReply, Message


def utc_timestamp() -> str:
    """Current UTC time, ISO-8601 with millisecond precision."""
    return (
        datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class ChatRequest(BaseModel):
    """Request model for ``POST /api/v1/chat``."""

    message: str = Field(description="New user message")
    conversation: list[Message] = Field(
        default_factory=list,
        description="Previous conversation messages, oldest first",
    )
    model: str | None = Field(default=None, description="Requested model id")
    temperature: float | None = Field(default=None)
    max_tokens: int | None = Field(default=None)


class UsageModel(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    """Normalized chat result, shared by REST and GraphQL."""

    success: bool
    message: str | None = None
    error: str | None = None
    usage: UsageModel | None = None
    model: str | None = None
    timestamp: str = Field(default_factory=utc_timestamp)

    @classmethod
    def from_reply(cls, reply: ChatReply) -> "ChatResponse":
        return cls(
            success=True,
            message=reply.message,
            usage=UsageModel(**reply.usage.model_dump()),
            model=reply.model,
        )

    @classmethod
    def failure(cls, error: str) -> "ChatResponse":
        return cls(success=False, error=error)


class HealthStatus(BaseModel):
    status: str = "OK"
    timestamp: str = Field(default_factory=utc_timestamp)
    environment: str | None = None
    version: str
    api: str | None = Field(default=None, description="Upstream provider name")


class ErrorBody(BaseModel):
    detail: str
    code: str
