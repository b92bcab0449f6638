"""Domain models shared by the trimmer, the provider client and the service."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ROLE_SYSTEM = "system"
ROLE_USER = "user"

Role = Literal["system", "user", "assistant"]


class Message(BaseModel):
    """A single chat message. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: Role = Field(description="Message sender role")
    content: str = Field(description="Message text")


class Usage(BaseModel):
    """Token usage reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class Completion(BaseModel):
    """Normalized provider response (first choice only)."""

    content: str | None = None
    model: str
    finish_reason: str | None = None
    choice_count: int = 0
    usage: Usage = Field(default_factory=Usage)


class ChatReply(BaseModel):
    """Successful outcome of a chat request."""

    message: str
    model: str
    usage: Usage = Field(default_factory=Usage)
