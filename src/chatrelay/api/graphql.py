"""GraphQL endpoint (``/graphql``) built with strawberry.

Schema::

    type Query { hello: String!  health: HealthStatus! }
    type Mutation { chat(input: ChatInput!): ChatResponse! }

The ``chat`` mutation never raises: every failure is returned as
``success: false`` with an ``error`` message and a timestamp.
"""

import logging
from typing import Annotated, Any, Optional

import strawberry
from pydantic import ValidationError
from strawberry.fastapi import GraphQLRouter
from strawberry.types import Info

from chatrelay.core.exceptions import ChatRelayError, InvalidChatRequest
from chatrelay.core.metrics import CHAT_REQUESTS_TOTAL
from chatrelay.core.models import Message
from chatrelay.core.service import ChatService

from .deps import AppConfigDep, ChatServiceDep
from .health import build_health_status
from .models import ChatResponse as ChatResponseModel

logger = logging.getLogger(__name__)

HELLO_MESSAGE = "Hello from chatrelay: GraphQL in front of an LLM provider!"


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


@strawberry.input
class MessageInput:
    role: str
    content: str


@strawberry.input
class ChatInput:
    message: str
    conversation: Optional[list[MessageInput]] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@strawberry.type
class Usage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@strawberry.type
class ChatResponse:
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    usage: Optional[Usage] = None
    model: Optional[str] = None
    timestamp: Optional[str] = None

    @classmethod
    def from_model(cls, model: ChatResponseModel) -> "ChatResponse":
        usage = model.usage
        return cls(
            success=model.success,
            message=model.message,
            error=model.error,
            usage=Usage(**usage.model_dump()) if usage is not None else None,
            model=model.model,
            timestamp=model.timestamp,
        )


@strawberry.type
class HealthStatus:
    status: str
    timestamp: str
    environment: Optional[str]
    version: str


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


def _to_messages(conversation: Optional[list[MessageInput]]) -> list[Message]:
    try:
        return [
            Message(role=m.role, content=m.content)  # type: ignore[arg-type]
            for m in conversation or []
        ]
    except ValidationError as exc:
        roles = sorted({m.role for m in conversation or []})
        raise InvalidChatRequest(
            f"Conversation roles must be system, user or assistant (got {roles})"
        ) from exc


async def _run_chat(service: ChatService, chat_input: ChatInput) -> ChatResponseModel:
    try:
        reply = await service.chat(
            chat_input.message,
            _to_messages(chat_input.conversation),
            model=chat_input.model,
            temperature=chat_input.temperature,
            max_tokens=chat_input.max_tokens,
        )
    except ChatRelayError as exc:
        CHAT_REQUESTS_TOTAL.labels(interface="graphql", status="error").inc()
        return ChatResponseModel.failure(exc.message)
    except Exception as exc:
        logger.exception("Chat mutation failed")
        CHAT_REQUESTS_TOTAL.labels(interface="graphql", status="error").inc()
        return ChatResponseModel.failure(f"Error while processing request: {exc}")

    CHAT_REQUESTS_TOTAL.labels(interface="graphql", status="ok").inc()
    return ChatResponseModel.from_reply(reply)


@strawberry.type
class Query:
    @strawberry.field
    def hello(self) -> str:
        return HELLO_MESSAGE

    @strawberry.field
    def health(self, info: Info) -> HealthStatus:
        status = build_health_status(info.context["config"])
        return HealthStatus(
            status=status.status,
            timestamp=status.timestamp,
            environment=status.environment,
            version=status.version,
        )


@strawberry.type
class Mutation:
    @strawberry.mutation
    async def chat(
        self,
        info: Info,
        chat_input: Annotated[ChatInput, strawberry.argument(name="input")],
    ) -> ChatResponse:
        result = await _run_chat(info.context["chat_service"], chat_input)
        return ChatResponse.from_model(result)


schema = strawberry.Schema(query=Query, mutation=Mutation)


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


async def get_graphql_context(
    chat_service: ChatServiceDep,
    config: AppConfigDep,
) -> dict[str, Any]:
    """Per-request resolver context (merged with strawberry's defaults)."""
    return {"chat_service": chat_service, "config": config}


def build_graphql_router() -> GraphQLRouter:
    return GraphQLRouter(
        schema,
        context_getter=get_graphql_context,
        graphql_ide=None,
    )

