"""Plain-HTTP chat endpoint."""

from fastapi import APIRouter

from chatrelay.core.metrics import CHAT_REQUESTS_TOTAL

from .deps import ChatServiceDep
from .models import ChatRequest, ChatResponse

router = APIRouter(prefix="/api/v1", tags=["chat"])


@router.post("/chat")
async def chat(chat_request: ChatRequest, chat_service: ChatServiceDep) -> ChatResponse:
    """Forward one message (plus optional history) and return the reply.

    Validation and provider failures are raised as domain exceptions and
    rendered by the handlers in ``chatrelay.api.exceptions``.
    """
    reply = await chat_service.chat(
        chat_request.message,
        chat_request.conversation,
        model=chat_request.model,
        temperature=chat_request.temperature,
        max_tokens=chat_request.max_tokens,
    )
    CHAT_REQUESTS_TOTAL.labels(interface="rest", status="ok").inc()
    return ChatResponse.from_reply(reply)
