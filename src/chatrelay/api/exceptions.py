"""Global exception handlers for the REST surface.

GraphQL resolvers never let chat errors escape (they answer with
``success=false``), so these only fire for REST routes and for failures
raised while resolving dependencies, e.g. a missing provider API key.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chatrelay.core.exceptions import (
    EmptyCompletion,
    InvalidChatRequest,
    ProviderError,
    ProviderNotConfigured,
)
from chatrelay.core.metrics import CHAT_REQUESTS_TOTAL

from .models import ErrorBody

logger = logging.getLogger(__name__)

API_KEY_HINT = "Set the CHATRELAY_LLM__API_KEY environment variable"


def add_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers on ``app``."""

    @app.exception_handler(InvalidChatRequest)
    async def handle_invalid_request(
        request: Request, exc: InvalidChatRequest
    ) -> JSONResponse:
        CHAT_REQUESTS_TOTAL.labels(interface="rest", status="error").inc()
        return JSONResponse(
            status_code=400,
            content=ErrorBody(detail=exc.message, code=exc.code).model_dump(),
        )

    @app.exception_handler(ProviderNotConfigured)
    async def handle_not_configured(
        request: Request, exc: ProviderNotConfigured
    ) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={
                "error": exc.message,
                "message": API_KEY_HINT,
                "code": exc.code,
            },
        )

    @app.exception_handler(ProviderError)
    async def handle_provider_error(
        request: Request, exc: ProviderError
    ) -> JSONResponse:
        CHAT_REQUESTS_TOTAL.labels(interface="rest", status="error").inc()
        if exc.status_code == 429:
            body = ErrorBody(detail=exc.message, code="RATE_LIMITED")
            return JSONResponse(
                status_code=429,
                content=body.model_dump(),
                headers={"Retry-After": "5"},
            )
        return JSONResponse(
            status_code=502,
            content=ErrorBody(detail=exc.message, code=exc.code).model_dump(),
        )

    @app.exception_handler(EmptyCompletion)
    async def handle_empty_completion(
        request: Request, exc: EmptyCompletion
    ) -> JSONResponse:
        CHAT_REQUESTS_TOTAL.labels(interface="rest", status="error").inc()
        return JSONResponse(
            status_code=502,
            content=ErrorBody(detail=exc.message, code=exc.code).model_dump(),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal Server Error", "message": str(exc)},
        )
