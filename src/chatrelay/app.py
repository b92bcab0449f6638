"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from chatrelay.api.chat import router as chat_router
from chatrelay.api.exceptions import add_exception_handlers
from chatrelay.api.graphql import build_graphql_router
from chatrelay.api.health import router as health_router
from chatrelay.configs.config import AppConfig, get_app_config
from chatrelay.core.metrics import setup_metrics
from chatrelay.core.provider import build_provider
from chatrelay.infra.cors import add_cors
from chatrelay.infra.logging import setup_logging
from chatrelay.infra.telemetry import init_telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the provider client from the config the app was created with."""
    async with build_provider(app, app.state.config):
        logger.info("chatrelay started")
        yield
        logger.info("chatrelay shutting down")


def get_app(config: AppConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    An explicit *config* is pinned for every request dependency too;
    without one, per-request config is re-read from the environment.
    """
    pinned = config is not None
    if config is None:
        config = get_app_config()

    app = FastAPI(
        title="chatrelay",
        description="GraphQL and HTTP proxy for an OpenAI-compatible chat API",
        version=config.server.version,
        lifespan=lifespan,
    )
    app.state.config = config
    if pinned:
        app.dependency_overrides[get_app_config] = lambda: app.state.config

    setup_logging(config.logging)
    add_cors(app, config.cors)
    add_exception_handlers(app)
    setup_metrics(app, config)
    init_telemetry(app, config.tracing)

    app.include_router(health_router)
    app.include_router(chat_router)
    app.include_router(build_graphql_router(), prefix="/graphql")

    return app


app = get_app()
