"""Prometheus metrics for chatrelay.

Business metrics that complement the auto-instrumented HTTP metrics
provided by ``prometheus-fastapi-instrumentator``.

All metrics use the ``chatrelay_`` prefix.
"""

import logging

from fastapi import FastAPI
from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

from chatrelay.configs.config import AppConfig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Chat request metrics
# ---------------------------------------------------------------------------

CHAT_REQUESTS_TOTAL = Counter(
    "chatrelay_chat_requests_total",
    "Total chat requests, by interface and outcome",
    ["interface", "status"],  # interface: graphql | rest; status: ok | error
)

# ---------------------------------------------------------------------------
# Provider metrics
# ---------------------------------------------------------------------------

PROVIDER_LATENCY_SECONDS = Histogram(
    "chatrelay_provider_latency_seconds",
    "Latency of chat-completion calls to the provider",
    ["model_name"],
    buckets=(0.25, 0.5, 1, 2, 5, 10, 20, 30, 60, 120),
)

PROVIDER_ERRORS_TOTAL = Counter(
    "chatrelay_provider_errors_total",
    "Total failed provider calls, by HTTP status",
    ["status"],  # HTTP status code, or "connection"
)

PROVIDER_TOKENS_TOTAL = Counter(
    "chatrelay_provider_tokens_total",
    "Tokens reported by the provider",
    ["model_name", "kind"],  # kind: prompt | completion
)

# ---------------------------------------------------------------------------
# Prompt budget metrics
# ---------------------------------------------------------------------------

PROMPT_TRIMMED_TOTAL = Counter(
    "chatrelay_prompt_trimmed_total",
    "Conversations that had history dropped to fit the token budget",
    ["model_name"],
)

PROMPT_MESSAGES_DROPPED_TOTAL = Counter(
    "chatrelay_prompt_messages_dropped_total",
    "History messages dropped to fit the token budget",
    ["model_name"],
)

PROMPT_ESTIMATED_TOKENS = Histogram(
    "chatrelay_prompt_estimated_tokens",
    "Estimated prompt tokens after trimming",
    ["model_name"],
    buckets=(64, 256, 1024, 2048, 4096, 8192, 16384, 32768, 65536, 131072),
)


# ---------------------------------------------------------------------------
# App wiring
# ---------------------------------------------------------------------------


def setup_metrics(app: FastAPI, config: AppConfig) -> None:
    """Attach HTTP instrumentation and the ``/metrics`` endpoint to *app*.

    Must run before the app starts serving (it adds middleware).
    """
    if not config.server.metrics_enabled:
        logger.info("Prometheus metrics disabled.")
        return

    Instrumentator(
        should_instrument_requests_inprogress=True,
        excluded_handlers=config.tracing.excluded_urls,
    ).instrument(app).expose(app, endpoint="/metrics")

    logger.info("Prometheus metrics initialised")
