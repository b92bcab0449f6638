"""Liveness endpoint."""

from fastapi import APIRouter

from chatrelay.configs.config import AppConfig

from .deps import AppConfigDep
from .models import HealthStatus

router = APIRouter(tags=["health"])


def build_health_status(config: AppConfig) -> HealthStatus:
    return HealthStatus(
        environment=config.server.environment,
        version=config.server.version,
        api=config.llm.provider_name,
    )


@router.get("/health")
async def health(config: AppConfigDep) -> HealthStatus:
    """Report liveness; does not contact the provider."""
    return build_health_status(config)
