"""Health check endpoints.

Provides:
- Basic health check (GET /health)
- Detailed health check with configuration status (GET /health/detailed)
"""

import time
from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from voiceagent.api.deps import AgentServices, get_services

router = APIRouter()

VERSION = "0.1.0"
_STARTED = time.monotonic()


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    timestamp: str
    uptime_seconds: float


class DetailedHealthResponse(BaseModel):
    """Detailed health check response."""

    status: str
    checks: dict[str, str]
    active_sessions: int
    version: str


def _configured(secret) -> str:
    return "configured" if secret.get_secret_value() else "missing"


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint.

    Returns:
        Simple status indicating the API is running.
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC).isoformat(),
        uptime_seconds=round(time.monotonic() - _STARTED, 3),
    )


@router.get("/health/detailed", response_model=DetailedHealthResponse)
async def detailed_health_check(
    services: AgentServices = Depends(get_services),
) -> DetailedHealthResponse:
    """Detailed health check including dependency configuration.

    Upstream APIs are not called; only their credentials are checked.
    """
    settings = services.settings
    checks = {
        "groq": _configured(settings.groq_api_key),
        "deepgram": _configured(settings.deepgram_api_key),
        "elevenlabs": _configured(settings.elevenlabs_api_key),
        "tools": f"{len(services.tools)} registered",
        "synthesis_cache": f"{len(services.cache)}/{services.cache.capacity}",
    }

    missing = [name for name in ("groq", "deepgram", "elevenlabs") if checks[name] != "configured"]
    status = "degraded" if missing else "healthy"

    return DetailedHealthResponse(
        status=status,
        checks=checks,
        active_sessions=services.registry.active_count,
        version=VERSION,
    )
