"""Call monitoring endpoints.

Provides:
- System status with live calls and cache stats (GET /api/status)
- Session listing and detail (GET /api/sessions, GET /api/sessions/{id})
- Sweeping of leaked sessions (POST /api/cleanup)
- Synthesis cache reset (DELETE /api/cache)
"""

from __future__ import annotations

import os
import platform
import time
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from voiceagent.api.deps import AgentServices, get_services
from voiceagent.logging_config import get_logger

logger: Any = get_logger(__name__)

router = APIRouter()

_STARTED = time.monotonic()


class CleanupRequest(BaseModel):
    """Sessions older than max_age_ms are closed and removed."""

    max_age_ms: int | None = Field(default=None, ge=0)


class CleanupResponse(BaseModel):
    success: bool
    cleared: int
    message: str


class SessionListResponse(BaseModel):
    count: int
    sessions: list[dict[str, Any]]


class SessionDetailResponse(BaseModel):
    session_id: str
    summary: dict[str, Any]
    stats: dict[str, Any]
    metrics: dict[str, Any]
    history: list[dict[str, str]]


class CacheClearResponse(BaseModel):
    success: bool
    cleared: int


@router.get("/status")
async def system_status(services: AgentServices = Depends(get_services)) -> dict[str, Any]:
    """Live calls, conversation memory totals and synthesis cache stats."""
    sessions = services.registry.sessions()

    return {
        "server": {
            "uptime_seconds": round(time.monotonic() - _STARTED, 3),
            "python_version": platform.python_version(),
            "platform": platform.system().lower(),
            "pid": os.getpid(),
            "environment": services.settings.environment,
        },
        "calls": {
            "active": len(sessions),
            "sessions": [session.summary() for session in sessions],
        },
        "memory": {
            "active_sessions": len(sessions),
            "total_messages": sum(len(session.memory) for session in sessions),
        },
        "cache": {"tts": services.cache.stats()},
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(services: AgentServices = Depends(get_services)) -> SessionListResponse:
    sessions = [
        {**session.summary(), "memory": session.memory.stats()}
        for session in services.registry.sessions()
    ]
    return SessionListResponse(count=len(sessions), sessions=sessions)


@router.get("/sessions/{session_id}", response_model=SessionDetailResponse)
async def get_session(
    session_id: str,
    services: AgentServices = Depends(get_services),
) -> SessionDetailResponse:
    session = services.registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")

    return SessionDetailResponse(
        session_id=session_id,
        summary=session.summary(),
        stats=session.memory.stats(),
        metrics=session.metrics.to_dict(),
        history=[turn.to_dict() for turn in session.memory.history()],
    )


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_sessions(
    body: CleanupRequest | None = None,
    services: AgentServices = Depends(get_services),
) -> CleanupResponse:
    """Sweep sessions whose stop event never arrived."""
    max_age_ms = services.settings.session_max_age_ms
    if body is not None and body.max_age_ms is not None:
        max_age_ms = body.max_age_ms

    cleared = services.registry.sweep(max_age_ms)
    logger.info(f"Cleanup requested (max age {max_age_ms}ms): cleared {cleared}")

    return CleanupResponse(
        success=True,
        cleared=cleared,
        message=f"Cleared {cleared} old sessions",
    )


@router.delete("/cache", response_model=CacheClearResponse)
async def clear_synthesis_cache(services: AgentServices = Depends(get_services)) -> CacheClearResponse:
    cleared = services.cache.clear()
    return CacheClearResponse(success=True, cleared=cleared)
