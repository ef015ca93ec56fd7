"""FastAPI application entry point.

Real-time phone voice agent: Twilio media streams in, agent speech out.

Run with the application factory so settings are read at startup:
    uvicorn voiceagent.main:create_app --factory
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from voiceagent.api.deps import AgentServices, build_services
from voiceagent.api.routes import health, metrics, status
from voiceagent.api.websocket.media_stream import media_stream_endpoint
from voiceagent.config import Settings, get_settings
from voiceagent.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Startup:
    - Initialize logging

    Shutdown:
    - Close active call sessions
    - Close upstream clients
    """
    services: AgentServices = app.state.services
    settings = services.settings

    # Startup
    setup_logging(
        level=settings.log_level,
        enable_file=settings.is_production,
    )
    logger.info(
        f"Voice agent ready (environment: {settings.environment}, "
        f"window: {settings.audio_window_frames} frames, "
        f"tools: {len(services.tools)})"
    )

    yield

    # Shutdown
    await services.close()


def create_app(
    settings: Settings | None = None,
    services: AgentServices | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    if services is None:
        services = build_services(settings or get_settings())
    settings = services.settings

    app = FastAPI(
        title="Voice Agent API",
        description="Real-time phone voice agent session orchestrator",
        version=health.VERSION,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.services = services

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # Call monitoring routes
    app.include_router(status.router, prefix="/api", tags=["Status"])

    # Metrics endpoint for Prometheus scraping
    app.include_router(metrics.router, tags=["Observability"])

    @app.get("/")
    async def index():
        """Service descriptor."""
        return {
            "message": "Voice Agent API",
            "version": health.VERSION,
            "status": "running",
            "endpoints": {
                "health": "/health",
                "websocket": "/voice/stream",
                "status": "/api/status",
                "metrics": "/metrics",
            },
        }

    # WebSocket endpoint for Twilio media streams
    @app.websocket("/voice/stream")
    async def media_stream_ws(websocket: WebSocket):
        """WebSocket endpoint for Twilio media streams."""
        await media_stream_endpoint(websocket, websocket.app.state.services)

    return app
