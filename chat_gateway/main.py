"""
Chat Gateway main application.

Serves the chat WebSocket (/ws), the admin API (/api/admin) and the
health and metrics probes.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from slowapi.errors import RateLimitExceeded

from shared.config.settings import settings
from shared.config.logging import setup_logging, chat_gateway_logger as logger
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler
from chat_gateway.admin import router as admin_router
from chat_gateway.components.core.constants import parse_allowed_origins
from chat_gateway.components.endpoints.handlers import ChatEndpoint
from chat_gateway.components.metrics.prometheus import generate_prometheus_metrics
from chat_gateway.connection_manager import ConnectionManager


# Global connection manager
manager = ConnectionManager()


# =============================================================================
# Lifespan and background tasks
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Starts the heartbeat cleanup task; on exit closes every connection.
    """
    setup_logging()

    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error", error=error)
        raise RuntimeError(
            f"Production configuration errors: {'; '.join(secret_errors)}. "
            "Server will not start with insecure configuration."
        )

    logger.info(
        "Starting Chat Gateway",
        port=settings.chat_gateway_port,
        env=settings.environment,
        admin_enabled=bool(settings.admin_password),
    )

    cleanup_task = asyncio.create_task(start_heartbeat_cleanup(), name="heartbeat_cleanup")

    yield

    logger.info("Shutting down Chat Gateway")
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass

    manager.shutdown()
    # Let channel writers flush their close frames
    await asyncio.sleep(0)


async def start_heartbeat_cleanup():
    """
    Periodically reap silent sessions and purge expired bans.

    A stale session goes through the same teardown as a network drop, so
    a device that comes back within the grace period keeps its name.
    """
    while True:
        try:
            await asyncio.sleep(settings.heartbeat_cleanup_interval)

            stale_cleaned = manager.cleanup_stale_sessions()
            if stale_cleaned > 0:
                logger.info("Cleaned up stale sessions", count=stale_cleaned)

            bans_purged = manager.purge_expired_bans()
            if bans_purged > 0:
                logger.debug("Purged expired bans", count=bans_purged)

        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error("Error in heartbeat cleanup", error=str(e), exc_info=True)


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Chat Relay Gateway",
    description="Real-time group chat with reconnection grace periods and moderation",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.manager = manager
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Add HTTPS variants of the configured origins for the admin UI
allowed_origins = parse_allowed_origins(settings)
allowed_origins += [
    origin.replace("http://", "https://")
    for origin in allowed_origins
    if origin.startswith("http://")
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(admin_router)


# =============================================================================
# Health Check
# =============================================================================


@app.get("/healthz", response_class=PlainTextResponse)
async def liveness():
    """Liveness probe."""
    return "OK"


@app.get("/ws/health")
async def health_check():
    """Health check with connection statistics."""
    try:
        stats = manager.get_stats_sync()
    except Exception as e:
        logger.warning("Failed to get stats in health check", error=str(e))
        stats = {"error": "stats_unavailable"}
    return {
        "status": "shutting_down" if manager.is_shutting_down() else "healthy",
        "service": "chat-gateway",
        "version": app.version,
        "environment": settings.environment,
        **stats,
    }


# =============================================================================
# Prometheus Metrics Endpoint
# =============================================================================


@app.get("/ws/metrics")
async def prometheus_metrics():
    """
    Prometheus-compatible metrics endpoint.

    Usage:
        curl http://localhost:8080/ws/metrics

    Configure Prometheus scrape:
        scrape_configs:
          - job_name: 'chat-gateway'
            static_configs:
              - targets: ['localhost:8080']
            metrics_path: '/ws/metrics'
    """
    return PlainTextResponse(
        content=generate_prometheus_metrics(manager),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# =============================================================================
# WebSocket Endpoint
# =============================================================================


@app.websocket("/ws")
async def chat_websocket(
    websocket: WebSocket,
    mode: str = Query("rich", description="Client mode: rich or plain"),
):
    """WebSocket endpoint for chat clients."""
    endpoint = ChatEndpoint(websocket, manager, mode)
    await endpoint.run()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chat_gateway.main:app",
        host="0.0.0.0",
        port=settings.chat_gateway_port,
        reload=settings.debug,
    )
