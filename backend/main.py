"""
Tri-Store Benchmark - Main Application Entry Point

FastAPI application that benchmarks Cassandra, MongoDB and CockroachDB with
live progress over server-sent events and WebSocket.
"""

from contextlib import asynccontextmanager
from typing import Any, cast

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
import logging

from backend.config import settings
from backend.connectors.registry import ConnectionRegistry
from backend.core.orchestrator import TestOrchestrator
from backend.core.progress_stream import encode_event
from backend.core.sequential_runner import SequentialRunner
from backend.models import DATABASE_ORDER, OPERATION_ORDER

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=settings.LOG_FORMAT,
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler(settings.LOG_FILE)
        if settings.LOG_FILE
        else logging.NullHandler(),
    ],
)

# Suppress verbose driver internals (connection handshakes, topology changes)
logging.getLogger("cassandra.cluster").setLevel(logging.WARNING)
logging.getLogger("cassandra.connection").setLevel(logging.WARNING)
logging.getLogger("pymongo").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

APP_NAME = "Tri-Store Benchmark"
APP_VERSION = "0.1.0"

STREAM_MODES = ("all", "repeat")


def build_services(registry: ConnectionRegistry) -> tuple[TestOrchestrator, SequentialRunner]:
    """Wire the orchestrator and runner around a connection registry."""
    orchestrator = TestOrchestrator(registry)
    return orchestrator, SequentialRunner(orchestrator)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager - handles startup and shutdown events.

    Backends are connected lazily on first use, so startup never fails on
    an unreachable database.
    """
    # Startup
    logger.info(f"🚀 {APP_NAME} starting up...")
    logger.info(
        f"🔧 Environment: {'Development' if settings.APP_DEBUG else 'Production'}"
    )

    registry = getattr(app.state, "registry", None) or ConnectionRegistry()
    app.state.registry = registry
    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator, app.state.runner = build_services(registry)

    yield

    # Shutdown
    logger.info(f"🛑 {APP_NAME} shutting down...")
    try:
        await registry.close_all()
        logger.info("✅ All database connections closed")
    except Exception as e:
        logger.error(f"Error closing database connections: {e}")


# Initialize FastAPI application
app = FastAPI(
    title=APP_NAME,
    description="Write/read/update benchmark across Cassandra, MongoDB and CockroachDB",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

# Configure CORS for local development
if settings.APP_DEBUG:
    app.add_middleware(
        cast(Any, CORSMiddleware),
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info(f"🔓 CORS enabled for origins: {settings.CORS_ORIGINS}")


# ============================================================================
# Health Check & Info Endpoints
# ============================================================================


@app.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        dict: Service status and the connection state of each backend
    """
    registry: ConnectionRegistry = request.app.state.registry
    checks = await registry.health_checks()
    return {
        "status": "degraded" if "unhealthy" in checks.values() else "healthy",
        "service": "tri-store-benchmark",
        "version": APP_VERSION,
        "environment": "development" if settings.APP_DEBUG else "production",
        "connections": registry.connection_states(),
        "checks": checks,
    }


@app.get("/api/info")
async def api_info():
    """
    API information endpoint.

    Returns:
        dict: Application configuration and capabilities
    """
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "databases": [{"id": db.value, "label": db.label} for db in DATABASE_ORDER],
        "operations": [op.value for op in OPERATION_ORDER],
        "workload": {
            "write_record_count": settings.WRITE_RECORD_COUNT,
            "read_record_limit": settings.READ_RECORD_LIMIT,
            "write_batch_size": settings.WRITE_BATCH_SIZE,
            "repeat_count": settings.REPEAT_COUNT,
        },
        "endpoints": {
            "api_docs": "/api/docs",
            "health": "/health",
            "run_all": "/api/test/all",
            "run_all_stream": "/api/test/all-stream",
            "run_repeat": "/api/test/repeat",
            "websocket": "/ws/test/{all|repeat}",
        },
    }


# ============================================================================
# API Routes
# ============================================================================

from backend.api.routes import tests  # noqa: E402

app.include_router(tests.router, prefix="/api/test", tags=["tests"])


# ============================================================================
# WebSocket endpoint
# ============================================================================


@app.websocket("/ws/test/{mode}")
async def websocket_test_progress(websocket: WebSocket, mode: str):
    """
    WebSocket endpoint streaming the same events as the SSE routes.

    Args:
        websocket: WebSocket connection
        mode: "all" (matrix once) or "repeat" (repeated matrix)
    """
    await websocket.accept()

    if mode not in STREAM_MODES:
        await websocket.send_json({"type": "error", "error": f"Unknown mode: {mode}"})
        await websocket.close(code=1008)
        return

    runner: SequentialRunner = websocket.app.state.runner
    events = runner.stream_matrix() if mode == "all" else runner.stream_repeated()
    logger.info(f"📡 WebSocket connected for {mode} run")

    try:
        async for event in events:
            await websocket.send_json(encode_event(event))
        await websocket.close()
    except WebSocketDisconnect:
        logger.info(f"📡 WebSocket disconnected during {mode} run")
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        try:
            await websocket.close()
        except RuntimeError:
            logger.debug("WebSocket already closed")
    finally:
        await events.aclose()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backend.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=settings.APP_RELOAD,
        log_level=settings.LOG_LEVEL.lower(),
    )
