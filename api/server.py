"""
LIFE OS API Server - observer surface for the running engine.

create_app(scheduler) builds a FastAPI app bound to one scheduler.
The daemon serves it with uvicorn when started with --api-port.
"""

import logging
import os
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from api.engine_router import engine_router
from api.response_models import HealthResponse
from api.sse_router import sse_router
from life_os.scheduler import CycleScheduler

logger = logging.getLogger(__name__)


def create_app(scheduler: CycleScheduler) -> FastAPI:
    app = FastAPI(
        title="LIFE OS API",
        description="Observer API for the autonomous life-management engine",
        version="1.0.0",
    )
    app.state.scheduler = scheduler

    # CORS middleware - configurable via CORS_ORIGINS env var
    cors_origins_env = os.getenv("CORS_ORIGINS", "*")
    cors_origins = (
        ["*"] if cors_origins_env == "*" else [o.strip() for o in cors_origins_env.split(",")]
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(engine_router, prefix="/api/engine")
    app.include_router(sse_router, prefix="/api")

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "engine_running": request.app.state.scheduler.is_running(),
        }

    @app.get("/api/metrics", response_class=PlainTextResponse)
    async def metrics(request: Request):
        """Prometheus-format metrics endpoint."""
        return request.app.state.scheduler.metrics.registry.to_prometheus()

    return app
