"""
S3 File Uploader - Operational FastAPI Application

Exposes the state of a running upload pipeline:
- Health (all workers running)
- Status (per-worker state, queue occupancy, version)
- Prometheus metrics
"""

import sys
import threading
from typing import Tuple

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from app.api import health, metrics
from domains.file_ingest.lifecycle import LifecycleController


LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str = "INFO"):
    """Configure loguru to log to stdout at ``level``."""
    logger.remove()
    logger.add(sys.stdout, format=LOG_FORMAT, level=level.upper())


def create_app(controller: LifecycleController) -> FastAPI:
    """Build the API for a given pipeline controller."""
    settings = controller.settings

    app = FastAPI(
        title="S3 File Uploader",
        version=settings.version,
        description="Watches a directory and uploads new files to S3",
    )
    app.state.controller = controller

    # Exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.error(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.log_level == "DEBUG" else "An error occurred"
            }
        )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(metrics.router, tags=["Metrics"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "S3 File Uploader",
            "version": settings.version,
            "state": controller.state.value,
            "health": "/health",
            "status": "/status",
            "metrics": "/metrics",
        }

    return app


def serve_in_background(app: FastAPI, host: str, port: int) -> Tuple[uvicorn.Server, threading.Thread]:
    """Run uvicorn on a daemon thread; set ``server.should_exit`` to stop it."""
    config = uvicorn.Config(app, host=host, port=port, log_level="warning")
    # Off the main thread uvicorn leaves signal handling to the pipeline
    server = uvicorn.Server(config)

    thread = threading.Thread(target=server.run, name="http-server", daemon=True)
    thread.start()
    logger.info(f"Main web server started on {host}:{port}")
    return server, thread
