"""
Health and status endpoints.
"""

from datetime import datetime

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

from app.models.schemas import HealthResponse, StatusResponse, WorkerStatusModel

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Healthy only while every worker is running. A worker that failed to
    set up its transfer client, or that exited during shutdown, makes the
    service report 500.
    """
    controller = request.app.state.controller
    statuses = controller.worker_statuses()
    running = sum(1 for status in statuses if status.running)

    for status in statuses:
        if not status.running:
            logger.debug(f"Worker {status.id} is not running")

    healthy = controller.healthy()
    body = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        timestamp=datetime.now(),
        workers_running=running,
        workers_total=len(statuses),
        version=controller.settings.version,
    )

    if healthy:
        return body
    return JSONResponse(status_code=500, content=body.model_dump(mode="json"))


@router.get("/status", response_model=StatusResponse)
async def status(request: Request):
    """
    Per-worker running state and queue occupancy.
    """
    controller = request.app.state.controller

    return StatusResponse(
        workers=[
            WorkerStatusModel(id=s.id, running=s.running)
            for s in controller.worker_statuses()
        ],
        version=controller.settings.version,
        state=controller.state.value,
        queue_length=len(controller.queue),
        queue_capacity=controller.queue.capacity,
        in_flight=len(controller.locks),
        uptime_seconds=round(controller.uptime, 3),
    )
