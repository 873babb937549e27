"""
Prometheus metrics endpoint.
"""

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

router = APIRouter()


@router.get("/metrics", response_class=PlainTextResponse)
async def metrics(request: Request):
    """Counters and gauges in the Prometheus text exposition format."""
    controller = request.app.state.controller
    return PlainTextResponse(
        controller.context.metrics.render(),
        media_type="text/plain; version=0.0.4",
    )
