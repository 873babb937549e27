"""
Pydantic models for the S3 File Uploader API.

Shared data models across the application.
"""

from datetime import datetime
from typing import List
from pydantic import BaseModel


# =====================================================
# Status Models
# =====================================================

class WorkerStatusModel(BaseModel):
    """Liveness of one worker."""
    id: int
    running: bool


class StatusResponse(BaseModel):
    """Status endpoint response model."""
    workers: List[WorkerStatusModel]
    version: str
    state: str
    queue_length: int
    queue_capacity: int
    in_flight: int
    uptime_seconds: float


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    timestamp: datetime
    workers_running: int
    workers_total: int
    version: str
