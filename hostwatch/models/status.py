"""Models for the engine's own liveness and readiness endpoints."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from hostwatch.core.health.models import HealthStatus


class SystemMetrics(BaseModel):
    """System resource metrics."""

    cpu_percent: float = Field(..., description="CPU usage percentage")
    memory_percent: float = Field(..., description="Memory usage percentage")
    load_average: List[float] = Field(
        ..., description="System load average (1, 5, 15 min)"
    )


class EngineStatus(BaseModel):
    """Liveness of the monitoring engine itself."""

    status: HealthStatus
    timestamp: datetime
    version: str
    uptime_seconds: float
    database: HealthStatus
    scheduler_running: bool
    system: SystemMetrics


class ReadinessStatus(BaseModel):
    """Whether the engine can serve requests."""

    ready: bool
    database_reachable: bool
    scheduler_running: bool
