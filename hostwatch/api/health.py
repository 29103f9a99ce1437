"""Liveness and readiness of the engine itself."""

import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from hostwatch import __version__
from hostwatch.core.health.models import HealthStatus
from hostwatch.db.database import Database
from hostwatch.models.status import EngineStatus, ReadinessStatus
from hostwatch.services.system_metrics import SystemMonitor
from hostwatch.tasks.monitor import MonitorLoop

from .deps import get_database, get_monitor_loop

router = APIRouter(tags=["health"])

# Application start time for uptime calculation
_start_time = time.time()


@router.get(
    "/health",
    response_model=EngineStatus,
    summary="Engine health",
    description="Whether the monitoring engine itself is healthy. This reports on "
    "hostwatch, not on the applications it monitors.",
    responses={
        200: {
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "timestamp": "2024-11-30T14:30:52.123456",
                        "version": "0.1.0",
                        "uptime_seconds": 3600.5,
                        "database": "healthy",
                        "scheduler_running": True,
                        "system": {
                            "cpu_percent": 15.2,
                            "memory_percent": 45.8,
                            "load_average": [0.5, 0.8, 1.2],
                        },
                    }
                }
            }
        }
    },
)
async def engine_health(
    database: Optional[Database] = Depends(get_database),
    loop: Optional[MonitorLoop] = Depends(get_monitor_loop),
) -> EngineStatus:
    database_ok = database is not None and await database.ping()
    scheduler_running = loop is not None and loop.running

    if not database_ok:
        overall = HealthStatus.UNHEALTHY
    elif not scheduler_running:
        overall = HealthStatus.DEGRADED
    else:
        overall = HealthStatus.HEALTHY

    return EngineStatus(
        status=overall,
        timestamp=datetime.utcnow(),
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 2),
        database=HealthStatus.HEALTHY if database_ok else HealthStatus.UNHEALTHY,
        scheduler_running=scheduler_running,
        system=await SystemMonitor.get_system_metrics(),
    )


@router.get(
    "/ready",
    response_model=ReadinessStatus,
    summary="Readiness check",
    description="Ready once the database answers; returns 503 otherwise",
)
async def readiness(
    response: Response,
    database: Optional[Database] = Depends(get_database),
    loop: Optional[MonitorLoop] = Depends(get_monitor_loop),
) -> ReadinessStatus:
    database_ok = database is not None and await database.ping()
    if not database_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessStatus(
        ready=database_ok,
        database_reachable=database_ok,
        scheduler_running=loop is not None and loop.running,
    )
