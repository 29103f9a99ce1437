"""Request dependencies resolving the engine objects created at startup."""

from typing import Optional

from fastapi import Request

from hostwatch.core.exceptions import ServiceError
from hostwatch.core.health.service import HealthMonitorService
from hostwatch.db.database import Database
from hostwatch.tasks.monitor import MonitorLoop


def get_monitor_service(request: Request) -> HealthMonitorService:
    service = getattr(request.app.state, "monitor_service", None)
    if service is None:
        raise ServiceError("Health monitor is not running", "MONITOR_UNAVAILABLE")
    return service


def get_database(request: Request) -> Optional[Database]:
    return getattr(request.app.state, "database", None)


def get_monitor_loop(request: Request) -> Optional[MonitorLoop]:
    return getattr(request.app.state, "monitor_loop", None)
