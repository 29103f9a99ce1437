"""Health monitoring and recovery endpoints."""

from datetime import timedelta
from typing import List

from fastapi import APIRouter, Depends, Query, status

from hostwatch.core.health.service import HealthMonitorService
from hostwatch.models.monitor import (
    HealthCheckResponse,
    RecoveryResponse,
    UptimeResponse,
)

from .deps import get_monitor_service

router = APIRouter(prefix="/api/v1/monitor", tags=["monitor"])

_CHECK_EXAMPLE = {
    "id": 42,
    "application_id": 7,
    "status": "unhealthy",
    "response_time_ms": 10012,
    "status_code": "TIMEOUT",
    "error_message": "Health check timed out after 10s",
    "checked_at": "2024-11-30T14:30:52.123456",
    "monitoring_degraded": False,
}


@router.post(
    "/applications/{application_id}/check",
    status_code=status.HTTP_200_OK,
    response_model=HealthCheckResponse,
    summary="Check application health",
    description="Run a health check for one application now. Concurrent requests "
    "for the same application share a single probe.",
    responses={
        200: {
            "description": "Check completed (the result itself may be unhealthy)",
            "content": {"application/json": {"example": _CHECK_EXAMPLE}},
        },
        404: {"description": "Application not found"},
    },
)
async def check_application(
    application_id: int,
    service: HealthMonitorService = Depends(get_monitor_service),
) -> HealthCheckResponse:
    record = await service.check_application_health(application_id)
    return HealthCheckResponse.from_record(record)


@router.post(
    "/hosts/{host_id}/check",
    response_model=HealthCheckResponse,
    summary="Check host health",
    description="Check that the host's container runtime is reachable",
    responses={404: {"description": "Host not found"}},
)
async def check_host(
    host_id: int,
    service: HealthMonitorService = Depends(get_monitor_service),
) -> HealthCheckResponse:
    record = await service.check_host_health(host_id)
    return HealthCheckResponse.from_record(record)


@router.post(
    "/applications/monitor-all",
    response_model=List[HealthCheckResponse],
    summary="Monitor all applications",
    description="Check every application whose check interval has elapsed",
)
async def monitor_all_applications(
    service: HealthMonitorService = Depends(get_monitor_service),
) -> List[HealthCheckResponse]:
    records = await service.monitor_all_applications()
    return [HealthCheckResponse.from_record(r) for r in records]


@router.post(
    "/hosts/monitor-all",
    response_model=List[HealthCheckResponse],
    summary="Monitor all hosts",
    description="Check every host whose check interval has elapsed",
)
async def monitor_all_hosts(
    service: HealthMonitorService = Depends(get_monitor_service),
) -> List[HealthCheckResponse]:
    records = await service.monitor_all_hosts()
    return [HealthCheckResponse.from_record(r) for r in records]


@router.post(
    "/applications/{application_id}/recover",
    response_model=RecoveryResponse,
    summary="Recover application",
    description="Restart the application's container, or force a rolling update "
    "of its service, and wait for the outcome",
    responses={
        200: {
            "content": {
                "application/json": {
                    "example": {"success": True, "message": "Recovery succeeded"}
                }
            }
        }
    },
)
async def recover_application(
    application_id: int,
    service: HealthMonitorService = Depends(get_monitor_service),
) -> RecoveryResponse:
    success = await service.attempt_recovery(application_id)
    return RecoveryResponse(
        success=success,
        message="Recovery succeeded" if success else "Recovery failed",
    )


@router.get(
    "/applications/{application_id}/history",
    response_model=List[HealthCheckResponse],
    summary="Application health history",
    description="Most recent health checks for an application, newest first",
)
async def application_history(
    application_id: int,
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    service: HealthMonitorService = Depends(get_monitor_service),
) -> List[HealthCheckResponse]:
    records = await service.get_history(application_id, limit)
    return [HealthCheckResponse.from_record(r) for r in records]


@router.get(
    "/hosts/{host_id}/history",
    response_model=List[HealthCheckResponse],
    summary="Host health history",
    description="Most recent health checks for a host, newest first",
)
async def host_history(
    host_id: int,
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    service: HealthMonitorService = Depends(get_monitor_service),
) -> List[HealthCheckResponse]:
    records = await service.get_host_history(host_id, limit)
    return [HealthCheckResponse.from_record(r) for r in records]


@router.get(
    "/applications/{application_id}/uptime",
    response_model=UptimeResponse,
    summary="Application uptime",
    description="Percentage of healthy checks over a trailing window. "
    "An application with no checks in the window reports 100%.",
    responses={
        200: {
            "content": {
                "application/json": {
                    "example": {
                        "application_id": 7,
                        "uptime_percentage": 99.3,
                        "period_hours": 24,
                    }
                }
            }
        }
    },
)
async def application_uptime(
    application_id: int,
    hours: int = Query(24, ge=1, le=24 * 365, description="Window length in hours"),
    service: HealthMonitorService = Depends(get_monitor_service),
) -> UptimeResponse:
    uptime = await service.get_uptime(application_id, timedelta(hours=hours))
    return UptimeResponse(
        application_id=application_id,
        uptime_percentage=uptime,
        period_hours=hours,
    )
