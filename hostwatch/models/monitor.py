"""Response models for the monitoring API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from hostwatch.core.health.models import HealthCheckRecord, HealthStatus


class HealthCheckResponse(BaseModel):
    """A health check result as returned to API clients."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    application_id: Optional[int] = None
    host_id: Optional[int] = None
    status: HealthStatus
    response_time_ms: int
    status_code: Optional[str] = None
    error_message: Optional[str] = None
    checked_at: datetime

    @computed_field  # type: ignore[misc]
    @property
    def monitoring_degraded(self) -> bool:
        """True when the target could not be observed, not when it failed."""
        return self.status == HealthStatus.UNKNOWN

    @classmethod
    def from_record(cls, record: HealthCheckRecord) -> "HealthCheckResponse":
        return cls.model_validate(record)


class RecoveryResponse(BaseModel):
    success: bool
    message: str


class UptimeResponse(BaseModel):
    application_id: int
    uptime_percentage: float = Field(..., ge=0, le=100)
    period_hours: int
