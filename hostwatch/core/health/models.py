"""Health monitoring data models."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Annotated, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Never-checked targets are due immediately.
EPOCH = datetime(1970, 1, 1)


class HealthStatus(str, Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class HostStatus(str, Enum):
    """Connectivity of an execution host."""

    ONLINE = "online"
    OFFLINE = "offline"


class StandaloneMode(BaseModel):
    """A single container managed directly on one host."""

    kind: Literal["standalone"] = "standalone"
    container_name: Optional[str] = Field(
        None, description="Container name to match; defaults to the display name"
    )


class ClusteredMode(BaseModel):
    """A replicated service managed by the cluster orchestrator."""

    kind: Literal["clustered"] = "clustered"
    service_id: str = Field(..., min_length=1)
    desired_replicas: int = Field(1, ge=1)


ExecutionMode = Annotated[
    Union[StandaloneMode, ClusteredMode], Field(discriminator="kind")
]


class MonitoredApplication(BaseModel):
    """A deployed workload instance under monitoring."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: str
    name: str
    host_id: int
    mode: ExecutionMode = Field(default_factory=StandaloneMode)
    image: Optional[str] = None
    health_check_url: Optional[str] = None
    domain: Optional[str] = None
    port: Optional[int] = Field(None, ge=1, le=65535)
    check_interval_seconds: int = Field(60, ge=1)
    check_timeout_seconds: int = Field(10, ge=1)
    failure_threshold: int = Field(3, ge=1)
    auto_recovery: bool = True
    consecutive_failures: int = Field(0, ge=0)
    last_checked_at: Optional[datetime] = None

    @property
    def tcp_target(self) -> Optional[Tuple[str, int]]:
        """Host and port for a TCP probe, when both are configured."""
        if self.domain and self.port:
            return self.domain, self.port
        return None

    def next_due(self) -> datetime:
        """When the next scheduled check should run."""
        last = self.last_checked_at or EPOCH
        return last + timedelta(seconds=self.check_interval_seconds)


class MonitoredHost(BaseModel):
    """An execution host running workloads."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    docker_url: Optional[str] = None
    status: HostStatus = HostStatus.ONLINE
    consecutive_failures: int = Field(0, ge=0)
    last_health_check_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None


class ProbeOutcome(BaseModel):
    """Normalized result of a single probe."""

    model_config = ConfigDict(frozen=True)

    status: HealthStatus
    status_code: Optional[str] = None
    detail: Optional[str] = None


class HealthCheckRecord(BaseModel):
    """Immutable record of one health check."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: Optional[int] = None
    application_id: Optional[int] = None
    host_id: Optional[int] = None
    status: HealthStatus
    response_time_ms: int = Field(0, ge=0)
    status_code: Optional[str] = None
    error_message: Optional[str] = None
    checked_at: datetime

    @model_validator(mode="after")
    def check_single_owner(self) -> "HealthCheckRecord":
        """A record belongs to exactly one application or host."""
        if (self.application_id is None) == (self.host_id is None):
            raise ValueError(
                "Health check record must reference exactly one of "
                "application_id or host_id"
            )
        return self
