"""Health monitoring and auto-recovery engine.

Import ``HealthMonitorService`` from ``.service``; the db layer imports these models.
"""

from .models import (
    ClusteredMode,
    HealthCheckRecord,
    HealthStatus,
    HostStatus,
    MonitoredApplication,
    MonitoredHost,
    ProbeOutcome,
    StandaloneMode,
)

__all__ = [
    "HealthStatus",
    "HostStatus",
    "StandaloneMode",
    "ClusteredMode",
    "MonitoredApplication",
    "MonitoredHost",
    "ProbeOutcome",
    "HealthCheckRecord",
]
