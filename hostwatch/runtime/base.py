"""Runtime Control interface consumed by the monitoring engine."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Dict, Iterable, List, Optional, TypeVar

from hostwatch.core.deadline import run_with_deadline
from hostwatch.core.exceptions import RuntimeControlError
from hostwatch.core.health.models import (
    MonitoredApplication,
    MonitoredHost,
    StandaloneMode,
)

T = TypeVar("T")


@dataclass
class RuntimeUnit:
    """A container as reported by the runtime."""

    id: str
    name: str
    state: str
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class ServiceState:
    """Replica status of a clustered service."""

    id: str
    name: str
    running_replicas: int
    desired_replicas: Optional[int] = None
    image: Optional[str] = None


class RuntimeControl(ABC):
    """Behavioural contract the engine expects from a container runtime.

    Implementations raise ``RuntimeControlError`` when the runtime API itself
    is unreachable or fails. Absence of a unit or service is not an error:
    lookups return ``None`` and actions return ``False``.
    """

    @abstractmethod
    async def validate_connection(self, host: MonitoredHost) -> bool:
        """Return True when the host's runtime daemon answers."""

    @abstractmethod
    async def engine_version(self, host: MonitoredHost) -> str:
        """Return the runtime engine version running on the host."""

    @abstractmethod
    async def list_units(
        self, host: MonitoredHost, include_stopped: bool = False
    ) -> List[RuntimeUnit]:
        """List containers on the host."""

    @abstractmethod
    async def stop_unit(self, host: MonitoredHost, unit_id: str) -> bool:
        """Stop a container. Returns False if it does not exist."""

    @abstractmethod
    async def start_unit(self, host: MonitoredHost, unit_id: str) -> bool:
        """Start a container. Returns False if it does not exist."""

    @abstractmethod
    async def inspect_service(
        self, host: MonitoredHost, service_id: str
    ) -> Optional[ServiceState]:
        """Return replica status for a service, or None if it does not exist."""

    @abstractmethod
    async def force_update_service(
        self, host: MonitoredHost, service_id: str, image: Optional[str] = None
    ) -> bool:
        """Force a rolling replacement of every task of a service."""

    async def close(self) -> None:
        """Release connections held by the runtime client."""


async def call_with_deadline(
    awaitable: Awaitable[T], timeout: float, operation: str
) -> T:
    """Run a runtime call under the engine's own deadline."""
    try:
        return await run_with_deadline(awaitable, timeout)
    except asyncio.TimeoutError:
        raise RuntimeControlError(
            f"Runtime call '{operation}' timed out after {timeout}s", operation
        )


def find_unit(
    units: Iterable[RuntimeUnit],
    application: MonitoredApplication,
    label_key: str,
) -> Optional[RuntimeUnit]:
    """Locate the container belonging to an application.

    A label naming the application wins over name matching; otherwise the
    first container whose name contains the configured container name, the
    display name or the application UUID (case-insensitive) is returned.
    """
    units = list(units)

    for unit in units:
        if unit.labels.get(label_key) == application.name:
            return unit

    needles = [application.name.lower(), application.uuid.lower()]
    if (
        isinstance(application.mode, StandaloneMode)
        and application.mode.container_name
    ):
        needles.insert(0, application.mode.container_name.lower())

    for needle in needles:
        for unit in units:
            if needle in unit.name.lower():
                return unit
    return None
