"""Health probe strategies."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from hostwatch.core.deadline import format_seconds, run_with_deadline
from hostwatch.core.exceptions import (
    ProbeTimeout,
    ProbeTransportError,
    RuntimeControlError,
)
from hostwatch.core.settings import settings
from hostwatch.runtime.base import RuntimeControl, call_with_deadline, find_unit

from .models import (
    ClusteredMode,
    HealthStatus,
    MonitoredApplication,
    MonitoredHost,
    ProbeOutcome,
)

logger = logging.getLogger(__name__)


class Probe(ABC):
    """A health-check strategy."""

    name: str = "probe"

    @abstractmethod
    async def probe(
        self,
        application: MonitoredApplication,
        host: Optional[MonitoredHost],
        timeout: float,
    ) -> ProbeOutcome:
        """Check the application and return a normalized outcome."""


class HttpProbe(Probe):
    """GET the application's health URL.

    2xx/3xx is healthy, 5xx unhealthy, any other response degraded. Timeouts
    and transport errors are unhealthy.
    """

    name = "http"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        grace_seconds: Optional[float] = None,
    ):
        self.grace_seconds = (
            settings.probe_grace_seconds if grace_seconds is None else grace_seconds
        )
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=False,
                headers={"User-Agent": settings.http_probe_user_agent},
                limits=httpx.Limits(
                    max_connections=settings.max_concurrent_checks,
                    max_keepalive_connections=0,
                ),
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client connections."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def probe(
        self,
        application: MonitoredApplication,
        host: Optional[MonitoredHost],
        timeout: float,
    ) -> ProbeOutcome:
        url = application.health_check_url
        try:
            response = await self._fetch(url, timeout)
        except ProbeTimeout:
            return ProbeOutcome(
                status=HealthStatus.UNHEALTHY,
                status_code="TIMEOUT",
                detail=f"Health check timed out after {format_seconds(timeout)}s",
            )
        except ProbeTransportError as e:
            return ProbeOutcome(
                status=HealthStatus.UNHEALTHY, status_code="ERROR", detail=e.message
            )

        code = response.status_code
        if 200 <= code < 400:
            return ProbeOutcome(status=HealthStatus.HEALTHY, status_code=str(code))
        if code >= 500:
            return ProbeOutcome(
                status=HealthStatus.UNHEALTHY,
                status_code=str(code),
                detail=f"Server error: {code} {response.reason_phrase}".rstrip(),
            )
        return ProbeOutcome(
            status=HealthStatus.DEGRADED,
            status_code=str(code),
            detail=f"Non-success status: {code} {response.reason_phrase}".rstrip(),
        )

    async def _fetch(self, url: str, timeout: float) -> httpx.Response:
        """GET ``url`` under the transport timeout and a supervising deadline."""
        client = await self._get_client()
        try:
            return await run_with_deadline(
                client.get(url, timeout=timeout), timeout + self.grace_seconds
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise ProbeTimeout(timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ProbeTransportError(str(e) or type(e).__name__)


class TcpProbe(Probe):
    """Open a TCP connection to the application's domain and port."""

    name = "tcp"

    async def probe(
        self,
        application: MonitoredApplication,
        host: Optional[MonitoredHost],
        timeout: float,
    ) -> ProbeOutcome:
        address, port = application.tcp_target
        try:
            _, writer = await run_with_deadline(
                asyncio.open_connection(address, port), timeout
            )
        except asyncio.TimeoutError:
            # TimeoutError subclasses OSError, so it must be caught first.
            return ProbeOutcome(
                status=HealthStatus.UNHEALTHY,
                status_code="TCP_FAIL",
                detail=f"TCP connection timed out after {format_seconds(timeout)}s",
            )
        except OSError as e:
            return ProbeOutcome(
                status=HealthStatus.UNHEALTHY,
                status_code="TCP_FAIL",
                detail=f"TCP connection failed: {e}",
            )

        writer.close()
        try:
            await run_with_deadline(writer.wait_closed(), 1.0)
        except (asyncio.TimeoutError, OSError):
            pass
        return ProbeOutcome(status=HealthStatus.HEALTHY, status_code="TCP_OK")


class RuntimeStateProbe(Probe):
    """Ask the container runtime whether the application is running."""

    name = "runtime"

    def __init__(self, runtime: RuntimeControl, label_key: Optional[str] = None):
        self.runtime = runtime
        self.label_key = label_key or settings.container_label_key

    async def probe(
        self,
        application: MonitoredApplication,
        host: Optional[MonitoredHost],
        timeout: float,
    ) -> ProbeOutcome:
        if host is None:
            return ProbeOutcome(
                status=HealthStatus.UNKNOWN,
                detail=f"Host {application.host_id} not found",
            )
        try:
            if isinstance(application.mode, ClusteredMode):
                return await self._check_service(application, host, timeout)
            return await self._check_container(application, host, timeout)
        except RuntimeControlError as e:
            logger.warning(
                "Runtime state unavailable",
                extra={"application_id": application.id, "error": e.message},
            )
            return ProbeOutcome(status=HealthStatus.UNKNOWN, detail=e.message)

    async def _check_container(
        self, application: MonitoredApplication, host: MonitoredHost, timeout: float
    ) -> ProbeOutcome:
        units = await call_with_deadline(
            self.runtime.list_units(host, include_stopped=True), timeout, "list_units"
        )
        unit = find_unit(units, application, self.label_key)

        if unit is None:
            return _not_running("Container not found")
        state = unit.state.lower()
        if state == "running":
            return ProbeOutcome(status=HealthStatus.HEALTHY, status_code="RUNNING")
        if state == "paused":
            return ProbeOutcome(
                status=HealthStatus.DEGRADED,
                status_code="NOT_RUNNING",
                detail="Container is paused",
            )
        return _not_running(f"Container state: {unit.state}")

    async def _check_service(
        self, application: MonitoredApplication, host: MonitoredHost, timeout: float
    ) -> ProbeOutcome:
        mode = application.mode
        service = await call_with_deadline(
            self.runtime.inspect_service(host, mode.service_id),
            timeout,
            "inspect_service",
        )
        if service is None:
            return _not_running("Service not found")

        desired = mode.desired_replicas
        running = service.running_replicas
        if running <= 0:
            return _not_running(f"No replicas running (0/{desired})")
        if running < desired:
            return ProbeOutcome(
                status=HealthStatus.DEGRADED,
                status_code="NOT_RUNNING",
                detail=f"Only {running}/{desired} replicas running",
            )
        return ProbeOutcome(status=HealthStatus.HEALTHY, status_code="RUNNING")


def _not_running(detail: str) -> ProbeOutcome:
    return ProbeOutcome(
        status=HealthStatus.UNHEALTHY, status_code="NOT_RUNNING", detail=detail
    )
