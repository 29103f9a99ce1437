"""Health evaluation for applications and hosts."""

import asyncio
import logging
import time
from typing import Optional

from hostwatch.core.deadline import run_with_deadline
from hostwatch.core.settings import settings
from hostwatch.db.repository import TargetRepository
from hostwatch.runtime.base import RuntimeControl, call_with_deadline

from .models import (
    HealthCheckRecord,
    HealthStatus,
    MonitoredApplication,
    MonitoredHost,
    ProbeOutcome,
)
from .recovery import RecoveryEngine
from .selector import ProbeSelector

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class HealthEvaluator:
    """Runs one check for an application and applies its consequences.

    A failed check is data, not an error: anything raised by a probe becomes
    an ``unknown`` outcome. Only persistence failures propagate.
    """

    def __init__(
        self,
        selector: ProbeSelector,
        repository: TargetRepository,
        recovery: RecoveryEngine,
        grace_seconds: Optional[float] = None,
    ):
        self.selector = selector
        self.repository = repository
        self.recovery = recovery
        self.grace_seconds = (
            settings.probe_grace_seconds if grace_seconds is None else grace_seconds
        )

    async def evaluate(
        self, application: MonitoredApplication, host: Optional[MonitoredHost]
    ) -> HealthCheckRecord:
        probe = self.selector.select(application)
        timeout = application.check_timeout_seconds
        started = time.perf_counter()

        try:
            # Outer guard for probes that overrun their own deadline.
            outcome = await run_with_deadline(
                probe.probe(application, host, timeout),
                timeout + 2 * self.grace_seconds,
            )
        except asyncio.TimeoutError:
            outcome = ProbeOutcome(
                status=HealthStatus.UNKNOWN,
                detail=f"{probe.name} probe abandoned after {timeout}s",
            )
        except Exception as e:
            logger.error(
                f"Health probe failed for application {application.id}",
                extra={"application_id": application.id, "probe": probe.name},
                exc_info=True,
            )
            outcome = ProbeOutcome(
                status=HealthStatus.UNKNOWN, detail=str(e) or type(e).__name__
            )

        response_time_ms = _elapsed_ms(started)

        # The counter update and the record insert commit together; once
        # started they finish even if this evaluation is cancelled.
        record, failures = await asyncio.shield(
            self.repository.record_application_check(
                application.id, outcome, response_time_ms
            )
        )

        if outcome.status != HealthStatus.HEALTHY:
            logger.warning(
                f"Application {application.id} health check failed "
                f"({failures} consecutive failures)",
                extra={
                    "application_id": application.id,
                    "status": outcome.status.value,
                    "probe": probe.name,
                    "consecutive_failures": failures,
                    "detail": outcome.detail,
                },
            )

        if self.should_recover(application, outcome.status, failures):
            logger.warning(
                f"Triggering auto-recovery for application {application.id} "
                f"after {failures} consecutive failures",
                extra={"application_id": application.id},
            )
            self.recovery.dispatch(application.id)

        return record

    @staticmethod
    def should_recover(
        application: MonitoredApplication, status: HealthStatus, failures: int
    ) -> bool:
        """Recovery only follows sustained, observed unhealthiness.

        Degraded is not an outage and unknown is not evidence of failure.
        """
        return (
            status == HealthStatus.UNHEALTHY
            and application.auto_recovery
            and failures >= application.failure_threshold
        )


class HostHealthEvaluator:
    """Checks that a host's runtime daemon is reachable."""

    def __init__(
        self,
        runtime: RuntimeControl,
        repository: TargetRepository,
        timeout: Optional[float] = None,
    ):
        self.runtime = runtime
        self.repository = repository
        self.timeout = timeout or settings.host_check_timeout_seconds

    async def evaluate(self, host: MonitoredHost) -> HealthCheckRecord:
        started = time.perf_counter()
        try:
            outcome = await self._probe(host)
        except Exception as e:
            logger.error(
                f"Host health check failed for {host.id}",
                extra={"host_id": host.id},
                exc_info=True,
            )
            outcome = ProbeOutcome(
                status=HealthStatus.UNKNOWN, detail=str(e) or type(e).__name__
            )
        response_time_ms = _elapsed_ms(started)

        if outcome.status != HealthStatus.HEALTHY:
            logger.warning(
                f"Host {host.id} is offline",
                extra={
                    "host_id": host.id,
                    "status": outcome.status.value,
                    "consecutive_failures": host.consecutive_failures + 1,
                },
            )

        return await asyncio.shield(
            self.repository.record_host_check(host.id, outcome, response_time_ms)
        )

    async def _probe(self, host: MonitoredHost) -> ProbeOutcome:
        connected = await call_with_deadline(
            self.runtime.validate_connection(host), self.timeout, "validate_connection"
        )
        if not connected:
            return ProbeOutcome(
                status=HealthStatus.UNHEALTHY,
                status_code="CONNECTION_FAILED",
                detail="Cannot connect to Docker daemon",
            )

        try:
            version = await call_with_deadline(
                self.runtime.engine_version(host), self.timeout, "engine_version"
            )
        except Exception as e:
            logger.debug(f"Could not read engine version for host {host.id}: {e}")
            return ProbeOutcome(status=HealthStatus.HEALTHY, status_code="CONNECTED")
        return ProbeOutcome(status=HealthStatus.HEALTHY, status_code=f"Docker {version}")
