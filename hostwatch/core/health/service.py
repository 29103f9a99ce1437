"""Health monitoring service orchestrator."""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

import httpx

from hostwatch.core.exceptions import ApplicationNotFoundError, HostNotFoundError
from hostwatch.core.settings import settings
from hostwatch.db.database import Database
from hostwatch.db.repository import HealthHistoryStore, TargetRepository
from hostwatch.runtime.base import RuntimeControl

from .evaluator import HealthEvaluator, HostHealthEvaluator
from .models import EPOCH, HealthCheckRecord, MonitoredApplication, MonitoredHost
from .probes import HttpProbe, RuntimeStateProbe, TcpProbe
from .recovery import RecoveryEngine
from .scheduler import ScheduleEntry, Scheduler
from .selector import ProbeSelector

logger = logging.getLogger(__name__)


class HealthMonitorService:
    """Public operations of the health monitoring and auto-recovery engine."""

    def __init__(
        self,
        database: Database,
        runtime: RuntimeControl,
        http_client: Optional[httpx.AsyncClient] = None,
        max_concurrent_checks: Optional[int] = None,
    ):
        self.database = database
        self.runtime = runtime
        self.targets = TargetRepository(database)
        self.history = HealthHistoryStore(database)

        self.http_probe = HttpProbe(client=http_client)
        self.selector = ProbeSelector(
            http_probe=self.http_probe,
            tcp_probe=TcpProbe(),
            runtime_probe=RuntimeStateProbe(runtime),
        )
        self.recovery = RecoveryEngine(runtime, self.targets)
        self.evaluator = HealthEvaluator(self.selector, self.targets, self.recovery)
        self.host_evaluator = HostHealthEvaluator(runtime, self.targets)
        self.scheduler = Scheduler(max_concurrent_checks)

    async def check_application_health(self, application_id: int) -> HealthCheckRecord:
        """Check one application now.

        Raises:
            ApplicationNotFoundError: If the application does not exist.
            PersistenceError: If the result could not be stored.
        """
        return await self.scheduler.submit(
            self.scheduler.applications,
            application_id,
            lambda: self._evaluate_application_by_id(application_id),
        )

    async def check_host_health(self, host_id: int) -> HealthCheckRecord:
        """Check one host now.

        Raises:
            HostNotFoundError: If the host does not exist.
            PersistenceError: If the result could not be stored.
        """
        return await self.scheduler.submit(
            self.scheduler.hosts, host_id, lambda: self._evaluate_host_by_id(host_id)
        )

    async def monitor_all_applications(
        self, now: Optional[datetime] = None
    ) -> List[HealthCheckRecord]:
        """Check every deployed application whose interval has elapsed."""
        applications = await self.targets.list_applications()
        hosts = {host.id: host for host in await self.targets.list_hosts()}

        entries = [
            ScheduleEntry(
                key=application.id,
                next_due=application.next_due(),
                evaluate=self._application_evaluation(
                    application, hosts.get(application.host_id)
                ),
            )
            for application in applications
        ]
        return await self.scheduler.run_pass(self.scheduler.applications, entries, now)

    async def monitor_all_hosts(
        self, now: Optional[datetime] = None
    ) -> List[HealthCheckRecord]:
        """Check every host whose interval has elapsed."""
        interval = timedelta(seconds=settings.host_check_interval_seconds)
        entries = [
            ScheduleEntry(
                key=host.id,
                next_due=(host.last_health_check_at or EPOCH) + interval,
                evaluate=self._host_evaluation(host),
            )
            for host in await self.targets.list_hosts()
        ]
        return await self.scheduler.run_pass(self.scheduler.hosts, entries, now)

    async def attempt_recovery(self, application_id: int) -> bool:
        """Run recovery for an application and report whether it succeeded."""
        return await self.recovery.attempt(application_id)

    async def get_history(
        self, application_id: int, limit: int = 100
    ) -> List[HealthCheckRecord]:
        return await self.history.history(application_id, limit)

    async def get_host_history(self, host_id: int, limit: int = 100) -> List[HealthCheckRecord]:
        return await self.history.host_history(host_id, limit)

    async def get_uptime(self, application_id: int, window: timedelta) -> float:
        return await self.history.uptime_percentage(application_id, window)

    async def close(self) -> None:
        await self.recovery.close()
        await self.http_probe.close()

    async def _evaluate_application_by_id(self, application_id: int) -> HealthCheckRecord:
        application = await self.targets.get_application(application_id)
        if application is None:
            logger.warning(
                f"Application {application_id} not found for health check",
                extra={"application_id": application_id},
            )
            raise ApplicationNotFoundError(application_id)
        host = await self.targets.get_host(application.host_id)
        return await self.evaluator.evaluate(application, host)

    async def _evaluate_host_by_id(self, host_id: int) -> HealthCheckRecord:
        host = await self.targets.get_host(host_id)
        if host is None:
            logger.warning(
                f"Host {host_id} not found for health check", extra={"host_id": host_id}
            )
            raise HostNotFoundError(host_id)
        return await self.host_evaluator.evaluate(host)

    def _application_evaluation(
        self, application: MonitoredApplication, host: Optional[MonitoredHost]
    ):
        async def evaluate() -> HealthCheckRecord:
            return await self.evaluator.evaluate(application, host)

        return evaluate

    def _host_evaluation(self, host: MonitoredHost):
        async def evaluate() -> HealthCheckRecord:
            return await self.host_evaluator.evaluate(host)

        return evaluate
