"""Automatic recovery of unhealthy applications."""

import asyncio
import logging
from typing import Dict, Optional

from hostwatch.core.exceptions import RecoveryActionFailed, TargetNotFound
from hostwatch.core.settings import settings
from hostwatch.db.repository import TargetRepository
from hostwatch.runtime.base import RuntimeControl, call_with_deadline, find_unit

from .models import ClusteredMode, MonitoredApplication, MonitoredHost

logger = logging.getLogger(__name__)


class RecoveryEngine:
    """Restarts containers and force-updates services.

    At most one recovery runs per application. A threshold crossing while a
    recovery for the same application is in flight is suppressed; a manual
    request joins the running attempt instead.
    """

    def __init__(
        self,
        runtime: RuntimeControl,
        repository: TargetRepository,
        restart_delay: Optional[float] = None,
        call_timeout: Optional[float] = None,
        label_key: Optional[str] = None,
    ):
        self.runtime = runtime
        self.repository = repository
        self.restart_delay = (
            settings.recovery_restart_delay_seconds
            if restart_delay is None
            else restart_delay
        )
        self.call_timeout = call_timeout or settings.recovery_timeout_seconds
        self.label_key = label_key or settings.container_label_key
        self._in_flight: Dict[int, "asyncio.Task[bool]"] = {}

    def is_recovering(self, application_id: int) -> bool:
        return application_id in self._in_flight

    def dispatch(self, application_id: int) -> Optional["asyncio.Task[bool]"]:
        """Start a recovery in the background unless one is already running."""
        if application_id in self._in_flight:
            logger.info(
                f"Recovery already in progress for application {application_id}",
                extra={"application_id": application_id},
            )
            return None

        task = asyncio.create_task(self._recover_by_id(application_id))
        self._in_flight[application_id] = task

        def _forget(done: "asyncio.Task[bool]") -> None:
            if self._in_flight.get(application_id) is done:
                del self._in_flight[application_id]

        task.add_done_callback(_forget)
        return task

    async def attempt(self, application_id: int) -> bool:
        """Recover now and wait for the outcome."""
        task = self._in_flight.get(application_id) or self.dispatch(application_id)
        return await asyncio.shield(task)

    async def close(self) -> None:
        """Cancel recoveries still in flight."""
        tasks = list(self._in_flight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _recover_by_id(self, application_id: int) -> bool:
        try:
            application = await self.repository.get_application(application_id)
            if application is None:
                logger.warning(
                    f"Cannot recover application {application_id}: not found",
                    extra={"application_id": application_id},
                )
                return False
            host = await self.repository.get_host(application.host_id)
        except Exception:
            logger.error(
                f"Recovery failed for application {application_id}",
                extra={"application_id": application_id},
                exc_info=True,
            )
            return False
        return await self.recover(application, host)

    async def recover(
        self, application: MonitoredApplication, host: Optional[MonitoredHost]
    ) -> bool:
        """Run the remediation for the application's execution mode.

        Never raises: failures are logged and reported as False, and the
        failure counter is only reset after a successful action.
        """
        logger.info(
            f"Attempting recovery for application {application.id} ({application.name})",
            extra={"application_id": application.id},
        )
        try:
            if host is None:
                raise TargetNotFound(f"Host {application.host_id} not found")
            if isinstance(application.mode, ClusteredMode):
                await self._force_update_service(application, host)
            else:
                await self._restart_container(application, host)
            await self.repository.reset_application_failures(application.id)
        except (TargetNotFound, RecoveryActionFailed) as e:
            logger.warning(
                f"Recovery failed for application {application.id}: {e.message}",
                extra={"application_id": application.id, "error_code": e.error_code},
            )
            return False
        except Exception:
            logger.error(
                f"Recovery failed for application {application.id}",
                extra={"application_id": application.id},
                exc_info=True,
            )
            return False

        logger.info(
            f"Recovery successful for application {application.id}",
            extra={"application_id": application.id},
        )
        return True

    async def _force_update_service(
        self, application: MonitoredApplication, host: MonitoredHost
    ) -> None:
        service_id = application.mode.service_id
        service = await call_with_deadline(
            self.runtime.inspect_service(host, service_id),
            self.call_timeout,
            "inspect_service",
        )
        if service is None:
            raise TargetNotFound(f"Service {service_id} not found")

        image = application.image or service.image
        updated = await call_with_deadline(
            self.runtime.force_update_service(host, service_id, image),
            self.call_timeout,
            "force_update_service",
        )
        if not updated:
            raise RecoveryActionFailed(
                f"Forced update of service {service_id} failed", "force_update"
            )
        logger.info(
            f"Forced update of service {service_id}",
            extra={"application_id": application.id, "image": image},
        )

    async def _restart_container(
        self, application: MonitoredApplication, host: MonitoredHost
    ) -> None:
        units = await call_with_deadline(
            self.runtime.list_units(host, include_stopped=True),
            self.call_timeout,
            "list_units",
        )
        unit = find_unit(units, application, self.label_key)
        if unit is None:
            raise TargetNotFound(f"Container for {application.name} not found")

        stopped = await call_with_deadline(
            self.runtime.stop_unit(host, unit.id), self.call_timeout, "stop_unit"
        )
        if not stopped:
            raise RecoveryActionFailed(f"Could not stop container {unit.id}", "stop")

        await asyncio.sleep(self.restart_delay)

        started = await call_with_deadline(
            self.runtime.start_unit(host, unit.id), self.call_timeout, "start_unit"
        )
        if not started:
            raise RecoveryActionFailed(f"Could not start container {unit.id}", "start")
        logger.info(
            f"Restarted container {unit.id}",
            extra={"application_id": application.id, "container": unit.name},
        )
