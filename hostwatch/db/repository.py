"""Data access for monitored targets and the health history log."""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy import func, select, update

from hostwatch.core.exceptions import ApplicationNotFoundError, HostNotFoundError
from hostwatch.core.health.models import (
    ClusteredMode,
    HealthCheckRecord,
    HealthStatus,
    HostStatus,
    MonitoredApplication,
    MonitoredHost,
    ProbeOutcome,
    StandaloneMode,
)

from .database import Database
from .tables import ApplicationRow, HealthCheckRow, HostRow

logger = logging.getLogger(__name__)


def to_application(row: ApplicationRow) -> MonitoredApplication:
    """Build the domain model for an application row."""
    # A clustered app without a service id is located like a container.
    if row.execution_mode == "clustered" and row.service_id:
        mode = ClusteredMode(
            service_id=row.service_id,
            desired_replicas=row.desired_replicas or 1,
        )
    else:
        mode = StandaloneMode(container_name=row.container_name)

    return MonitoredApplication(
        id=row.id,
        uuid=row.uuid,
        name=row.name,
        host_id=row.host_id,
        mode=mode,
        image=row.image,
        health_check_url=row.health_check_url,
        domain=row.domain,
        port=row.port,
        check_interval_seconds=row.check_interval_seconds,
        check_timeout_seconds=row.check_timeout_seconds,
        failure_threshold=row.failure_threshold,
        auto_recovery=row.auto_recovery,
        consecutive_failures=row.consecutive_failures,
        last_checked_at=row.last_checked_at,
    )


class TargetRepository:
    """Reads monitored targets and applies evaluation outcomes to them."""

    def __init__(self, database: Database):
        self.database = database

    async def get_application(self, application_id: int) -> Optional[MonitoredApplication]:
        async with self.database.session() as session:
            row = await session.get(ApplicationRow, application_id)
            return to_application(row) if row else None

    async def get_host(self, host_id: int) -> Optional[MonitoredHost]:
        async with self.database.session() as session:
            row = await session.get(HostRow, host_id)
            return MonitoredHost.model_validate(row) if row else None

    async def list_applications(self) -> List[MonitoredApplication]:
        """Deployed applications, skipping rows whose config is invalid."""
        async with self.database.session() as session:
            result = await session.scalars(
                select(ApplicationRow)
                .where(ApplicationRow.last_deployed_at.is_not(None))
                .order_by(ApplicationRow.id)
            )
            rows = list(result)

        applications = []
        for row in rows:
            try:
                applications.append(to_application(row))
            except ValidationError as e:
                logger.warning(
                    f"Skipping application {row.id} with invalid monitoring config",
                    extra={"application_id": row.id, "errors": e.error_count()},
                )
        return applications

    async def list_hosts(self) -> List[MonitoredHost]:
        async with self.database.session() as session:
            result = await session.scalars(select(HostRow).order_by(HostRow.id))
            return [MonitoredHost.model_validate(row) for row in result]

    async def record_application_check(
        self, application_id: int, outcome: ProbeOutcome, response_time_ms: int
    ) -> Tuple[HealthCheckRecord, int]:
        """Update an application's counters and append its record atomically.

        Returns:
            The stored record and the consecutive-failure count after the update.
        """
        now = datetime.utcnow()
        if outcome.status == HealthStatus.HEALTHY:
            failures = 0
        else:
            failures = ApplicationRow.consecutive_failures + 1

        async with self.database.session() as session:
            result = await session.execute(
                update(ApplicationRow)
                .where(ApplicationRow.id == application_id)
                .values(consecutive_failures=failures, last_checked_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ApplicationNotFoundError(application_id)

            count = await session.scalar(
                select(ApplicationRow.consecutive_failures).where(
                    ApplicationRow.id == application_id
                )
            )
            record = await self._insert_record(
                session,
                application_id=application_id,
                host_id=None,
                outcome=outcome,
                response_time_ms=response_time_ms,
                checked_at=now,
            )
        return record, int(count or 0)

    async def record_host_check(
        self, host_id: int, outcome: ProbeOutcome, response_time_ms: int
    ) -> HealthCheckRecord:
        """Update a host's connectivity state and append its record atomically."""
        now = datetime.utcnow()
        if outcome.status == HealthStatus.HEALTHY:
            values = {
                "status": HostStatus.ONLINE.value,
                "consecutive_failures": 0,
            }
        else:
            values = {
                "status": HostStatus.OFFLINE.value,
                "consecutive_failures": HostRow.consecutive_failures + 1,
                "last_failure_at": now,
            }

        async with self.database.session() as session:
            result = await session.execute(
                update(HostRow)
                .where(HostRow.id == host_id)
                .values(last_health_check_at=now, **values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise HostNotFoundError(host_id)

            return await self._insert_record(
                session,
                application_id=None,
                host_id=host_id,
                outcome=outcome,
                response_time_ms=response_time_ms,
                checked_at=now,
            )

    async def reset_application_failures(self, application_id: int) -> None:
        async with self.database.session() as session:
            await session.execute(
                update(ApplicationRow)
                .where(ApplicationRow.id == application_id)
                .values(consecutive_failures=0)
                .execution_options(synchronize_session=False)
            )

    @staticmethod
    async def _insert_record(
        session,
        *,
        application_id: Optional[int],
        host_id: Optional[int],
        outcome: ProbeOutcome,
        response_time_ms: int,
        checked_at: datetime,
    ) -> HealthCheckRecord:
        record = HealthCheckRecord(
            application_id=application_id,
            host_id=host_id,
            status=outcome.status,
            response_time_ms=max(0, response_time_ms),
            status_code=outcome.status_code,
            error_message=outcome.detail,
            checked_at=checked_at,
        )
        return await HealthHistoryStore.insert(session, record)


class HealthHistoryStore:
    """Append-only health check log with windowed uptime queries."""

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    async def insert(session, record: HealthCheckRecord) -> HealthCheckRecord:
        values = record.model_dump(exclude={"id"})
        values["status"] = record.status.value
        row = HealthCheckRow(**values)
        session.add(row)
        await session.flush()
        return record.model_copy(update={"id": row.id})

    async def append_record(self, record: HealthCheckRecord) -> HealthCheckRecord:
        """Persist a record. Records are never updated or deleted."""
        async with self.database.session() as session:
            return await self.insert(session, record)

    async def history(self, application_id: int, limit: int = 100) -> List[HealthCheckRecord]:
        """Most recent records for an application, newest first."""
        return await self._history(HealthCheckRow.application_id == application_id, limit)

    async def host_history(self, host_id: int, limit: int = 100) -> List[HealthCheckRecord]:
        """Most recent records for a host, newest first."""
        return await self._history(HealthCheckRow.host_id == host_id, limit)

    async def _history(self, owner_clause, limit: int) -> List[HealthCheckRecord]:
        if limit <= 0:
            return []
        async with self.database.session() as session:
            result = await session.scalars(
                select(HealthCheckRow)
                .where(owner_clause)
                .order_by(HealthCheckRow.checked_at.desc(), HealthCheckRow.id.desc())
                .limit(limit)
            )
            return [HealthCheckRecord.model_validate(row) for row in result]

    async def uptime_percentage(
        self,
        application_id: int,
        window: timedelta,
        now: Optional[datetime] = None,
    ) -> float:
        """Share of healthy checks in ``[now - window, now]``, as a percentage.

        No records in the window counts as 100%: absence of data is not
        evidence of downtime. Degraded and unknown results count as down.
        """
        now = now or datetime.utcnow()
        since = now - window

        async with self.database.session() as session:
            result = await session.execute(
                select(HealthCheckRow.status, func.count(HealthCheckRow.id))
                .where(
                    HealthCheckRow.application_id == application_id,
                    HealthCheckRow.checked_at >= since,
                    HealthCheckRow.checked_at <= now,
                )
                .group_by(HealthCheckRow.status)
            )
            counts = {status: count for status, count in result.all()}

        total = sum(counts.values())
        if total == 0:
            return 100.0
        healthy = counts.get(HealthStatus.HEALTHY.value, 0)
        return 100.0 * healthy / total
