"""Tests for the target repository and health history store."""

from datetime import datetime

import pytest

from hostwatch.core.exceptions import (
    ApplicationNotFoundError,
    HostNotFoundError,
    PersistenceError,
)
from hostwatch.core.health.models import (
    ClusteredMode,
    HealthStatus,
    HostStatus,
    ProbeOutcome,
    StandaloneMode,
)
from hostwatch.db.repository import HealthHistoryStore, TargetRepository
from hostwatch.db.tables import HealthCheckRow

HEALTHY = ProbeOutcome(status=HealthStatus.HEALTHY, status_code="200")
UNHEALTHY = ProbeOutcome(
    status=HealthStatus.UNHEALTHY, status_code="503", detail="Server error: 503"
)


@pytest.fixture
def targets(database) -> TargetRepository:
    return TargetRepository(database)


@pytest.fixture
def history(database) -> HealthHistoryStore:
    return HealthHistoryStore(database)


class TestTargetRepository:
    """Test TargetRepository."""

    async def test_application_modes(self, targets, make_host, make_application):
        host_id = await make_host()
        standalone = await make_application(host_id, container_name="web_app")
        clustered = await make_application(
            host_id, name="api", execution_mode="clustered", service_id="svc-1", desired_replicas=2
        )
        no_service = await make_application(host_id, name="worker", execution_mode="clustered")

        assert (await targets.get_application(standalone)).mode == StandaloneMode(
            container_name="web_app"
        )
        assert (await targets.get_application(clustered)).mode == ClusteredMode(
            service_id="svc-1", desired_replicas=2
        )
        assert isinstance((await targets.get_application(no_service)).mode, StandaloneMode)

    async def test_missing_targets(self, targets):
        assert await targets.get_application(1) is None
        assert await targets.get_host(1) is None

    async def test_list_targets(self, targets, make_host, make_application):
        host_id = await make_host()
        await make_application(host_id, name="web")
        await make_application(host_id, name="api")

        assert [a.name for a in await targets.list_applications()] == ["web", "api"]
        assert len(await targets.list_hosts()) == 1

    async def test_list_skips_undeployed(self, targets, make_host, make_application):
        host_id = await make_host()
        await make_application(host_id, name="web")
        await make_application(host_id, name="draft", last_deployed_at=None)

        assert [a.name for a in await targets.list_applications()] == ["web"]

    @pytest.mark.parametrize(
        "fields",
        [
            {"check_interval_seconds": 0},
            {"check_timeout_seconds": 0},
            {"port": 0},
            {"port": 65536},
        ],
    )
    async def test_invalid_monitoring_config_rejected(
        self, make_host, make_application, fields
    ):
        host_id = await make_host()
        with pytest.raises(PersistenceError):
            await make_application(host_id, **fields)

    async def test_application_check_updates_counter_and_record(
        self, targets, history, make_host, make_application
    ):
        host_id = await make_host()
        app_id = await make_application(host_id)

        record, failures = await targets.record_application_check(app_id, UNHEALTHY, 120)
        assert failures == 1
        assert record.id is not None
        assert record.status_code == "503"
        assert record.error_message == "Server error: 503"
        assert record.response_time_ms == 120

        _, failures = await targets.record_application_check(app_id, UNHEALTHY, 80)
        assert failures == 2
        _, failures = await targets.record_application_check(app_id, HEALTHY, 15)
        assert failures == 0

        stored = await history.history(app_id)
        assert [r.id for r in stored] == sorted((r.id for r in stored), reverse=True)
        assert len(stored) == 3

    async def test_negative_response_time_is_clamped(
        self, targets, make_host, make_application
    ):
        host_id = await make_host()
        app_id = await make_application(host_id)

        record, _ = await targets.record_application_check(app_id, HEALTHY, -3)

        assert record.response_time_ms == 0

    async def test_unknown_application_writes_nothing(self, targets, history):
        with pytest.raises(ApplicationNotFoundError):
            await targets.record_application_check(42, UNHEALTHY, 10)

        assert await history.history(42) == []

    async def test_host_check(self, targets, make_host):
        host_id = await make_host()

        await targets.record_host_check(host_id, UNHEALTHY, 10)
        host = await targets.get_host(host_id)
        assert host.status == HostStatus.OFFLINE
        assert host.consecutive_failures == 1

        await targets.record_host_check(host_id, HEALTHY, 10)
        host = await targets.get_host(host_id)
        assert host.status == HostStatus.ONLINE
        assert host.consecutive_failures == 0

    async def test_unknown_host(self, targets):
        with pytest.raises(HostNotFoundError):
            await targets.record_host_check(42, HEALTHY, 10)

    async def test_reset_failures(self, targets, make_host, make_application):
        host_id = await make_host()
        app_id = await make_application(host_id, consecutive_failures=9)

        await targets.reset_application_failures(app_id)

        assert (await targets.get_application(app_id)).consecutive_failures == 0


class TestHealthHistoryStore:
    """Test HealthHistoryStore."""

    async def test_owner_constraint_enforced_by_database(self, database, make_host):
        host_id = await make_host()

        with pytest.raises(PersistenceError):
            async with database.session() as session:
                session.add(
                    HealthCheckRow(
                        application_id=None,
                        host_id=None,
                        status="healthy",
                        checked_at=datetime.utcnow(),
                    )
                )
                await session.flush()

        with pytest.raises(PersistenceError):
            async with database.session() as session:
                session.add(
                    HealthCheckRow(
                        application_id=host_id,
                        host_id=host_id,
                        status="healthy",
                        checked_at=datetime.utcnow(),
                    )
                )
                await session.flush()

    async def test_history_for_unknown_target_is_empty(self, history):
        assert await history.history(7) == []
        assert await history.host_history(7) == []
