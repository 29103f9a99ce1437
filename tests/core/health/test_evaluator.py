"""Tests for application and host health evaluation."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from hostwatch.core.exceptions import (
    ApplicationNotFoundError,
    HostNotFoundError,
    RuntimeControlError,
)
from hostwatch.core.health.models import HealthStatus, HostStatus


async def failures_of(service, application_id: int) -> int:
    application = await service.targets.get_application(application_id)
    return application.consecutive_failures


class TestHealthEvaluator:
    """Test counter updates, persistence and the recovery gate."""

    @pytest.fixture
    async def app_id(self, make_host, make_application):
        host_id = await make_host()
        return await make_application(host_id, failure_threshold=3)

    async def test_healthy_check(self, service, runtime, container, app_id):
        runtime.units = [container("web-1")]

        record = await service.check_application_health(app_id)

        assert record.id is not None
        assert record.application_id == app_id
        assert record.host_id is None
        assert record.status == HealthStatus.HEALTHY
        assert record.response_time_ms >= 0
        application = await service.targets.get_application(app_id)
        assert application.consecutive_failures == 0
        assert application.last_checked_at == record.checked_at

    async def test_counter_increments_and_resets(
        self, service, runtime, container, make_host, make_application
    ):
        host_id = await make_host()
        app_id = await make_application(host_id, auto_recovery=False)
        running = [container("web-1")]

        observed = []
        for units in ([], [], [], running, []):
            runtime.units = units
            await service.check_application_health(app_id)
            observed.append(await failures_of(service, app_id))

        assert observed == [1, 2, 3, 0, 1]

    async def test_degraded_and_unknown_increment_counter(
        self, service, runtime, container, app_id
    ):
        with patch.object(service.recovery, "dispatch") as dispatch:
            runtime.units = [container("web-1", "paused")]
            degraded = await service.check_application_health(app_id)

            runtime.failures["list_units"] = RuntimeControlError("daemon unreachable")
            unknown = await service.check_application_health(app_id)

        assert degraded.status == HealthStatus.DEGRADED
        assert unknown.status == HealthStatus.UNKNOWN
        assert await failures_of(service, app_id) == 2
        dispatch.assert_not_called()

    async def test_threshold_boundary(self, service, runtime, app_id):
        runtime.units = []

        with patch.object(service.recovery, "dispatch") as dispatch:
            await service.check_application_health(app_id)
            await service.check_application_health(app_id)
            dispatch.assert_not_called()

            record = await service.check_application_health(app_id)

        assert record.status == HealthStatus.UNHEALTHY
        dispatch.assert_called_once_with(app_id)

    async def test_unknown_never_triggers_recovery(
        self, service, runtime, make_host, make_application
    ):
        host_id = await make_host()
        app_id = await make_application(host_id, failure_threshold=1)
        runtime.failures["list_units"] = RuntimeControlError("daemon unreachable")

        with patch.object(service.recovery, "dispatch") as dispatch:
            for _ in range(3):
                record = await service.check_application_health(app_id)
                assert record.status == HealthStatus.UNKNOWN

        dispatch.assert_not_called()
        assert runtime.count("stop_unit") == 0

    async def test_degraded_never_triggers_recovery(
        self, service, runtime, container, make_host, make_application
    ):
        host_id = await make_host()
        app_id = await make_application(host_id, failure_threshold=1)
        runtime.units = [container("web-1", "paused")]

        with patch.object(service.recovery, "dispatch") as dispatch:
            await service.check_application_health(app_id)

        dispatch.assert_not_called()

    async def test_auto_recovery_disabled(
        self, service, runtime, make_host, make_application
    ):
        host_id = await make_host()
        app_id = await make_application(host_id, failure_threshold=1, auto_recovery=False)

        with patch.object(service.recovery, "dispatch") as dispatch:
            await service.check_application_health(app_id)

        dispatch.assert_not_called()

    async def test_every_check_is_recorded(self, service, runtime, container, app_id):
        runtime.units = [container("web-1")]
        for _ in range(4):
            await service.check_application_health(app_id)

        history = await service.get_history(app_id)
        assert len(history) == 4

    async def test_probe_exception_becomes_unknown(self, service, app_id):
        with patch.object(
            service.selector.runtime_probe,
            "probe",
            AsyncMock(side_effect=ValueError("unexpected payload")),
        ):
            record = await service.check_application_health(app_id)

        assert record.status == HealthStatus.UNKNOWN
        assert record.error_message == "unexpected payload"
        assert await failures_of(service, app_id) == 1

    async def test_probe_overrunning_its_deadline(
        self, service, make_host, make_application
    ):
        host_id = await make_host()
        app_id = await make_application(host_id, check_timeout_seconds=1)

        async def hang(*args):
            await asyncio.sleep(30)

        with patch.object(service.selector.runtime_probe, "probe", hang):
            record = await service.check_application_health(app_id)

        assert record.status == HealthStatus.UNKNOWN
        assert record.error_message == "runtime probe abandoned after 1s"

    async def test_threshold_dispatches_recovery_in_background(
        self, service, runtime, container, make_host, make_application
    ):
        host_id = await make_host()
        app_id = await make_application(host_id, failure_threshold=1)
        runtime.units = [container("web-1", "exited")]

        record = await service.check_application_health(app_id)

        assert record.status == HealthStatus.UNHEALTHY
        assert service.recovery.is_recovering(app_id)
        for _ in range(100):
            if not service.recovery.is_recovering(app_id):
                break
            await asyncio.sleep(0.01)

        assert runtime.count("stop_unit") == 1
        assert runtime.count("start_unit") == 1
        assert await failures_of(service, app_id) == 0

    async def test_unknown_application(self, service):
        with pytest.raises(ApplicationNotFoundError):
            await service.check_application_health(999)

    async def test_cancelled_during_probe_changes_nothing(self, service, runtime, app_id):
        runtime.delay = 5

        check = asyncio.create_task(service.check_application_health(app_id))
        await asyncio.sleep(0.05)
        check.cancel()
        with pytest.raises(asyncio.CancelledError):
            await check
        await asyncio.sleep(0.05)

        assert await failures_of(service, app_id) == 0
        assert await service.get_history(app_id) == []

    async def test_cancelled_during_write_commits_both(self, service, runtime, app_id):
        runtime.units = []
        record_check = service.targets.record_application_check
        writing = asyncio.Event()
        written = asyncio.Event()

        async def slow_write(*args):
            writing.set()
            await asyncio.sleep(0.05)
            try:
                return await record_check(*args)
            finally:
                written.set()

        with patch.object(service.targets, "record_application_check", slow_write):
            check = asyncio.create_task(service.check_application_health(app_id))
            await writing.wait()
            check.cancel()
            with pytest.raises(asyncio.CancelledError):
                await check
            await asyncio.wait_for(written.wait(), 2.0)

        assert await failures_of(service, app_id) == 1
        history = await service.get_history(app_id)
        assert [r.status for r in history] == [HealthStatus.UNHEALTHY]


class TestHostHealthEvaluator:
    """Test host connectivity checks."""

    async def test_connected_host(self, service, make_host):
        host_id = await make_host()

        record = await service.check_host_health(host_id)

        assert record.host_id == host_id
        assert record.application_id is None
        assert record.status == HealthStatus.HEALTHY
        assert record.status_code == "Docker 24.0.7"
        host = await service.targets.get_host(host_id)
        assert host.status == HostStatus.ONLINE
        assert host.consecutive_failures == 0
        assert host.last_health_check_at == record.checked_at

    async def test_unreachable_host(self, service, runtime, make_host):
        host_id = await make_host()
        runtime.connected = False

        await service.check_host_health(host_id)
        record = await service.check_host_health(host_id)

        assert record.status == HealthStatus.UNHEALTHY
        assert record.status_code == "CONNECTION_FAILED"
        assert record.error_message == "Cannot connect to Docker daemon"
        host = await service.targets.get_host(host_id)
        assert host.status == HostStatus.OFFLINE
        assert host.consecutive_failures == 2
        assert host.last_failure_at == record.checked_at

    async def test_host_comes_back_online(self, service, runtime, make_host):
        host_id = await make_host()
        runtime.connected = False
        await service.check_host_health(host_id)

        runtime.connected = True
        await service.check_host_health(host_id)

        host = await service.targets.get_host(host_id)
        assert host.status == HostStatus.ONLINE
        assert host.consecutive_failures == 0
        assert host.last_failure_at is not None

    async def test_version_lookup_failure_still_healthy(
        self, service, runtime, make_host
    ):
        host_id = await make_host()
        runtime.failures["engine_version"] = RuntimeControlError("version failed")

        record = await service.check_host_health(host_id)

        assert record.status == HealthStatus.HEALTHY
        assert record.status_code == "CONNECTED"

    async def test_runtime_error_is_unknown(self, service, runtime, make_host):
        host_id = await make_host()
        runtime.failures["validate_connection"] = RuntimeControlError("tls handshake failed")

        record = await service.check_host_health(host_id)

        assert record.status == HealthStatus.UNKNOWN
        assert record.error_message == "tls handshake failed"
        host = await service.targets.get_host(host_id)
        assert host.status == HostStatus.OFFLINE

    async def test_unknown_host(self, service):
        with pytest.raises(HostNotFoundError):
            await service.check_host_health(999)
