"""Tests for the background monitoring loop."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from hostwatch.core.exceptions import PersistenceError
from hostwatch.tasks.monitor import MonitorLoop


@pytest.fixture
def monitor():
    service = MagicMock()
    service.monitor_all_applications = AsyncMock(return_value=[])
    service.monitor_all_hosts = AsyncMock(return_value=[])
    return service


class TestMonitorLoop:
    """Test MonitorLoop."""

    async def test_tick_runs_both_passes(self, monitor):
        await MonitorLoop(monitor, tick_seconds=1).tick()

        monitor.monitor_all_applications.assert_awaited_once()
        monitor.monitor_all_hosts.assert_awaited_once()

    async def test_failed_pass_does_not_stop_the_other(self, monitor):
        monitor.monitor_all_applications.side_effect = PersistenceError("database is locked")

        await MonitorLoop(monitor, tick_seconds=1).tick()

        monitor.monitor_all_hosts.assert_awaited_once()

    async def test_start_and_stop(self, monitor):
        loop = MonitorLoop(monitor, tick_seconds=0.01)
        assert not loop.running

        loop.start()
        await asyncio.sleep(0.05)
        assert loop.running
        assert monitor.monitor_all_applications.await_count >= 2

        await loop.stop()
        assert not loop.running

    async def test_loop_survives_errors(self, monitor):
        monitor.monitor_all_hosts.side_effect = RuntimeError("unexpected")
        loop = MonitorLoop(monitor, tick_seconds=0.01)

        loop.start()
        await asyncio.sleep(0.05)
        assert loop.running
        await loop.stop()

    async def test_stop_cancels_running_pass(self, monitor):
        cancelled = asyncio.Event()

        async def hang():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        monitor.monitor_all_applications.side_effect = hang
        loop = MonitorLoop(monitor, tick_seconds=1)
        loop.start()
        await asyncio.sleep(0.01)

        await asyncio.wait_for(loop.stop(), 1.0)

        assert cancelled.is_set()
