"""Common test fixtures."""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional

import pytest

from hostwatch.core.health.service import HealthMonitorService
from hostwatch.core.settings import settings
from hostwatch.db.database import Database
from hostwatch.db.tables import ApplicationRow, HostRow
from hostwatch.runtime.base import RuntimeControl, RuntimeUnit, ServiceState


class FakeRuntimeControl(RuntimeControl):
    """In-memory runtime that records every call made against it."""

    def __init__(self):
        self.connected = True
        self.version = "24.0.7"
        self.units: List[RuntimeUnit] = []
        self.services: Dict[str, ServiceState] = {}
        self.failures: Dict[str, Exception] = {}
        self.stop_result = True
        self.start_result = True
        self.update_result = True
        self.delay = 0.0
        self.calls: List[tuple] = []

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)

    async def _call(self, operation: str, *args) -> None:
        self.calls.append((operation, *args))
        if self.delay:
            await asyncio.sleep(self.delay)
        if operation in self.failures:
            raise self.failures[operation]

    async def validate_connection(self, host) -> bool:
        await self._call("validate_connection", host.id)
        return self.connected

    async def engine_version(self, host) -> str:
        await self._call("engine_version", host.id)
        return self.version

    async def list_units(self, host, include_stopped: bool = False) -> List[RuntimeUnit]:
        await self._call("list_units", host.id)
        if include_stopped:
            return list(self.units)
        return [unit for unit in self.units if unit.state == "running"]

    async def stop_unit(self, host, unit_id: str) -> bool:
        await self._call("stop_unit", unit_id)
        return self.stop_result

    async def start_unit(self, host, unit_id: str) -> bool:
        await self._call("start_unit", unit_id)
        return self.start_result

    async def inspect_service(self, host, service_id: str) -> Optional[ServiceState]:
        await self._call("inspect_service", service_id)
        return self.services.get(service_id)

    async def force_update_service(
        self, host, service_id: str, image: Optional[str] = None
    ) -> bool:
        await self._call("force_update_service", service_id, image)
        return self.update_result


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    """Keep recovery pauses and probe grace periods short."""
    monkeypatch.setattr(settings, "recovery_restart_delay_seconds", 0)
    monkeypatch.setattr(settings, "probe_grace_seconds", 0.05)


@pytest.fixture
def runtime() -> FakeRuntimeControl:
    return FakeRuntimeControl()


@pytest.fixture
async def database(tmp_path):
    """SQLite database in a temporary directory with all tables created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'hostwatch.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def make_host(database):
    """Insert a host row and return its id."""

    async def _make(**fields) -> int:
        fields.setdefault("name", "node-1")
        fields.setdefault("docker_url", "tcp://10.0.0.5:2375")
        async with database.session() as session:
            row = HostRow(**fields)
            session.add(row)
            await session.flush()
            return row.id

    return _make


@pytest.fixture
def make_application(database):
    """Insert an application row and return its id."""

    async def _make(host_id: int, **fields) -> int:
        fields.setdefault("name", "web")
        fields.setdefault("last_deployed_at", datetime(2024, 11, 30, 12, 0, 0))
        async with database.session() as session:
            row = ApplicationRow(host_id=host_id, **fields)
            session.add(row)
            await session.flush()
            return row.id

    return _make


@pytest.fixture
async def service(database, runtime):
    """Health monitor wired to the temporary database and fake runtime."""
    monitor = HealthMonitorService(database, runtime, max_concurrent_checks=4)
    yield monitor
    await monitor.close()


@pytest.fixture
def container():
    """Factory for runtime units."""

    def _make(
        name: str = "web-1", state: str = "running", labels: Optional[dict] = None
    ) -> RuntimeUnit:
        return RuntimeUnit(id=f"id-{name}", name=name, state=state, labels=labels or {})

    return _make
