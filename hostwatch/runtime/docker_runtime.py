"""Docker Engine / Swarm implementation of the Runtime Control interface."""

import asyncio
import logging
import threading
from typing import Callable, Dict, List, Optional, TypeVar

import docker
from docker.errors import DockerException, NotFound
from requests.exceptions import RequestException

from hostwatch.core.exceptions import RuntimeControlError
from hostwatch.core.health.models import MonitoredHost
from hostwatch.core.settings import settings

from .base import RuntimeControl, RuntimeUnit, ServiceState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DockerRuntimeControl(RuntimeControl):
    """Runtime control backed by the Docker SDK.

    The SDK is blocking, so every call runs in the default executor. One
    client is cached per host endpoint.
    """

    def __init__(
        self,
        default_url: Optional[str] = None,
        client_timeout: int = 30,
        client_factory: Optional[Callable[..., "docker.DockerClient"]] = None,
    ):
        self.default_url = default_url or settings.default_docker_url
        self.client_timeout = client_timeout
        self._client_factory = client_factory or docker.DockerClient
        self._clients: Dict[str, docker.DockerClient] = {}
        self._lock = threading.Lock()

    def _client(self, host: MonitoredHost) -> "docker.DockerClient":
        """Get or create the client for a host (runs in the executor)."""
        url = host.docker_url or self.default_url
        with self._lock:
            client = self._clients.get(url)
            if client is None:
                client = self._client_factory(
                    base_url=url, timeout=self.client_timeout
                )
                self._clients[url] = client
        return client

    def _drop_client(self, host: MonitoredHost) -> None:
        url = host.docker_url or self.default_url
        with self._lock:
            client = self._clients.pop(url, None)
        if client is not None:
            try:
                client.close()
            except Exception as e:
                logger.debug(f"Error closing Docker client for {url}: {e}")

    async def _run(self, operation: str, host: MonitoredHost, func: Callable[..., T]) -> T:
        """Run a blocking SDK call, translating SDK errors."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, func)
        except (DockerException, RequestException) as e:
            # Reconnect on the next call; the cached client may be stale.
            self._drop_client(host)
            raise RuntimeControlError(
                f"Docker {operation} failed on host {host.name}: {e}", operation
            ) from e

    async def validate_connection(self, host: MonitoredHost) -> bool:
        def ping() -> bool:
            return bool(self._client(host).ping())

        try:
            return await self._run("ping", host, ping)
        except RuntimeControlError as e:
            logger.warning(
                "Docker daemon unreachable",
                extra={"host_id": host.id, "error": e.message},
            )
            return False

    async def engine_version(self, host: MonitoredHost) -> str:
        def version() -> str:
            return str(self._client(host).version().get("Version", "unknown"))

        return await self._run("version", host, version)

    async def list_units(
        self, host: MonitoredHost, include_stopped: bool = False
    ) -> List[RuntimeUnit]:
        def list_containers() -> List[RuntimeUnit]:
            containers = self._client(host).containers.list(all=include_stopped)
            return [
                RuntimeUnit(
                    id=c.id,
                    name=c.name,
                    state=c.status,
                    labels=dict(c.labels or {}),
                )
                for c in containers
            ]

        return await self._run("list_containers", host, list_containers)

    async def stop_unit(self, host: MonitoredHost, unit_id: str) -> bool:
        def stop() -> bool:
            try:
                container = self._client(host).containers.get(unit_id)
            except NotFound:
                return False
            container.stop()
            return True

        return await self._run("stop_container", host, stop)

    async def start_unit(self, host: MonitoredHost, unit_id: str) -> bool:
        def start() -> bool:
            try:
                container = self._client(host).containers.get(unit_id)
            except NotFound:
                return False
            container.start()
            return True

        return await self._run("start_container", host, start)

    async def inspect_service(
        self, host: MonitoredHost, service_id: str
    ) -> Optional[ServiceState]:
        def inspect() -> Optional[ServiceState]:
            try:
                service = self._client(host).services.get(service_id)
            except NotFound:
                return None

            tasks = service.tasks(filters={"desired-state": "running"})
            running = sum(
                1 for task in tasks if task.get("Status", {}).get("State") == "running"
            )
            spec = service.attrs.get("Spec", {})
            replicated = spec.get("Mode", {}).get("Replicated") or {}
            image = (
                spec.get("TaskTemplate", {}).get("ContainerSpec", {}).get("Image")
            )
            return ServiceState(
                id=service.id,
                name=service.name,
                running_replicas=running,
                desired_replicas=replicated.get("Replicas"),
                image=image,
            )

        return await self._run("inspect_service", host, inspect)

    async def force_update_service(
        self, host: MonitoredHost, service_id: str, image: Optional[str] = None
    ) -> bool:
        def force_update() -> bool:
            try:
                service = self._client(host).services.get(service_id)
            except NotFound:
                return False
            kwargs = {"force_update": True, "fetch_current_spec": True}
            if image:
                kwargs["image"] = image
            service.update(**kwargs)
            return True

        return await self._run("update_service", host, force_update)

    async def close(self) -> None:
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            try:
                client.close()
            except Exception as e:
                logger.debug(f"Error closing Docker client: {e}")
