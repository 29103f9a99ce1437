"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from hostwatch import __version__
from hostwatch.api import health, monitor
from hostwatch.config import setup_logging
from hostwatch.core.exceptions import HostwatchError
from hostwatch.core.handlers import (
    general_exception_handler,
    hostwatch_error_handler,
    http_exception_handler,
    validation_error_handler,
)
from hostwatch.core.health.service import HealthMonitorService
from hostwatch.core.middleware import RequestContextMiddleware
from hostwatch.core.settings import settings
from hostwatch.db.database import Database
from hostwatch.runtime.docker_runtime import DockerRuntimeControl
from hostwatch.tasks.monitor import MonitorLoop

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the engine on startup and tear it down on shutdown."""
    logger.info(
        "Starting Hostwatch",
        extra={
            "version": __version__,
            "settings": {
                "scheduler_enabled": settings.scheduler_enabled,
                "scheduler_tick_seconds": settings.scheduler_tick_seconds,
                "max_concurrent_checks": settings.max_concurrent_checks,
                "default_docker_url": settings.default_docker_url,
            },
        },
    )

    database = Database()
    if settings.database_auto_create:
        await database.create_all()

    runtime = DockerRuntimeControl()
    service = HealthMonitorService(database, runtime)
    app.state.database = database
    app.state.monitor_service = service

    loop = None
    if settings.scheduler_enabled:
        loop = MonitorLoop(service)
        loop.start()
    app.state.monitor_loop = loop

    yield

    logger.info("Shutting down Hostwatch")

    if loop is not None:
        await loop.stop()
    try:
        await service.close()
    except Exception as e:
        logger.warning(f"Error closing health monitor: {e}")
    try:
        await runtime.close()
    except Exception as e:
        logger.warning(f"Error closing runtime clients: {e}")
    await database.dispose()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    setup_logging()

    app = FastAPI(
        title=settings.app_name,
        description="Health monitoring and automatic recovery for applications "
        "deployed on self-hosted Docker and Swarm hosts.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=[
            {
                "name": "health",
                "description": "Liveness and readiness of the engine itself",
            },
            {
                "name": "monitor",
                "description": "Health checks, history, uptime and recovery of "
                "monitored applications and hosts",
            },
        ],
    )

    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(
        HostwatchError, hostwatch_error_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        RequestValidationError, validation_error_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        StarletteHTTPException, http_exception_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(health.router)
    app.include_router(monitor.router)

    return app


app = create_app()
