"""Logging configuration for Hostwatch."""

import logging
import sys
from logging.handlers import RotatingFileHandler

from pythonjsonlogger import jsonlogger

from hostwatch.core.settings import settings

_configured = False


def setup_logging() -> None:
    """Configure application logging."""
    global _configured
    if _configured:
        return

    log_level = getattr(logging, settings.log_level)

    json_formatter = jsonlogger.JsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        rename_fields={"timestamp": "@timestamp", "level": "severity"},
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(json_formatter)
    console_handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(console_handler)

    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            settings.log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setFormatter(json_formatter)
        file_handler.setLevel(log_level)
        root_logger.addHandler(file_handler)

    # Reduce noise from libraries
    for noisy in ("uvicorn.access", "httpx", "docker", "urllib3", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _configured = True

    logger = logging.getLogger(__name__)
    logger.info(
        "Logging configured",
        extra={
            "log_level": settings.log_level,
            "app_name": settings.app_name,
            "app_version": settings.app_version,
        },
    )
