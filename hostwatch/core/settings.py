"""Application settings using Pydantic."""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = Field(default="Hostwatch", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[Path] = Field(
        default=None, description="Rotating log file (stdout only when unset)"
    )

    # Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port", ge=1, le=65535)

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./hostwatch.db",
        description="Async SQLAlchemy database URL",
    )
    database_echo: bool = Field(default=False, description="Log SQL statements")
    database_auto_create: bool = Field(
        default=True, description="Create missing tables at startup"
    )

    # Scheduler
    scheduler_enabled: bool = Field(
        default=True, description="Run the background monitoring loop"
    )
    scheduler_tick_seconds: float = Field(
        default=5.0,
        description="Seconds between scheduling passes",
        gt=0,
        le=3600,
    )
    max_concurrent_checks: int = Field(
        default=16,
        description="Maximum evaluations running at the same time",
        ge=1,
        le=512,
    )
    host_check_interval_seconds: int = Field(
        default=60, description="Seconds between host checks", ge=1
    )
    host_check_timeout_seconds: int = Field(
        default=10, description="Deadline for a host check", ge=1, le=300
    )

    # Probes
    probe_grace_seconds: float = Field(
        default=2.0,
        description="Grace added to a probe timeout before it is abandoned",
        ge=0,
        le=60,
    )
    http_probe_user_agent: str = Field(
        default="hostwatch-probe", description="User-Agent sent by HTTP probes"
    )

    # Recovery
    recovery_restart_delay_seconds: float = Field(
        default=1.0,
        description="Pause between stopping and starting a container",
        ge=0,
        le=60,
    )
    recovery_timeout_seconds: int = Field(
        default=60,
        description="Deadline for each runtime call made during recovery",
        ge=1,
        le=900,
    )

    # Runtime
    container_label_key: str = Field(
        default="hostwatch.app",
        description="Container label whose value names the owning application",
    )
    default_docker_url: str = Field(
        default="unix:///var/run/docker.sock",
        description="Docker endpoint used for hosts without one configured",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Require an async driver in the database URL."""
        scheme = v.split("://", 1)[0]
        if "+" not in scheme:
            raise ValueError(
                "Database URL must name an async driver, e.g. sqlite+aiosqlite://"
            )
        return v


# Global settings instance
settings = Settings()
