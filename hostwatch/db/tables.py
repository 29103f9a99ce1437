"""ORM tables for monitored targets and the health check log."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all tables."""


class HostRow(Base):
    __tablename__ = "hosts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))
    docker_url: Mapped[Optional[str]] = mapped_column(String(512))
    status: Mapped[str] = mapped_column(String(16), default="online")
    consecutive_failures: Mapped[int] = mapped_column(Integer, default=0)
    last_health_check_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_failure_at: Mapped[Optional[datetime]] = mapped_column(DateTime)


class ApplicationRow(Base):
    __tablename__ = "applications"
    __table_args__ = (
        CheckConstraint("failure_threshold >= 1", name="ck_applications_threshold"),
        CheckConstraint(
            "consecutive_failures >= 0", name="ck_applications_failures"
        ),
        CheckConstraint("check_interval_seconds >= 1", name="ck_applications_interval"),
        CheckConstraint("check_timeout_seconds >= 1", name="ck_applications_timeout"),
        CheckConstraint(
            "port IS NULL OR (port >= 1 AND port <= 65535)", name="ck_applications_port"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[str] = mapped_column(
        String(36), default=lambda: str(uuid.uuid4()), unique=True
    )
    name: Mapped[str] = mapped_column(String(255))
    host_id: Mapped[int] = mapped_column(ForeignKey("hosts.id"))

    # "standalone" or "clustered"
    execution_mode: Mapped[str] = mapped_column(String(16), default="standalone")
    container_name: Mapped[Optional[str]] = mapped_column(String(255))
    service_id: Mapped[Optional[str]] = mapped_column(String(128))
    desired_replicas: Mapped[int] = mapped_column(Integer, default=1)
    image: Mapped[Optional[str]] = mapped_column(String(512))

    health_check_url: Mapped[Optional[str]] = mapped_column(String(2048))
    domain: Mapped[Optional[str]] = mapped_column(String(255))
    port: Mapped[Optional[int]] = mapped_column(Integer)
    check_interval_seconds: Mapped[int] = mapped_column(Integer, default=60)
    check_timeout_seconds: Mapped[int] = mapped_column(Integer, default=10)
    failure_threshold: Mapped[int] = mapped_column(Integer, default=3)
    auto_recovery: Mapped[bool] = mapped_column(Boolean, default=True)

    consecutive_failures: Mapped[int] = mapped_column(Integer, default=0)
    last_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    # Set by the deployment subsystem; never-deployed apps are not scheduled.
    last_deployed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)


class HealthCheckRow(Base):
    """Append-only health check log."""

    __tablename__ = "health_checks"
    __table_args__ = (
        CheckConstraint(
            "(application_id IS NULL) <> (host_id IS NULL)",
            name="ck_health_checks_single_owner",
        ),
        Index("ix_health_checks_application_checked_at", "application_id", "checked_at"),
        Index("ix_health_checks_host_checked_at", "host_id", "checked_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    application_id: Mapped[Optional[int]] = mapped_column(ForeignKey("applications.id"))
    host_id: Mapped[Optional[int]] = mapped_column(ForeignKey("hosts.id"))
    status: Mapped[str] = mapped_column(String(16))
    response_time_ms: Mapped[int] = mapped_column(Integer, default=0)
    status_code: Mapped[Optional[str]] = mapped_column(String(64))
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    checked_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
