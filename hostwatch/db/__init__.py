"""Persistence for monitored targets and health history."""

from .database import Database
from .repository import HealthHistoryStore, TargetRepository
from .tables import ApplicationRow, Base, HealthCheckRow, HostRow

__all__ = [
    "Database",
    "HealthHistoryStore",
    "TargetRepository",
    "Base",
    "ApplicationRow",
    "HostRow",
    "HealthCheckRow",
]
