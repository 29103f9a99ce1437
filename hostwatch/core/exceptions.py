"""Custom exception hierarchy for the health monitoring engine."""

from typing import Any, Dict, Optional

from hostwatch.core.deadline import format_seconds


class HostwatchError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize the error with message and metadata."""
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class NotFoundError(HostwatchError):
    """404-level errors for missing resources."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize not found error with 404 status."""
        super().__init__(message, 404, error_code, details)


class ApplicationNotFoundError(NotFoundError):
    """No monitored application with the requested id."""

    def __init__(self, application_id: int) -> None:
        super().__init__(
            f"Application {application_id} not found",
            "APPLICATION_NOT_FOUND",
            {"application_id": application_id},
        )


class HostNotFoundError(NotFoundError):
    """No monitored host with the requested id."""

    def __init__(self, host_id: int) -> None:
        super().__init__(
            f"Host {host_id} not found",
            "HOST_NOT_FOUND",
            {"host_id": host_id},
        )


class ServiceError(HostwatchError):
    """500-level server errors for service failures."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize service error with 500-level status."""
        super().__init__(message, 500, error_code, details)


class PersistenceError(ServiceError):
    """The health store could not read or write."""

    def __init__(
        self, message: str, details: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, "PERSISTENCE_ERROR", details)
        self.status_code = 503


class RuntimeControlError(ServiceError):
    """The container/orchestrator runtime API is unreachable or failed.

    The workload's real state is indeterminate when this is raised, so checks
    map it to ``unknown`` rather than ``unhealthy``.
    """

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        details = {"operation": operation} if operation else {}
        super().__init__(message, "RUNTIME_CONTROL_ERROR", details)
        self.status_code = 502


class ProbeTimeout(ServiceError):
    """A probe exceeded its deadline."""

    def __init__(self, timeout: float, message: Optional[str] = None) -> None:
        msg = message or f"timed out after {format_seconds(timeout)}s"
        super().__init__(msg, "PROBE_TIMEOUT", {"timeout": timeout})


class ProbeTransportError(ServiceError):
    """A probe could not reach its target (refused, DNS failure, reset)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "PROBE_TRANSPORT_ERROR")


class TargetNotFound(ServiceError):
    """The expected container or service does not exist on the host."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "TARGET_NOT_FOUND")


class RecoveryActionFailed(ServiceError):
    """A stop/start or forced update did not succeed."""

    def __init__(self, message: str, action: Optional[str] = None) -> None:
        details = {"action": action} if action else {}
        super().__init__(message, "RECOVERY_ACTION_FAILED", details)
