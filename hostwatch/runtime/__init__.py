"""Container runtime integrations."""

from .base import (
    RuntimeControl,
    RuntimeUnit,
    ServiceState,
    call_with_deadline,
    find_unit,
)

__all__ = [
    "RuntimeControl",
    "RuntimeUnit",
    "ServiceState",
    "call_with_deadline",
    "find_unit",
]
