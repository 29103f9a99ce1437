"""Hostwatch: health monitoring and auto-recovery for self-hosted deployments."""

__version__ = "0.1.0"
