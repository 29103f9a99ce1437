"""Resource metrics of the machine running the engine."""

import asyncio
import logging
import time
from typing import Dict

import psutil

from hostwatch.models.status import SystemMetrics

logger = logging.getLogger(__name__)

CACHE_DURATION = 30  # seconds
_cache: Dict[str, Dict] = {}


class SystemMonitor:
    """System resource monitoring with caching."""

    @staticmethod
    async def get_system_metrics() -> SystemMetrics:
        """Get current system resource usage with caching."""
        cache_key = "system_metrics"
        now = time.time()

        cached = _cache.get(cache_key)
        if cached and now - cached["timestamp"] < CACHE_DURATION:
            return SystemMetrics(**cached["data"])

        try:
            loop = asyncio.get_running_loop()
            cpu_percent = await loop.run_in_executor(
                None, lambda: psutil.cpu_percent(interval=0.1)
            )
            memory = psutil.virtual_memory()
            try:
                load_avg = list(psutil.getloadavg())
            except (AttributeError, OSError):
                load_avg = [0.0, 0.0, 0.0]

            data = {
                "cpu_percent": round(cpu_percent, 1),
                "memory_percent": round(memory.percent, 1),
                "load_average": [round(avg, 2) for avg in load_avg],
            }
            _cache[cache_key] = {"timestamp": now, "data": data}
            return SystemMetrics(**data)

        except Exception as e:
            logger.error(f"Failed to get system metrics: {e}")
            return SystemMetrics(
                cpu_percent=0.0, memory_percent=0.0, load_average=[0.0, 0.0, 0.0]
            )

    @staticmethod
    def clear_cache() -> None:
        """Clear monitoring cache (useful for testing)."""
        _cache.clear()
