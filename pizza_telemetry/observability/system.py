"""Host CPU and memory utilization probes."""

from __future__ import annotations

import logging

import psutil

logger = logging.getLogger("pizza_telemetry.system")


def cpu_usage_percentage() -> float:
    """One-minute load average over logical core count, as a percentage."""
    try:
        load_1m = psutil.getloadavg()[0]
        cores = psutil.cpu_count(logical=True) or 1
    except (OSError, AttributeError) as exc:
        logger.debug(f"CPU probe unavailable: {exc}")
        return 0.0
    return round(load_1m / cores * 100, 2)


def memory_usage_percentage() -> float:
    """Share of physical memory not free, as a percentage."""
    try:
        memory = psutil.virtual_memory()
    except OSError as exc:
        logger.debug(f"Memory probe unavailable: {exc}")
        return 0.0
    if not memory.total:
        return 0.0
    return round((memory.total - memory.free) / memory.total * 100, 2)
