"""
Orchestrator package.

This package contains the position registry, the monitoring scheduler, the
engine that owns all monitoring state, and the parent-side process handle.
"""

from sxiceberg.orchestrator.engine import EngineConfig, IcebergEngine
from sxiceberg.orchestrator.registry import Position, PositionRegistry, normalize_start_time
from sxiceberg.orchestrator.scheduler import FILL_TOLERANCE, MIN_REMAINING, MonitoringScheduler
from sxiceberg.orchestrator.supervisor import MonitorHandle, run_worker

__all__ = [
    "EngineConfig",
    "IcebergEngine",
    "Position",
    "PositionRegistry",
    "normalize_start_time",
    "FILL_TOLERANCE",
    "MIN_REMAINING",
    "MonitoringScheduler",
    "MonitorHandle",
    "run_worker",
]
