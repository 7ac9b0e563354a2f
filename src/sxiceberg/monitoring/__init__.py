"""
Monitoring package.

This package contains Prometheus metrics for the monitor.
"""

from sxiceberg.monitoring.metrics import IcebergMetrics, start_metrics_server

__all__ = [
    "IcebergMetrics",
    "start_metrics_server",
]
