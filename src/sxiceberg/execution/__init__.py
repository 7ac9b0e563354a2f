"""
Execution package.

This package contains fill tracking and the order lifecycle (price, sign,
post, cancel).
"""

from sxiceberg.execution.fill_tracker import FillTracker
from sxiceberg.execution.order_lifecycle import OrderLifecycleManager

__all__ = [
    "FillTracker",
    "OrderLifecycleManager",
]
