"""
Configuration package.

This package contains environment-driven settings and the YAML loader for
positions started at launch.
"""

from sxiceberg.config.config import Settings
from sxiceberg.config.positions import load_positions

__all__ = [
    "Settings",
    "load_positions",
]
