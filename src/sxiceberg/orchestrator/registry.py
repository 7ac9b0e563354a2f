"""
Position registry: the markets being monitored and how.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

from sxiceberg.core.json_utils import dumps
from sxiceberg.infra.logging_cfg import INFO, WARNING, log_event

log = logging.getLogger("sxiceberg")

# control-message keys -> Position fields
CONFIG_KEYS = {
    "outcome": "outcome",
    "maxFill": "max_fill",
    "increments": "increment",
    "increment": "increment",
    "edge": "edge",
    "maxVig": "max_vig",
    "minOrderSize": "min_order_size",
    "startTime": "start_time_ms",
    "marketDetails": "details",
}


def now_ms() -> int:
    return int(time.time() * 1000)


def normalize_start_time(value: Any, default_ms: Optional[int] = None) -> int:
    """
    Start time in epoch milliseconds.

    Missing or non-numeric values mean "now"; values that look like epoch
    seconds (below 1e12) are scaled to milliseconds.
    """
    fallback = default_ms if default_ms is not None else now_ms()
    if value is None or isinstance(value, bool):
        return fallback
    try:
        ts = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(ts) or ts <= 0:
        return fallback
    if ts < 1e12:
        ts *= 1000
    return int(ts)


@dataclass
class Position:
    market_hash: str
    outcome: int
    max_fill: float
    increment: float
    edge: float
    max_vig: float
    min_order_size: float = 100.0
    start_time_ms: int = field(default_factory=now_ms)
    current_fill: float = 0.0
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def remaining(self) -> float:
        return self.max_fill - self.current_fill

    def validate(self) -> None:
        if self.outcome not in (1, 2):
            raise ValueError(f"outcome must be 1 or 2, got {self.outcome!r}")
        for name in ("max_fill", "increment"):
            val = getattr(self, name)
            if not math.isfinite(val) or val <= 0:
                raise ValueError(f"{name} must be > 0, got {val!r}")
        for name in ("edge", "max_vig", "min_order_size"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be a finite number")
        if self.min_order_size < 0:
            raise ValueError("min_order_size must be >= 0")

    @staticmethod
    def _fields_from_config(config: Mapping[str, Any]) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for key, value in config.items():
            name = CONFIG_KEYS.get(key)
            if name is None:
                continue
            if name == "outcome":
                value = int(value)
            elif name == "details":
                value = dict(value or {})
            elif name != "start_time_ms":
                value = float(value)
            fields[name] = value
        return fields

    @classmethod
    def from_config(cls, market_hash: str, config: Mapping[str, Any]) -> "Position":
        fields = cls._fields_from_config(config)
        missing = [k for k in ("outcome", "max_fill", "increment", "edge", "max_vig") if k not in fields]
        if missing:
            raise ValueError(f"missing config fields: {', '.join(missing)}")
        fields["start_time_ms"] = normalize_start_time(fields.get("start_time_ms"))
        pos = cls(market_hash=market_hash, **fields)
        pos.validate()
        return pos

    def merged(self, partial: Mapping[str, Any]) -> "Position":
        fields = self._fields_from_config(partial)
        if "start_time_ms" in fields:
            fields["start_time_ms"] = normalize_start_time(fields["start_time_ms"], self.start_time_ms)
        pos = replace(self, **fields)
        pos.validate()
        return pos

    def describe(self) -> Dict[str, Any]:
        return {
            "market": self.market_hash,
            "outcome": self.outcome,
            "max_fill": self.max_fill,
            "increment": self.increment,
            "edge": self.edge,
            "max_vig": self.max_vig,
            "min_order_size": self.min_order_size,
            "start_time_ms": self.start_time_ms,
        }


class PositionRegistry:
    """At most one Position per market."""

    def __init__(self) -> None:
        self._positions: Dict[str, Position] = {}

    def start(self, market_hash: str, config: Mapping[str, Any]) -> Position:
        pos = Position.from_config(market_hash, config)
        if market_hash in self._positions:
            log_event(log, "position_replaced", WARNING, market=market_hash)
        self._positions[market_hash] = pos
        log.info(dumps({"event": "position_started", **pos.describe()}))
        return pos

    def update(self, market_hash: str, partial: Mapping[str, Any]) -> Optional[Position]:
        current = self._positions.get(market_hash)
        if current is None:
            log_event(log, "update_unknown_market", WARNING, market=market_hash)
            return None
        pos = current.merged(partial)
        self._positions[market_hash] = pos
        log.info(dumps({"event": "position_updated", **pos.describe()}))
        return pos

    def remove(self, market_hash: str) -> Optional[Position]:
        pos = self._positions.pop(market_hash, None)
        if pos is not None:
            log_event(log, "position_removed", INFO, market=market_hash)
        return pos

    def clear(self) -> List[Position]:
        removed = list(self._positions.values())
        self._positions.clear()
        return removed

    def get(self, market_hash: str) -> Optional[Position]:
        return self._positions.get(market_hash)

    def market_hashes(self) -> List[str]:
        return list(self._positions)

    def __contains__(self, market_hash: object) -> bool:
        return market_hash in self._positions

    def __len__(self) -> int:
        return len(self._positions)
