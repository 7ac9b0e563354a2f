"""
FillTracker: how much of each of our orders has been matched, per market.

Fed by the own-orders push feed and reconciled from REST order listings.
Values are base-token integers and are overwritten, never summed, per
order. The per-market sum is the only source of truth for position
progress.
"""

from __future__ import annotations

import logging
from typing import Dict, Set

from sxiceberg.core.rounding import unscale_amount
from sxiceberg.core.wire import STATUS_INACTIVE
from sxiceberg.infra.logging_cfg import DEBUG, INFO, WARNING, log_event

log = logging.getLogger("sxiceberg")


class FillTracker:
    def __init__(self) -> None:
        self._fills: Dict[str, Dict[str, int]] = {}
        self._final: Dict[str, Set[str]] = {}

    def record_fill(self, market_hash: str, order_hash: str, matched: int) -> None:
        """
        Last write wins, except that a finalized order never moves backwards.
        """
        fills = self._fills.setdefault(market_hash, {})
        prev = fills.get(order_hash)
        if prev is not None and matched < prev and order_hash in self._final.get(market_hash, ()):
            log_event(
                log, "fill_regression_ignored", WARNING,
                market=market_hash, order=order_hash, prev=prev, got=matched,
            )
            return
        fills[order_hash] = int(matched)

    def apply_order_status(self, market_hash: str, order_hash: str, status: str, fill_amount: int) -> bool:
        """
        Apply one status row for one of our orders. Returns True if recorded.

        INACTIVE with a matched amount is final. INACTIVE with nothing
        matched is a plain cancel and leaves no record.
        """
        known = order_hash in self._fills.get(market_hash, {})
        if status == STATUS_INACTIVE:
            if fill_amount <= 0:
                log_event(log, "own_order_cancelled", DEBUG, market=market_hash, order=order_hash)
                return False
            self.record_fill(market_hash, order_hash, fill_amount)
            self._final.setdefault(market_hash, set()).add(order_hash)
            log_event(
                log, "own_order_final", INFO,
                market=market_hash, order=order_hash, matched=unscale_amount(fill_amount),
            )
            return True
        if fill_amount <= 0 and not known:
            return False
        self.record_fill(market_hash, order_hash, fill_amount)
        return True

    def aggregate_fill_raw(self, market_hash: str) -> int:
        return sum(self._fills.get(market_hash, {}).values())

    def aggregate_fill(self, market_hash: str) -> float:
        """Total matched on the market, in human units."""
        return unscale_amount(self.aggregate_fill_raw(market_hash))

    def orders(self, market_hash: str) -> Dict[str, int]:
        return dict(self._fills.get(market_hash, {}))

    def drop(self, market_hash: str) -> None:
        self._fills.pop(market_hash, None)
        self._final.pop(market_hash, None)
