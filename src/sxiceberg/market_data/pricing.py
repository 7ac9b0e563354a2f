"""
Pricing queries over the order-book cache.

Nothing here is cached: every call scans the current book, which the store
keeps bounded to live orders plus recently-inactive ones.
"""

from __future__ import annotations

import logging
from typing import Iterator, Tuple

from sxiceberg.infra.logging_cfg import DEBUG, log_event
from sxiceberg.market_data.order_book import OrderBookEntry, OrderBookStore

log = logging.getLogger("sxiceberg")


def compute_vig(best_maker_o1: float, best_maker_o2: float) -> float:
    """
    Overround from the best maker probability on each side.

    Taker odds on outcome one come from makers betting outcome two and vice
    versa, so vig = (1 - p2) + (1 - p1) - 1.
    """
    best_taker_o1 = 1 - best_maker_o2
    best_taker_o2 = 1 - best_maker_o1
    return best_taker_o1 + best_taker_o2 - 1


class MarketDataEngine:
    def __init__(self, store: OrderBookStore) -> None:
        self.store = store

    def _considered(self, market_hash: str, min_order_size: float) -> Iterator[OrderBookEntry]:
        for entry in self.store.snapshot(market_hash):
            if entry.is_mine or not entry.active:
                continue
            if entry.size < min_order_size:
                continue
            yield entry

    def best_opposing_price(self, market_hash: str, side: int, min_order_size: float = 100.0) -> float:
        """
        Highest maker probability among orders betting against `side`.

        0.0 when nothing qualifies. Best taker odds on `side` are
        1 - best_opposing_price.
        """
        betting_one = side == 1
        best = 0.0
        for entry in self._considered(market_hash, min_order_size):
            if entry.is_maker_betting_outcome_one != betting_one and entry.price > best:
                best = entry.price
        return min(max(best, 0.0), 1.0)

    def best_taker_odds(self, market_hash: str, side: int, min_order_size: float = 100.0) -> float:
        return 1.0 - self.best_opposing_price(market_hash, side, min_order_size)

    def best_maker_prices(self, market_hash: str, min_order_size: float = 100.0) -> Tuple[float, float, int]:
        best_o1 = 0.0
        best_o2 = 0.0
        count = 0
        for entry in self._considered(market_hash, min_order_size):
            count += 1
            if entry.is_maker_betting_outcome_one:
                best_o1 = max(best_o1, entry.price)
            else:
                best_o2 = max(best_o2, entry.price)
        return best_o1, best_o2, count

    def vig(self, market_hash: str, min_order_size: float = 100.0) -> float:
        """
        Market overround, or 0.0 when the book has no qualifying orders.

        0.0 means "not enough data", not "fairly priced".
        """
        best_o1, best_o2, count = self.best_maker_prices(market_hash, min_order_size)
        if count == 0:
            log_event(log, "vig_no_data", DEBUG, market=market_hash)
            return 0.0
        vig = compute_vig(best_o1, best_o2)
        log_event(
            log, "vig_computed", DEBUG,
            market=market_hash, best_maker_o1=best_o1, best_maker_o2=best_o2, vig=round(vig, 6),
        )
        return vig
