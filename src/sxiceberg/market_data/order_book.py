"""
OrderBookStore: per-market cache of resting orders.

Built from a REST snapshot and kept current by the order-book push feed.
Entries are keyed by order hash (latest row wins). Inactive entries are
evicted once they are older than the retention window, so memory tracks the
live book rather than its history.

Readers must still filter by status and ownership; the store keeps the
operator's own orders (flagged is_mine) so fills can be reconciled from them.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from sxiceberg.core.wire import OrderRow, decode_order_book_row
from sxiceberg.infra.logging_cfg import DEBUG, WARNING, log_event

log = logging.getLogger("sxiceberg")


@dataclass
class OrderBookEntry:
    order_hash: str
    maker: str
    is_maker_betting_outcome_one: bool
    size: float
    price: float
    status: str
    is_mine: bool
    fill_amount: int = 0
    update_time: int = 0
    received_at: float = field(default_factory=time.time)

    @property
    def active(self) -> bool:
        return self.status == "ACTIVE"

    @classmethod
    def from_row(cls, row: OrderRow, is_mine: bool, received_at: float) -> "OrderBookEntry":
        return cls(
            order_hash=row.order_hash,
            maker=row.maker,
            is_maker_betting_outcome_one=row.is_maker_betting_outcome_one,
            size=row.size,
            price=row.price,
            status=row.status,
            is_mine=is_mine,
            fill_amount=row.fill_amount,
            update_time=row.update_time,
            received_at=received_at,
        )


class OrderBookStore:
    def __init__(
        self,
        maker: str,
        retention_sec: float = 300.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._maker = maker.lower()
        self._retention = retention_sec
        self._clock = clock
        self._books: Dict[str, Dict[str, OrderBookEntry]] = {}

    def is_mine(self, maker: str) -> bool:
        return maker.lower() == self._maker

    def apply_update(
        self,
        market_hash: str,
        rows: Iterable[Any],
        min_order_size: float = 100.0,
        snapshot: bool = False,
    ) -> List[OrderBookEntry]:
        """
        Merge a snapshot or a push batch into the market's book.

        Malformed rows are skipped. Externally-owned rows below
        min_order_size are dropped, along with any earlier entry for the
        same order. A snapshot lists every resting order, so external
        entries it no longer lists are retired as INACTIVE and left for
        eviction. Returns the entries that were stored.
        """
        book = self._books.setdefault(market_hash, {})
        now = self._clock()
        stored: List[OrderBookEntry] = []
        seen: Set[str] = set()
        skipped = 0
        ignored = 0
        for raw in rows:
            try:
                row = decode_order_book_row(raw, market_hash)
            except ValueError as exc:
                skipped += 1
                log_event(log, "feed_row_skipped", WARNING, market=market_hash, err=str(exc))
                continue
            seen.add(row.order_hash)
            mine = self.is_mine(row.maker)
            if not mine and row.size < min_order_size:
                ignored += 1
                book.pop(row.order_hash, None)
                continue
            entry = OrderBookEntry.from_row(row, is_mine=mine, received_at=now)
            book[entry.order_hash] = entry
            stored.append(entry)
        retired = self._retire_missing(book, seen, now) if snapshot else 0
        evicted = self._evict(book, now)
        log_event(
            log, "order_book_updated", DEBUG,
            market=market_hash, stored=len(stored), dust=ignored, skipped=skipped,
            retired=retired, evicted=evicted, size=len(book), snapshot=snapshot,
        )
        return stored

    def snapshot(self, market_hash: str) -> List[OrderBookEntry]:
        return list(self._books.get(market_hash, {}).values())

    def get(self, market_hash: str, order_hash: str) -> Optional[OrderBookEntry]:
        return self._books.get(market_hash, {}).get(order_hash)

    def drop(self, market_hash: str) -> None:
        self._books.pop(market_hash, None)

    def markets(self) -> List[str]:
        return list(self._books)

    def prune(self) -> int:
        now = self._clock()
        return sum(self._evict(book, now) for book in self._books.values())

    def _evict(self, book: Dict[str, OrderBookEntry], now: float) -> int:
        cutoff = now - self._retention
        stale = [h for h, e in book.items() if not e.active and e.received_at < cutoff]
        for h in stale:
            del book[h]
        return len(stale)

    def _retire_missing(self, book: Dict[str, OrderBookEntry], seen: Set[str], now: float) -> int:
        retired = 0
        for h, e in book.items():
            if e.active and not e.is_mine and h not in seen:
                e.status = "INACTIVE"
                e.received_at = now
                retired += 1
        return retired
