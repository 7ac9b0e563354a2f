"""
MonitoringScheduler: the per-market decision each tick.

For every registered market:
1. Fill check: complete the position once fill is within tolerance.
2. Vig check: above max_vig, pull every resting order and sit out the tick.
3. Resting orders: none -> post the next slice; off-price -> cancel and
   repost; on-price -> leave alone.

Markets are evaluated concurrently and isolated from each other: one
market's exception is logged and the others carry on. Transient failures
are retried by the next tick.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sxiceberg.core.errors import InvalidPrice
from sxiceberg.core.wire import STATUS_ACTIVE, decode_rest_order
from sxiceberg.execution.fill_tracker import FillTracker
from sxiceberg.execution.order_lifecycle import OrderLifecycleManager
from sxiceberg.infra.exchange_client import SXBetClient
from sxiceberg.infra.logging_cfg import DEBUG, ERROR, INFO, WARNING, log_event
from sxiceberg.market_data.pricing import MarketDataEngine
from sxiceberg.monitoring.metrics import IcebergMetrics
from sxiceberg.orchestrator.registry import Position, PositionRegistry

log = logging.getLogger("sxiceberg")

TICK_INTERVAL_SEC = 3.5
FILL_TOLERANCE = 0.99
MIN_REMAINING = 10.0

Notify = Callable[[Dict[str, Any]], None]


def _parse_odds(order: Dict[str, Any]) -> Optional[int]:
    try:
        return int(order.get("percentageOdds"))
    except (TypeError, ValueError):
        return None


class MonitoringScheduler:
    def __init__(
        self,
        registry: PositionRegistry,
        pricing: MarketDataEngine,
        fills: FillTracker,
        lifecycle: OrderLifecycleManager,
        client: SXBetClient,
        maker: str,
        notify: Notify,
        on_removed: Optional[Callable[[str], Awaitable[None]]] = None,
        active_order_retries: int = 3,
        retry_delay: float = 2.0,
        metrics: Optional[IcebergMetrics] = None,
    ) -> None:
        self.registry = registry
        self.pricing = pricing
        self.fills = fills
        self.lifecycle = lifecycle
        self.client = client
        self.maker = maker
        self._notify = notify
        self._on_removed = on_removed
        self._retries = active_order_retries
        self._retry_delay = retry_delay
        self._metrics = metrics

    async def tick(self) -> Dict[str, str]:
        """Evaluate every registered market once. Returns market -> outcome."""
        markets = self.registry.market_hashes()
        if self._metrics:
            self._metrics.ticks.inc()
            self._metrics.positions_open.set(len(markets))
        results = await asyncio.gather(*(self._process_isolated(m) for m in markets))
        return dict(zip(markets, results))

    async def _process_isolated(self, market_hash: str) -> str:
        try:
            return await self.process_market(market_hash)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.exception(f'{{"event":"process_market_error","market":"{market_hash}","err":"{type(exc).__name__}"}}')
            if self._metrics:
                self._metrics.market_errors.labels(market=market_hash).inc()
            return "error"

    async def process_market(self, market_hash: str) -> str:
        pos = self.registry.get(market_hash)
        if pos is None:
            return "unmonitored"

        filled = self.fills.aggregate_fill(market_hash)
        if math.isnan(filled):
            log_event(log, "fill_nan", ERROR, market=market_hash)
            return "skipped"
        pos.current_fill = filled
        remaining = pos.max_fill - filled
        log_event(
            log, "market_progress", DEBUG,
            market=market_hash, filled=filled, max_fill=pos.max_fill,
            pct=round(filled / pos.max_fill * 100, 2),
        )
        if self._metrics:
            self._metrics.current_fill.labels(market=market_hash).set(filled)

        if filled / pos.max_fill >= FILL_TOLERANCE or remaining < MIN_REMAINING:
            await self._complete(market_hash, filled)
            return "complete"

        self._notify({"action": "updateFill", "marketHash": market_hash, "currentFill": filled})

        vig = self.pricing.vig(market_hash, pos.min_order_size)
        if self._metrics:
            self._metrics.market_vig.labels(market=market_hash).set(vig)
        if vig > pos.max_vig:
            log_event(log, "vig_exceeded", WARNING, market=market_hash, vig=round(vig, 6), max_vig=pos.max_vig)
            active = await self._active_orders(market_hash)
            if active:
                await self.lifecycle.cancel([o["orderHash"] for o in active])
            return "vig_exceeded"

        active = await self._active_orders(market_hash)
        if active is None:
            return "skipped"
        # a stop may have landed while we were fetching
        pos = self.registry.get(market_hash)
        if pos is None:
            return "unmonitored"

        if not active:
            return await self._post_or_complete(pos, remaining, "posted")

        try:
            desired = self.lifecycle.desired_odds(market_hash, pos.outcome, pos.edge, pos.min_order_size)
        except InvalidPrice as exc:
            log_event(log, "reprice_skipped", WARNING, market=market_hash, err=str(exc))
            return "no_price"

        stale = [o for o in active if _parse_odds(o) != desired]
        if not stale:
            log_event(log, "orders_competitive", DEBUG, market=market_hash, odds=str(desired))
            return "competitive"

        for o in stale:
            log_event(
                log, "order_off_price", INFO,
                market=market_hash, order=o.get("orderHash"), expected=str(desired),
                found=o.get("percentageOdds"),
            )
        await self.lifecycle.cancel([o["orderHash"] for o in active])
        return await self._post_or_complete(pos, remaining, "repriced")

    async def _post_or_complete(self, pos: Position, remaining: float, label: str) -> str:
        if remaining < MIN_REMAINING:
            await self._complete(pos.market_hash, pos.current_fill)
            return "complete"
        size = min(remaining, pos.increment)
        order_hash = await self.lifecycle.post(pos.market_hash, pos.outcome, size, pos.edge, pos.min_order_size)
        return label if order_hash else "post_failed"

    async def _active_orders(self, market_hash: str) -> Optional[List[Dict[str, Any]]]:
        orders = await self.client.fetch_active_orders(
            market_hash, self.maker, max_retries=self._retries, retry_delay=self._retry_delay,
        )
        if orders is None:
            return None
        active = []
        for order in orders:
            if not isinstance(order, dict) or not order.get("orderHash"):
                log_event(log, "active_order_malformed", WARNING, market=market_hash)
                continue
            self._reconcile(market_hash, order)
            if str(order.get("status", STATUS_ACTIVE)).upper() == STATUS_ACTIVE:
                active.append(order)
        return active

    def _reconcile(self, market_hash: str, order: Dict[str, Any]) -> None:
        try:
            row = decode_rest_order({**order, "marketHash": market_hash})
        except ValueError as exc:
            log_event(log, "active_order_malformed", WARNING, market=market_hash, err=str(exc))
            return
        self.fills.apply_order_status(market_hash, row.order_hash, row.status, row.fill_amount)

    async def _complete(self, market_hash: str, filled: float) -> None:
        if self.registry.remove(market_hash) is None:
            return
        log_event(log, "position_filled", INFO, market=market_hash, filled=filled)
        if self._metrics:
            self._metrics.positions_completed.inc()
        self._notify({"action": "markFilled", "marketHash": market_hash, "currentFill": filled})
        if self._on_removed is not None:
            await self._on_removed(market_hash)
