"""
OrderLifecycleManager: price, sign, submit and cancel orders.

Handles:
- Target price from best opposing price and the position's edge, floored
  onto the odds ladder
- Per-market post cooldown
- Registry guards before and after price computation, and after submit
- Best-effort batch cancellation

post() never retries; the scheduler's next tick is the retry.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Sequence

from sxiceberg.core.errors import IcebergError, InvalidPrice
from sxiceberg.core.rounding import ladder_odds, odds_to_probability, scale_amount, taker_probability, target_probability
from sxiceberg.infra.exchange_client import SXBetClient
from sxiceberg.infra.logging_cfg import DEBUG, ERROR, INFO, WARNING, log_event
from sxiceberg.infra.signing import NEVER_EXPIRES, OrderSigner
from sxiceberg.market_data.pricing import MarketDataEngine
from sxiceberg.monitoring.metrics import IcebergMetrics

log = logging.getLogger("sxiceberg")

POST_COOLDOWN_SEC = 5.0
API_EXPIRY_SEC = 300


class OrderLifecycleManager:
    def __init__(
        self,
        client: SXBetClient,
        signer: OrderSigner,
        pricing: MarketDataEngine,
        is_monitored: Callable[[str], bool],
        base_token: str,
        executor: str,
        cooldown_sec: float = POST_COOLDOWN_SEC,
        api_expiry_sec: int = API_EXPIRY_SEC,
        metrics: Optional[IcebergMetrics] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._signer = signer
        self._pricing = pricing
        self._is_monitored = is_monitored
        self._base_token = base_token
        self._executor = executor
        self._cooldown = cooldown_sec
        self._api_expiry = api_expiry_sec
        self._metrics = metrics
        self._clock = clock
        self._last_post: dict[str, float] = {}

    def desired_odds(self, market_hash: str, side: int, edge_percent: float, min_order_size: float) -> int:
        """
        Laddered maker odds (scaled integer) for a new order on `side`.

        Raises InvalidPrice when the book gives no usable price or the edge
        pushes the target out of (0, 1).
        """
        best_opposing = self._pricing.best_opposing_price(market_hash, side, min_order_size)
        if best_opposing <= 0 or best_opposing >= 1:
            raise InvalidPrice(f"no valid opposing price ({best_opposing}) for outcome {side}")
        target = target_probability(taker_probability(best_opposing), edge_percent)
        if target <= 0 or target >= 1:
            raise InvalidPrice(f"target probability {target} out of range")
        return ladder_odds(target)

    def cooldown_remaining(self, market_hash: str) -> float:
        last = self._last_post.get(market_hash)
        if last is None:
            return 0.0
        return max(0.0, self._cooldown - (self._clock() - last))

    async def post(
        self,
        market_hash: str,
        side: int,
        size: float,
        edge_percent: float,
        min_order_size: float = 100.0,
    ) -> Optional[str]:
        """Post one order; returns its hash, or None on any failure."""
        if not self._is_monitored(market_hash):
            log_event(log, "post_skipped_unmonitored", WARNING, market=market_hash)
            return None
        wait = self.cooldown_remaining(market_hash)
        if wait > 0:
            log_event(log, "post_cooldown", DEBUG, market=market_hash, wait_sec=round(wait, 3))
            return None

        try:
            odds = self.desired_odds(market_hash, side, edge_percent, min_order_size)
            try:
                total_bet_size = scale_amount(size)
            except ValueError as exc:
                raise InvalidPrice(f"invalid size {size!r}") from exc
            if total_bet_size <= 0:
                raise InvalidPrice(f"size {size!r} scales to {total_bet_size}")

            if not self._is_monitored(market_hash):
                log_event(log, "post_aborted_unmonitored", WARNING, market=market_hash, stage="priced")
                return None

            order = self._signer.build_order(
                market_hash=market_hash,
                base_token=self._base_token,
                executor=self._executor,
                total_bet_size=total_bet_size,
                percentage_odds=odds,
                is_maker_betting_outcome_one=side == 1,
                api_expiry=int(self._clock()) + self._api_expiry,
                expiry=NEVER_EXPIRES,
            )
            log_event(log, "order_prepared", DEBUG, market=market_hash, order=order.as_log())
            await self._client.post_orders([order.to_payload()])
        except IcebergError as exc:
            log_event(log, "post_failed", ERROR, market=market_hash, side=side, size=size, err=str(exc))
            if self._metrics:
                self._metrics.post_failures.labels(market=market_hash, reason=type(exc).__name__).inc()
            return None

        if not self._is_monitored(market_hash):
            # stopped while the request was in flight
            log_event(log, "post_aborted_unmonitored", WARNING, market=market_hash, stage="submitted",
                      order=order.order_hash)
            await self.cancel([order.order_hash])
            return None

        self._last_post[market_hash] = self._clock()
        if self._metrics:
            self._metrics.orders_posted.labels(market=market_hash).inc()
        log_event(
            log, "order_posted", INFO,
            market=market_hash, order=order.order_hash, side=side, size=size,
            odds=str(odds), probability=odds_to_probability(odds),
        )
        return order.order_hash

    async def cancel(self, order_hashes: Sequence[str]) -> bool:
        """Cancel in one signed batch. Best-effort: failures are logged only."""
        hashes: List[str] = list(order_hashes)
        if not hashes:
            return True
        try:
            payload = self._signer.sign_cancel(hashes)
            await self._client.cancel_orders(payload)
        except IcebergError as exc:
            log_event(log, "cancel_failed", ERROR, orders=hashes, err=str(exc))
            if self._metrics:
                self._metrics.cancel_failures.inc()
            return False
        if self._metrics:
            self._metrics.orders_cancelled.inc(len(hashes))
        log_event(log, "orders_cancelled", INFO, orders=hashes)
        return True

    def forget(self, market_hash: str) -> None:
        self._last_post.pop(market_hash, None)
