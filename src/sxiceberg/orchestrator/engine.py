"""
IcebergEngine: single owner of every piece of monitoring state.

Architecture:
    One inbox (asyncio.Queue) carries control messages from the operator
    process and feed events from the realtime listeners. One consumer task
    drains it in arrival order and is the only writer of the registry,
    order book and fill tracker. The scheduler task reads that state every
    tick. Network work triggered by control messages (snapshot fetches,
    cancels, subscriptions) runs in background tasks and reports back
    through the inbox, so a slow request never holds up message handling.

Control messages:
    {"action": "start", "marketHash": ..., "config": {...}}
    {"action": "stop", "marketHash": ...}
    {"action": "update", "marketHash": ..., "config": {...}}
    {"action": "stopAll"}
    {"action": "forceRefreshAll"}

Outbound status messages go through the `notify` callable:
    {"action": "updateFill" | "markFilled", "marketHash": ..., "currentFill": ...}
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Coroutine, Dict, List, Mapping, Optional, Set

from sxiceberg.config.config import Settings
from sxiceberg.core.errors import IcebergError
from sxiceberg.core.rounding import unscale_amount
from sxiceberg.core.wire import decode_active_order_row, rest_order_to_row
from sxiceberg.execution.fill_tracker import FillTracker
from sxiceberg.execution.order_lifecycle import API_EXPIRY_SEC, POST_COOLDOWN_SEC, OrderLifecycleManager
from sxiceberg.infra.exchange_client import SXBetClient
from sxiceberg.infra.logging_cfg import DEBUG, ERROR, INFO, WARNING, log_event
from sxiceberg.infra.realtime import BookUpdate, OwnOrderUpdate, RealtimeFeed
from sxiceberg.infra.signing import OrderSigner
from sxiceberg.market_data.order_book import OrderBookStore
from sxiceberg.market_data.pricing import MarketDataEngine
from sxiceberg.monitoring.metrics import IcebergMetrics
from sxiceberg.orchestrator.registry import PositionRegistry
from sxiceberg.orchestrator.scheduler import MIN_REMAINING, TICK_INTERVAL_SEC, MonitoringScheduler, Notify

log = logging.getLogger("sxiceberg")

@dataclass
class EngineConfig:
    """Engine timing and venue parameters."""
    base_token: str
    executor: str
    tick_interval: float = TICK_INTERVAL_SEC
    post_cooldown: float = POST_COOLDOWN_SEC
    api_expiry_sec: int = API_EXPIRY_SEC
    active_order_retries: int = 3
    retry_delay: float = 2.0
    snapshot_refresh_sec: float = 30.0
    trade_reconcile_sec: float = 60.0
    book_retention_sec: float = 300.0
    default_min_order_size: float = 100.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "EngineConfig":
        return cls(
            base_token=settings.base_token,
            executor=settings.executor,
            tick_interval=settings.tick_interval,
            post_cooldown=settings.post_cooldown,
            api_expiry_sec=settings.api_expiry_sec,
            active_order_retries=settings.active_order_retries,
            retry_delay=settings.retry_delay,
            snapshot_refresh_sec=settings.snapshot_refresh_sec,
            trade_reconcile_sec=settings.trade_reconcile_sec,
            book_retention_sec=settings.book_retention_sec,
            default_min_order_size=settings.default_min_order_size,
        )


def _discard_notify(message: Dict[str, Any]) -> None:
    log_event(log, "status_message", DEBUG, **message)


class IcebergEngine:
    def __init__(
        self,
        config: EngineConfig,
        client: SXBetClient,
        signer: OrderSigner,
        notify: Optional[Notify] = None,
        feed_factory: Optional[Callable[["IcebergEngine"], RealtimeFeed]] = None,
        metrics: Optional[IcebergMetrics] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.client = client
        self.maker = signer.maker
        self.metrics = metrics
        self._notify = notify or _discard_notify

        self.registry = PositionRegistry()
        self.store = OrderBookStore(self.maker, retention_sec=config.book_retention_sec, clock=clock)
        self.pricing = MarketDataEngine(self.store)
        self.fills = FillTracker()
        self.lifecycle = OrderLifecycleManager(
            client,
            signer,
            self.pricing,
            is_monitored=self.registry.__contains__,
            base_token=config.base_token,
            executor=config.executor,
            cooldown_sec=config.post_cooldown,
            api_expiry_sec=config.api_expiry_sec,
            metrics=metrics,
            clock=clock,
        )
        self.scheduler = MonitoringScheduler(
            self.registry,
            self.pricing,
            self.fills,
            self.lifecycle,
            client,
            self.maker,
            notify=self._send_status,
            on_removed=self._release_market,
            active_order_retries=config.active_order_retries,
            retry_delay=config.retry_delay,
            metrics=metrics,
        )
        self.feed: Optional[RealtimeFeed] = feed_factory(self) if feed_factory else None

        self.inbox: asyncio.Queue = asyncio.Queue()
        self._stopping = asyncio.Event()
        self._wake = asyncio.Event()
        self._tasks: Set[asyncio.Task] = set()
        self._sweep: Set[str] = set()

    # === Inbox producers ===

    def submit(self, message: Mapping[str, Any]) -> None:
        """Queue a control message. Safe to call from feed callbacks and signal handlers."""
        self.inbox.put_nowait(dict(message))

    def feed_event(self, event: Any) -> None:
        self.inbox.put_nowait(event)

    def request_shutdown(self, reason: str) -> None:
        log_event(log, "shutdown_requested", INFO, reason=reason)
        self.submit({"action": "stopAll"})

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    # === Main loop ===

    async def run(self) -> int:
        """
        Run until stopAll (or a signal) and return the process exit code.

        0 after a clean shutdown sweep; 1 when the scheduler loop dies.
        """
        if self.feed is not None:
            try:
                await self.feed.start()
            except Exception as exc:  # feed is optional, snapshots keep the book current
                log_event(log, "feed_start_failed", ERROR, err=str(exc))

        consumer = asyncio.create_task(self._consume(), name="inbox")
        ticker = asyncio.create_task(self._schedule(), name="scheduler")
        housekeeping = [
            asyncio.create_task(self._periodic(self.config.snapshot_refresh_sec, self.refresh_snapshots), name="snapshots"),
            asyncio.create_task(self._periodic(self.config.trade_reconcile_sec, self.reconcile_trades), name="trades"),
        ]
        stop_wait = asyncio.create_task(self._stopping.wait(), name="stop-wait")

        exit_code = 0
        done, _ = await asyncio.wait({ticker, consumer, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
        for task in (ticker, consumer):
            if task in done and not task.cancelled() and task.exception() is not None:
                exc = task.exception()
                log.error(
                    f'{{"event":"loop_crashed","task":"{task.get_name()}","err":"{type(exc).__name__}: {exc}"}}',
                    exc_info=exc,
                )
                exit_code = 1
                self._sweep.update(self.registry.market_hashes())
                self.registry.clear()

        loops = [ticker, consumer, stop_wait, *housekeeping]
        for task in loops:
            task.cancel()
        await asyncio.gather(*loops, return_exceptions=True)
        # let in-progress stops finish their cancels
        await asyncio.gather(*list(self._tasks), return_exceptions=True)

        await self._shutdown_sweep()
        if self.feed is not None:
            await self.feed.close()
        log_event(log, "engine_stopped", INFO, exit_code=exit_code)
        return exit_code

    async def _consume(self) -> None:
        while True:
            item = await self.inbox.get()
            try:
                await self.dispatch(item)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                log.exception(f'{{"event":"inbox_handler_error","err":"{type(exc).__name__}: {exc}"}}')
            finally:
                self.inbox.task_done()

    async def _schedule(self) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.config.tick_interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
            if self._stopping.is_set():
                return
            await self.scheduler.tick()

    async def _periodic(self, interval: float, job: Callable[[], Awaitable[None]]) -> None:
        if interval <= 0:
            return
        while True:
            await asyncio.sleep(interval)
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                log.exception(f'{{"event":"periodic_job_error","job":"{job.__name__}","err":"{type(exc).__name__}"}}')

    # === Dispatch ===

    async def dispatch(self, item: Any) -> None:
        if isinstance(item, BookUpdate):
            self._apply_book_update(item)
            return
        if isinstance(item, OwnOrderUpdate):
            self._apply_own_orders(item)
            return
        if not isinstance(item, dict):
            log_event(log, "inbox_unknown_item", WARNING, kind=type(item).__name__)
            return

        action = item.get("action")
        market_hash = item.get("marketHash")
        log_event(log, "control_message", INFO, action=action, market=market_hash)
        if action == "start":
            self._handle_start(market_hash, item.get("config") or {})
        elif action == "stop":
            self._handle_stop(market_hash)
        elif action == "update":
            self._handle_update(market_hash, item.get("config") or {})
        elif action == "stopAll":
            self._handle_stop_all()
        elif action == "forceRefreshAll":
            self._wake.set()
        else:
            log_event(log, "control_unknown_action", WARNING, action=action)

    # === Control handlers ===

    def _handle_start(self, market_hash: Optional[str], config: Mapping[str, Any]) -> None:
        if not market_hash:
            log_event(log, "control_missing_market", WARNING, action="start")
            return
        if self._stopping.is_set():
            log_event(log, "start_ignored_stopping", WARNING, market=market_hash)
            return
        merged = {"minOrderSize": self.config.default_min_order_size, **config}
        try:
            self.registry.start(market_hash, merged)
        except (TypeError, ValueError) as exc:
            log_event(log, "start_rejected", ERROR, market=market_hash, err=str(exc))
            return
        self._sweep.discard(market_hash)
        self._spawn(self._prime_market(market_hash), f"prime:{market_hash[:10]}")

    def _handle_update(self, market_hash: Optional[str], config: Mapping[str, Any]) -> None:
        if not market_hash:
            log_event(log, "control_missing_market", WARNING, action="update")
            return
        try:
            self.registry.update(market_hash, config)
        except (TypeError, ValueError) as exc:
            log_event(log, "update_rejected", ERROR, market=market_hash, err=str(exc))

    def _handle_stop(self, market_hash: Optional[str]) -> None:
        if not market_hash:
            log_event(log, "control_missing_market", WARNING, action="stop")
            return
        # deregister first: an in-flight post re-checks the registry after submit
        if self.registry.remove(market_hash) is None:
            log_event(log, "stop_unknown_market", WARNING, market=market_hash)
            return
        self._spawn(self._cancel_and_release(market_hash), f"stop:{market_hash[:10]}")

    def _handle_stop_all(self) -> None:
        markets = self.registry.market_hashes()
        self.registry.clear()
        self._sweep.update(markets)
        log_event(log, "stop_all", INFO, markets=markets)
        self._stopping.set()

    # === Feed events ===

    def _apply_book_update(self, update: BookUpdate) -> None:
        pos = self.registry.get(update.market_hash)
        if pos is None:
            log_event(log, "book_update_unmonitored", DEBUG, market=update.market_hash)
            return
        stored = self.store.apply_update(
            update.market_hash, update.rows, pos.min_order_size, snapshot=update.snapshot,
        )
        for entry in stored:
            if entry.is_mine:
                self.fills.apply_order_status(update.market_hash, entry.order_hash, entry.status, entry.fill_amount)
        if update.snapshot:
            log_event(log, "snapshot_applied", DEBUG, market=update.market_hash, rows=len(update.rows))

    def _apply_own_orders(self, update: OwnOrderUpdate) -> None:
        for raw in update.rows:
            try:
                row = decode_active_order_row(raw, self.maker)
            except ValueError as exc:
                log_event(log, "feed_row_skipped", WARNING, market="own_orders", err=str(exc))
                continue
            if row.market_hash not in self.registry:
                continue
            self.fills.apply_order_status(row.market_hash, row.order_hash, row.status, row.fill_amount)

    # === Background work ===

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error(f'{{"event":"background_task_error","task":"{task.get_name()}","err":"{type(exc).__name__}: {exc}"}}')

    async def _prime_market(self, market_hash: str) -> None:
        """Initial snapshot and feed subscription for a newly started market."""
        await self._fetch_snapshot(market_hash)
        if self.feed is not None and market_hash in self.registry:
            try:
                await self.feed.subscribe_market(market_hash)
            except Exception as exc:  # realtime failures fall back to periodic snapshots
                log_event(log, "feed_subscribe_failed", ERROR, market=market_hash, err=str(exc))

    async def _fetch_snapshot(self, market_hash: str) -> None:
        try:
            orders = await self.client.fetch_order_book(market_hash)
        except IcebergError as exc:
            log_event(log, "snapshot_failed", WARNING, market=market_hash, err=str(exc))
            return
        rows = [rest_order_to_row(o) for o in orders if isinstance(o, dict)]
        self.feed_event(BookUpdate(market_hash=market_hash, rows=rows, snapshot=True))

    async def _cancel_active(self, market_hashes: List[str]) -> List[str]:
        hashes: List[str] = []
        for market_hash in market_hashes:
            orders = await self.client.fetch_active_orders(
                market_hash, self.maker,
                max_retries=self.config.active_order_retries, retry_delay=self.config.retry_delay,
            )
            if orders is None:
                log_event(log, "cancel_sweep_unknown", ERROR, market=market_hash)
                continue
            hashes.extend(o["orderHash"] for o in orders if isinstance(o, dict) and o.get("orderHash"))
        if hashes:
            await self.lifecycle.cancel(hashes)
        return hashes

    async def _cancel_and_release(self, market_hash: str) -> None:
        cancelled = await self._cancel_active([market_hash])
        log_event(log, "market_stopped", INFO, market=market_hash, cancelled=cancelled)
        await self._release_market(market_hash)

    async def _release_market(self, market_hash: str) -> None:
        if market_hash in self.registry:
            # restarted while the stop was in progress
            return
        self.store.drop(market_hash)
        self.fills.drop(market_hash)
        self.lifecycle.forget(market_hash)
        if self.metrics:
            self.metrics.forget_market(market_hash)
        if self.feed is not None:
            await self.feed.unsubscribe_market(market_hash)

    async def _shutdown_sweep(self) -> None:
        markets = sorted(self._sweep)
        self._sweep.clear()
        if not markets:
            return
        log_event(log, "shutdown_sweep", INFO, markets=markets)
        cancelled = await self._cancel_active(markets)
        for market_hash in markets:
            await self._release_market(market_hash)
        log_event(log, "shutdown_sweep_done", INFO, cancelled=len(cancelled))

    # === Periodic jobs ===

    async def refresh_snapshots(self) -> None:
        markets = self.registry.market_hashes()
        await asyncio.gather(*(self._fetch_snapshot(m) for m in markets))
        evicted = self.store.prune()
        if evicted:
            log_event(log, "order_book_pruned", DEBUG, evicted=evicted)

    async def reconcile_trades(self) -> None:
        """
        Compare trade-history volume with the feed-derived fill.

        Only logs; the fill tracker stays authoritative.
        """
        for market_hash in self.registry.market_hashes():
            pos = self.registry.get(market_hash)
            if pos is None:
                continue
            try:
                trades = await self.client.fetch_trades(market_hash, self.maker, pos.start_time_ms)
            except IcebergError as exc:
                log_event(log, "trade_check_failed", WARNING, market=market_hash, err=str(exc))
                continue
            raw = 0
            for trade in trades:
                try:
                    raw += int(float(trade.get("stake")))
                except (TypeError, ValueError):
                    log_event(log, "trade_invalid_stake", WARNING, market=market_hash, trade=trade)
            traded = unscale_amount(raw)
            tracked = self.fills.aggregate_fill(market_hash)
            if abs(traded - tracked) > MIN_REMAINING:
                log_event(
                    log, "fill_mismatch", WARNING,
                    market=market_hash, traded=traded, tracked=tracked, trades=len(trades),
                )
            else:
                log_event(log, "fill_check_ok", DEBUG, market=market_hash, traded=traded, tracked=tracked)

    def _send_status(self, message: Dict[str, Any]) -> None:
        try:
            self._notify(message)
        except (OSError, ValueError) as exc:
            # parent pipe closed; status messages are advisory
            log_event(log, "status_send_failed", WARNING, action=message.get("action"), err=str(exc))
