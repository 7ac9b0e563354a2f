"""
Realtime push feeds over SX Bet's managed pub/sub (Ably).

Two subscriptions feed the engine:
- order_book:{baseToken}:{marketHash}  one per monitored market
- active_orders:{baseToken}:{maker}    the operator's own order changes

Listeners never touch engine state; they wrap the raw rows in a feed event
and hand it to the engine's inbox.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from ably import AblyRealtime

from sxiceberg.infra.exchange_client import SXBetClient
from sxiceberg.infra.logging_cfg import DEBUG, WARNING, log_event

log = logging.getLogger("sxiceberg")


@dataclass(frozen=True)
class BookUpdate:
    market_hash: str
    rows: Sequence[Any]
    snapshot: bool = False


@dataclass(frozen=True)
class OwnOrderUpdate:
    rows: Sequence[Any]


def book_channel_name(base_token: str, market_hash: str) -> str:
    return f"order_book:{base_token}:{market_hash}"


def own_orders_channel_name(base_token: str, maker: str) -> str:
    return f"active_orders:{base_token}:{maker}"


def _rows(data: Any) -> List[Any]:
    # a single-order message arrives as one flat row
    if isinstance(data, list) and data and not isinstance(data[0], (list, tuple)):
        return [data]
    if isinstance(data, list):
        return data
    return []


class RealtimeFeed:
    def __init__(
        self,
        client: SXBetClient,
        base_token: str,
        maker: str,
        emit: Callable[[Any], None],
    ) -> None:
        self._client = client
        self._base_token = base_token
        self._maker = maker
        self._emit = emit
        self._ably: Optional[AblyRealtime] = None
        self._channels: Dict[str, Any] = {}

    async def _auth_callback(self, token_params: Any) -> Dict[str, Any]:
        return await self._client.fetch_realtime_token()

    def _connection(self) -> AblyRealtime:
        if self._ably is None:
            self._ably = AblyRealtime(auth_callback=self._auth_callback)
        return self._ably

    async def start(self) -> None:
        name = own_orders_channel_name(self._base_token, self._maker)
        channel = self._connection().channels.get(name)

        def _on_own_orders(message: Any) -> None:
            rows = _rows(getattr(message, "data", None))
            if rows:
                self._emit(OwnOrderUpdate(rows=rows))

        await channel.subscribe(_on_own_orders)
        self._channels["__own__"] = channel
        log_event(log, "feed_subscribed", channel=name)

    async def subscribe_market(self, market_hash: str) -> None:
        if market_hash in self._channels:
            return
        name = book_channel_name(self._base_token, market_hash)
        channel = self._connection().channels.get(name)

        def _on_book(message: Any) -> None:
            rows = _rows(getattr(message, "data", None))
            log_event(log, "feed_book_message", DEBUG, market=market_hash, rows=len(rows))
            if rows:
                self._emit(BookUpdate(market_hash=market_hash, rows=rows))

        await channel.subscribe(_on_book)
        self._channels[market_hash] = channel
        log_event(log, "feed_subscribed", market=market_hash, channel=name)

    async def unsubscribe_market(self, market_hash: str) -> None:
        channel = self._channels.pop(market_hash, None)
        if channel is None:
            return
        try:
            channel.unsubscribe()
            await channel.detach()
        except Exception as exc:  # ably raises its own exception types on detach
            log_event(log, "feed_unsubscribe_error", WARNING, market=market_hash, err=str(exc))

    async def close(self) -> None:
        self._channels.clear()
        if self._ably is not None:
            try:
                await self._ably.close()
            except Exception as exc:  # best-effort on shutdown
                log_event(log, "feed_close_error", WARNING, err=str(exc))
            self._ably = None
