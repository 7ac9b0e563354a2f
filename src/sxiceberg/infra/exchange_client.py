"""
Async HTTP client for the SX Bet REST API.

Every call is bounded by an explicit timeout and surfaces failures as
ExchangeError subclasses so callers can log and retry on their own terms.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from sxiceberg.core.errors import ExchangeError, MalformedResponse, RequestTimeout
from sxiceberg.infra.logging_cfg import WARNING, log_event

log = logging.getLogger("sxiceberg")


class SXBetClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        api_key: Optional[str] = None,
        chain_version: str = "SXR",
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._api_key = api_key
        self.chain_version = chain_version
        # If a shared client is passed in, we won't close it in close(); otherwise we own it.
        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
            self._owns_client = True

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def fetch_order_book(self, market_hash: str) -> List[Dict[str, Any]]:
        """Every resting order on the market, ours included."""
        payload = await self._request("GET", "/orders", params={"marketHashes": market_hash})
        return self._data_list(payload, "orders")

    async def fetch_active_orders(
        self,
        market_hash: str,
        maker: str,
        max_retries: int = 3,
        retry_delay: float = 2.0,
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Our resting orders on one market.

        Returns None once every attempt has failed so callers can tell
        "no orders" apart from "could not find out".
        """
        params = {"marketHashes": market_hash, "maker": maker}
        for attempt in range(1, max_retries + 1):
            try:
                payload = await self._request("GET", "/orders", params=params)
                return self._data_list(payload, "active_orders")
            except ExchangeError as exc:
                log_event(
                    log, "active_orders_retry", WARNING,
                    market=market_hash, attempt=attempt, max_retries=max_retries, err=str(exc),
                )
                if attempt < max_retries:
                    await asyncio.sleep(retry_delay)
        log_event(log, "active_orders_unavailable", WARNING, market=market_hash, attempts=max_retries)
        return None

    async def post_orders(self, orders: List[Dict[str, Any]]) -> Any:
        payload = await self._request("POST", "/orders/new", json_body={"orders": orders})
        if isinstance(payload, dict) and payload.get("status") == "failure":
            raise ExchangeError(f"order rejected: {payload.get('errorCode') or payload}")
        return payload.get("data") if isinstance(payload, dict) else payload

    async def cancel_orders(self, cancel_payload: Dict[str, Any]) -> Any:
        payload = await self._request(
            "POST",
            "/orders/cancel/v2",
            params={"chainVersion": self.chain_version},
            json_body=cancel_payload,
        )
        if isinstance(payload, dict) and payload.get("status") == "failure":
            raise ExchangeError(f"cancel rejected: {payload.get('errorCode') or payload}")
        return payload.get("data") if isinstance(payload, dict) else payload

    async def fetch_trades(self, market_hash: str, bettor: str, start_ms: int) -> List[Dict[str, Any]]:
        """Trade history for one bettor on one market since start_ms."""
        start = datetime.fromtimestamp(start_ms / 1000, tz=timezone.utc)
        params = {
            "marketHashes": market_hash,
            "startDate": start.isoformat().replace("+00:00", "Z"),
            "bettor": bettor,
            "chainVersion": self.chain_version,
        }
        payload = await self._request("GET", "/trades", params=params)
        data = payload.get("data") if isinstance(payload, dict) else None
        trades = data.get("trades") if isinstance(data, dict) else None
        if not isinstance(trades, list):
            raise MalformedResponse("trades: expected data.trades list")
        return trades

    async def fetch_realtime_token(self) -> Dict[str, Any]:
        """Token request for the realtime pub/sub service."""
        if not self._api_key:
            raise ExchangeError("realtime token requires an API key")
        payload = await self._request("GET", "/user/token", headers={"X-Api-Key": self._api_key})
        if not isinstance(payload, dict):
            raise MalformedResponse("user/token: expected an object")
        return payload

    @staticmethod
    def _data_list(payload: Any, label: str) -> List[Dict[str, Any]]:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise MalformedResponse(f"{label}: expected data list")
        return data

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        try:
            resp = await asyncio.wait_for(
                self.client.request(method, path, params=params, json=json_body, headers=headers),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise RequestTimeout(f"{method} {path} timed out after {self._timeout}s") from exc
        except httpx.HTTPError as exc:
            raise ExchangeError(f"{method} {path} failed: {exc}") from exc

        if not resp.is_success:
            raise ExchangeError(
                f"{method} {path} returned {resp.status_code}: {resp.text[:200]}",
                status=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedResponse(f"{method} {path} returned non-JSON body") from exc
