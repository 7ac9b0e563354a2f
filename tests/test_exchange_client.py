"""
Tests for the SX Bet REST client, over httpx.MockTransport.
"""
import asyncio
import json

import httpx
import pytest

from sxiceberg.core.errors import ExchangeError, MalformedResponse, RequestTimeout
from sxiceberg.infra.exchange_client import SXBetClient

from conftest import MARKET

BASE_URL = "https://api.test"


def make_client(handler, timeout=5.0, api_key=None):
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return SXBetClient(BASE_URL, timeout=timeout, api_key=api_key, client=http)


class TestRequestWrapper:
    @pytest.mark.asyncio
    async def test_timeout_raises_request_timeout(self):
        async def slow(request):
            await asyncio.sleep(1.0)
            return httpx.Response(200, json={"status": "success", "data": []})

        client = make_client(slow, timeout=0.05)
        with pytest.raises(RequestTimeout):
            await client.fetch_order_book(MARKET)

    @pytest.mark.asyncio
    async def test_non_success_status(self):
        client = make_client(lambda request: httpx.Response(503, text="down"))
        with pytest.raises(ExchangeError) as excinfo:
            await client.fetch_order_book(MARKET)
        assert excinfo.value.status == 503
        assert not isinstance(excinfo.value, RequestTimeout)

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        client = make_client(lambda request: httpx.Response(200, json={"status": "success", "data": {}}))
        with pytest.raises(MalformedResponse):
            await client.fetch_order_book(MARKET)

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(MalformedResponse):
            await client.fetch_order_book(MARKET)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def boom(request):
            raise httpx.ConnectError("refused", request=request)

        client = make_client(boom)
        with pytest.raises(ExchangeError):
            await client.fetch_order_book(MARKET)


class TestActiveOrders:
    @pytest.mark.asyncio
    async def test_query_params(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"status": "success", "data": [{"orderHash": "0x01"}]})

        client = make_client(handler)
        orders = await client.fetch_active_orders(MARKET, "0xME", max_retries=1, retry_delay=0)
        assert orders == [{"orderHash": "0x01"}]
        assert seen[0].url.path == "/orders"
        assert seen[0].url.params["marketHashes"] == MARKET
        assert seen[0].url.params["maker"] == "0xME"

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            if calls["n"] < 2:
                return httpx.Response(500)
            return httpx.Response(200, json={"status": "success", "data": []})

        client = make_client(handler)
        assert await client.fetch_active_orders(MARKET, "0xME", max_retries=3, retry_delay=0) == []
        assert calls["n"] == 2

    @pytest.mark.asyncio
    async def test_none_after_all_retries_fail(self):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            return httpx.Response(500)

        client = make_client(handler)
        assert await client.fetch_active_orders(MARKET, "0xME", max_retries=3, retry_delay=0) is None
        assert calls["n"] == 3


class TestOrders:
    @pytest.mark.asyncio
    async def test_post_orders_body(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"status": "success", "data": {"orders": ["0x01"]}})

        client = make_client(handler)
        data = await client.post_orders([{"marketHash": MARKET}])
        assert bodies == [{"orders": [{"marketHash": MARKET}]}]
        assert data == {"orders": ["0x01"]}

    @pytest.mark.asyncio
    async def test_post_orders_failure_status(self):
        client = make_client(lambda r: httpx.Response(200, json={"status": "failure", "errorCode": "BAD_ODDS"}))
        with pytest.raises(ExchangeError, match="BAD_ODDS"):
            await client.post_orders([{}])

    @pytest.mark.asyncio
    async def test_cancel_uses_chain_version(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"status": "success", "data": {"cancelledCount": 1}})

        client = make_client(handler)
        await client.cancel_orders({"orderHashes": ["0x01"]})
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/orders/cancel/v2"
        assert seen[0].url.params["chainVersion"] == "SXR"


class TestTradesAndToken:
    @pytest.mark.asyncio
    async def test_trades_since_start(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"status": "success", "data": {"trades": [{"stake": "1000000"}]}})

        client = make_client(handler)
        trades = await client.fetch_trades(MARKET, "0xME", 1700000000000)
        assert trades == [{"stake": "1000000"}]
        params = seen[0].url.params
        assert params["startDate"] == "2023-11-14T22:13:20Z"
        assert params["bettor"] == "0xME"
        assert params["chainVersion"] == "SXR"

    @pytest.mark.asyncio
    async def test_trades_bad_shape(self):
        client = make_client(lambda r: httpx.Response(200, json={"status": "success", "data": []}))
        with pytest.raises(MalformedResponse):
            await client.fetch_trades(MARKET, "0xME", 1700000000000)

    @pytest.mark.asyncio
    async def test_realtime_token_needs_api_key(self):
        client = make_client(lambda r: httpx.Response(200, json={}))
        with pytest.raises(ExchangeError):
            await client.fetch_realtime_token()

    @pytest.mark.asyncio
    async def test_realtime_token_sends_key(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"token": "abc"})

        client = make_client(handler, api_key="k")
        assert await client.fetch_realtime_token() == {"token": "abc"}
        assert seen[0].headers["X-Api-Key"] == "k"
