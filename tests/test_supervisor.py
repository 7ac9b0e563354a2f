"""
Tests for the parent/worker control channel.
"""
import asyncio
import multiprocessing as mp
from unittest.mock import MagicMock

import pytest

from sxiceberg.main import bridge_control, pipe_notify
from sxiceberg.orchestrator.supervisor import MonitorHandle

from conftest import MARKET


@pytest.fixture
def pipe():
    parent, child = mp.Pipe(duplex=True)
    yield parent, child
    parent.close()
    child.close()


@pytest.fixture
def handle(pipe):
    h = MonitorHandle()
    h._conn = pipe[0]
    return h


class TestMonitorHandle:
    def test_control_messages(self, handle, pipe):
        _, child = pipe
        handle.start(MARKET, {"outcome": 1})
        handle.update(MARKET, {"edge": 3})
        handle.stop(MARKET)
        handle.force_refresh_all()
        handle.stop_all()
        received = [child.recv() for _ in range(5)]
        assert received == [
            {"action": "start", "marketHash": MARKET, "config": {"outcome": 1}},
            {"action": "update", "marketHash": MARKET, "config": {"edge": 3}},
            {"action": "stop", "marketHash": MARKET},
            {"action": "forceRefreshAll"},
            {"action": "stopAll"},
        ]

    def test_poll_status_drains(self, handle, pipe):
        _, child = pipe
        notify = pipe_notify(child)
        notify({"action": "updateFill", "marketHash": MARKET, "currentFill": 250.0})
        notify({"action": "markFilled", "marketHash": MARKET, "currentFill": 1000.0})
        messages = handle.poll_status(timeout=1.0)
        assert [m["action"] for m in messages] == ["updateFill", "markFilled"]
        assert handle.poll_status() == []

    def test_send_without_worker(self):
        assert MonitorHandle().stop_all() is False


class TestBridge:
    @pytest.mark.asyncio
    async def test_forwards_messages_and_stops_on_eof(self, pipe):
        parent, child = pipe
        engine = MagicMock()
        engine.stopping = False
        parent.send({"action": "start", "marketHash": MARKET, "config": {}})
        parent.send("garbage")
        parent.close()

        await asyncio.wait_for(bridge_control(child, engine), timeout=5)

        engine.submit.assert_called_once_with({"action": "start", "marketHash": MARKET, "config": {}})
        engine.request_shutdown.assert_called_once_with("control_closed")
