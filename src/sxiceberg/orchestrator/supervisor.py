"""
Process model for the monitor.

The operator-facing process spawns the engine in a child process and talks
to it over a duplex Pipe: control messages go down, status messages
(updateFill / markFilled) come back up.

Usage:
    handle = MonitorHandle()
    handle.spawn()
    handle.start(market_hash, {"outcome": 1, "maxFill": 1000, ...})
    for status in handle.poll_status():
        ...
    handle.stop_all()
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import sys
from multiprocessing.connection import Connection
from typing import Any, Dict, List, Mapping, Optional

from sxiceberg.infra.logging_cfg import INFO, WARNING, log_event

log = logging.getLogger("sxiceberg")


def run_worker(conn: Connection) -> None:
    """multiprocessing target: run the engine with `conn` as its control channel."""
    from sxiceberg.main import run

    try:
        code = run(control=conn)
    finally:
        conn.close()
    sys.exit(code)


class MonitorHandle:
    """Parent-side handle on a monitor worker process."""

    def __init__(self, context: Optional[Any] = None) -> None:
        self._ctx = context or mp.get_context("spawn")
        self._conn: Optional[Connection] = None
        self._process: Optional[Any] = None

    @property
    def alive(self) -> bool:
        return self._process is not None and self._process.is_alive()

    @property
    def exitcode(self) -> Optional[int]:
        return self._process.exitcode if self._process is not None else None

    def spawn(self) -> None:
        if self.alive:
            return
        parent_conn, child_conn = self._ctx.Pipe(duplex=True)
        process = self._ctx.Process(target=run_worker, args=(child_conn,), name="sx-iceberg-monitor")
        process.start()
        child_conn.close()
        self._conn = parent_conn
        self._process = process
        log_event(log, "monitor_spawned", INFO, pid=process.pid)

    def send(self, message: Mapping[str, Any]) -> bool:
        if self._conn is None:
            log_event(log, "monitor_not_running", WARNING, action=message.get("action"))
            return False
        try:
            self._conn.send(dict(message))
        except (BrokenPipeError, EOFError, OSError) as exc:
            log_event(log, "monitor_send_failed", WARNING, action=message.get("action"), err=str(exc))
            return False
        return True

    def start(self, market_hash: str, config: Mapping[str, Any]) -> bool:
        return self.send({"action": "start", "marketHash": market_hash, "config": dict(config)})

    def stop(self, market_hash: str) -> bool:
        return self.send({"action": "stop", "marketHash": market_hash})

    def update(self, market_hash: str, config: Mapping[str, Any]) -> bool:
        return self.send({"action": "update", "marketHash": market_hash, "config": dict(config)})

    def stop_all(self) -> bool:
        return self.send({"action": "stopAll"})

    def force_refresh_all(self) -> bool:
        return self.send({"action": "forceRefreshAll"})

    def poll_status(self, timeout: float = 0.0) -> List[Dict[str, Any]]:
        """Drain status messages the worker has sent so far."""
        messages: List[Dict[str, Any]] = []
        if self._conn is None:
            return messages
        try:
            wait = timeout
            while self._conn.poll(wait):
                messages.append(self._conn.recv())
                wait = 0.0
        except (EOFError, OSError):
            self._conn = None
        return messages

    def join(self, timeout: Optional[float] = None) -> Optional[int]:
        if self._process is None:
            return None
        self._process.join(timeout)
        return self._process.exitcode

    def terminate(self, timeout: float = 30.0) -> Optional[int]:
        """Ask the worker to sweep and exit; kill it if it does not within `timeout`."""
        if self._process is None:
            return None
        self.stop_all()
        code = self.join(timeout)
        if self._process.is_alive():
            log_event(log, "monitor_kill", WARNING, pid=self._process.pid)
            self._process.terminate()
            code = self.join(5.0)
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        return code
