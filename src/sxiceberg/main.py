"""
Entry point wiring all components.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from multiprocessing.connection import Connection
from typing import Any, Dict, Mapping, Optional

from sxiceberg.config.config import Settings
from sxiceberg.config.positions import load_positions
from sxiceberg.core.json_utils import dumps
from sxiceberg.infra.exchange_client import SXBetClient
from sxiceberg.infra.logging_cfg import WARNING, build_logger, log_event
from sxiceberg.infra.realtime import RealtimeFeed
from sxiceberg.infra.signing import OrderSigner
from sxiceberg.monitoring.metrics import IcebergMetrics, start_metrics_server
from sxiceberg.orchestrator.engine import EngineConfig, IcebergEngine
from sxiceberg.orchestrator.scheduler import Notify

log = logging.getLogger("sxiceberg")

# control pipe poll interval; bounds how long the bridge thread outlives shutdown
BRIDGE_POLL_SEC = 0.5


async def bridge_control(conn: Connection, engine: IcebergEngine) -> None:
    """Forward control messages from the parent's pipe into the engine inbox."""
    while not engine.stopping:
        try:
            ready = await asyncio.to_thread(conn.poll, BRIDGE_POLL_SEC)
            if not ready:
                continue
            message = conn.recv()
        except (EOFError, OSError):
            # parent closed the pipe
            engine.request_shutdown("control_closed")
            return
        if isinstance(message, dict):
            engine.submit(message)
        else:
            log_event(log, "control_message_invalid", WARNING, kind=type(message).__name__)


def pipe_notify(conn: Connection) -> Notify:
    def _send(message: Dict[str, Any]) -> None:
        conn.send(message)
    return _send


async def main(
    settings: Settings,
    notify: Optional[Notify] = None,
    control: Optional[Connection] = None,
    positions: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> int:
    signer = OrderSigner(settings.resolve_signer(), chain_id=settings.chain_id)
    client = SXBetClient(
        settings.base_url,
        timeout=settings.http_timeout,
        api_key=settings.api_key,
        chain_version=settings.chain_version,
    )
    metrics = IcebergMetrics()
    if settings.metrics_port > 0:
        start_metrics_server(metrics, settings.metrics_port)

    feed_factory = None
    if settings.realtime_enabled and settings.api_key:
        def feed_factory(engine: IcebergEngine) -> RealtimeFeed:
            return RealtimeFeed(client, settings.base_token, engine.maker, engine.feed_event)

    engine = IcebergEngine(
        EngineConfig.from_settings(settings),
        client,
        signer,
        notify=notify,
        feed_factory=feed_factory,
        metrics=metrics,
    )
    log.info(dumps({"event": "startup", "maker": engine.maker, "positions": len(positions or {})}))

    for market_hash, config in (positions or {}).items():
        engine.submit({"action": "start", "marketHash": market_hash, "config": dict(config)})

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, engine.request_shutdown, sig.name)
        except NotImplementedError:
            pass

    bridge = asyncio.create_task(bridge_control(control, engine), name="control") if control else None
    try:
        return await engine.run()
    finally:
        if bridge is not None:
            bridge.cancel()
            await asyncio.gather(bridge, return_exceptions=True)
        await client.close()
        log.info("Shutdown complete")


def run(
    control: Optional[Connection] = None,
    with_positions: bool = False,
    positions_file: Optional[str] = None,
    log_level: Optional[str] = None,
) -> int:
    """
    Load settings and logging, then run the engine to completion.

    Returns the process exit code: 2 when settings, credentials or the log
    file cannot be set up.
    """
    try:
        settings = Settings.load()
        build_logger("sxiceberg", level=(log_level or settings.log_level).upper(), file_path=settings.log_file)
        settings.resolve_signer()
    except (OSError, RuntimeError, ValueError) as exc:
        print(f"startup failed: {exc}", file=sys.stderr)
        return 2

    log.info(dumps({"event": "settings", **settings.dump()}))
    positions = load_positions(positions_file or settings.positions_file) if with_positions else {}
    notify = pipe_notify(control) if control is not None else None
    try:
        return asyncio.run(main(settings, notify=notify, control=control, positions=positions))
    except KeyboardInterrupt:
        return 0


def cli() -> None:
    parser = argparse.ArgumentParser(prog="sx-iceberg", description="Iceberg market-making monitor for SX Bet")
    parser.add_argument("--positions", default=None, help="YAML file of positions to start (default: SX_POSITIONS_FILE)")
    parser.add_argument("--no-positions", action="store_true", help="start with no positions")
    parser.add_argument("--log-level", default=None, help="override SX_LOG_LEVEL")
    args = parser.parse_args()

    sys.exit(run(with_positions=not args.no_positions, positions_file=args.positions, log_level=args.log_level))


if __name__ == "__main__":
    cli()
