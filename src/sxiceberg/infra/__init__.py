"""
Infrastructure package.

This package contains the exchange REST client, order signing, the realtime
push feed and logging configuration.
"""

from sxiceberg.infra.exchange_client import SXBetClient
from sxiceberg.infra.logging_cfg import build_logger, log_event
from sxiceberg.infra.signing import OrderSigner, SignedOrder

__all__ = [
    "SXBetClient",
    "build_logger",
    "log_event",
    "OrderSigner",
    "SignedOrder",
]
