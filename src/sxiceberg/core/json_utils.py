"""
Fast JSON utilities for high-frequency operations.

Usage:
    from sxiceberg.core.json_utils import dumps, loads

    log.info(dumps({"event": "order_posted", "market": market_hash}))
"""

from __future__ import annotations

from typing import Any

import orjson


def _default(obj: Any) -> Any:
    # Decimal and other numeric wrappers show up in log payloads
    return str(obj)


def dumps(obj: Any) -> str:
    """Fast JSON encode to string."""
    return orjson.dumps(obj, default=_default).decode("utf-8")


def dumps_bytes(obj: Any) -> bytes:
    """Fast JSON encode to bytes (skip the utf-8 decode)."""
    return orjson.dumps(obj, default=_default)


def loads(s: str | bytes) -> Any:
    """Fast JSON decode."""
    return orjson.loads(s)
