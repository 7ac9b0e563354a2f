"""
Core utilities package.

This package contains error types, JSON helpers, price-ladder rounding and
the positional wire decoders shared by the REST and realtime paths.
"""

from sxiceberg.core.errors import (
    ExchangeError,
    IcebergError,
    InvalidPrice,
    MalformedResponse,
    RequestTimeout,
    SigningError,
)
from sxiceberg.core.json_utils import dumps, dumps_bytes, loads
from sxiceberg.core.rounding import floor_to_ladder, ladder_odds, scale_amount, scale_odds

__all__ = [
    "ExchangeError",
    "IcebergError",
    "InvalidPrice",
    "MalformedResponse",
    "RequestTimeout",
    "SigningError",
    "dumps",
    "dumps_bytes",
    "loads",
    "floor_to_ladder",
    "ladder_odds",
    "scale_amount",
    "scale_odds",
]
