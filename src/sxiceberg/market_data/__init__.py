"""
Market data package.

This package contains the per-market order-book cache and the pricing
queries (best opposing price, vig) derived from it.
"""

from sxiceberg.market_data.order_book import OrderBookEntry, OrderBookStore
from sxiceberg.market_data.pricing import MarketDataEngine, compute_vig

__all__ = [
    "OrderBookEntry",
    "OrderBookStore",
    "MarketDataEngine",
    "compute_vig",
]
