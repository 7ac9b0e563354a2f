"""
Error taxonomy for the monitor.

Everything raised on purpose derives from IcebergError so the per-operation
and per-market boundaries can catch one type, log it and move on.
"""

from __future__ import annotations

from typing import Optional


class IcebergError(Exception):
    """Base class for expected, recoverable failures."""


class ExchangeError(IcebergError):
    """Exchange call failed (transport error or non-success status)."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class RequestTimeout(ExchangeError):
    """Exchange call exceeded its timeout."""


class MalformedResponse(ExchangeError):
    """Exchange answered with a shape we do not understand."""


class SigningError(IcebergError):
    """Order or cancellation payload could not be signed."""


class InvalidPrice(IcebergError):
    """Computed price or size is outside the range the venue accepts."""
