"""
Price-ladder and unit-scaling helpers for SX Bet.

Implied probabilities travel over the wire as integers scaled by 10^20 and
must sit on the venue's odds ladder. Stakes are base-token integers with
six decimals. All arithmetic goes through Decimal so a value that is already
on the ladder maps back onto exactly the same integer.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_FLOOR, ROUND_HALF_UP
from typing import Union

IMPLIED_ODDS_MULTIPLIER = 10 ** 20
ODDS_LADDER_STEP_SIZE = Decimal("0.0025")
BASE_TOKEN_DECIMALS = 6

Number = Union[int, float, str, Decimal]

__all__ = [
    "IMPLIED_ODDS_MULTIPLIER",
    "ODDS_LADDER_STEP_SIZE",
    "BASE_TOKEN_DECIMALS",
    "to_decimal",
    "scale_odds",
    "floor_to_ladder",
    "ladder_odds",
    "odds_to_probability",
    "taker_probability",
    "target_probability",
    "scale_amount",
    "unscale_amount",
]


def to_decimal(value: Number) -> Decimal:
    """
    Convert to Decimal without dragging binary float noise along.

    Floats go through repr() so 0.6 becomes Decimal("0.6"), not
    Decimal("0.59999999999999997779...").
    """
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, float):
        dec = Decimal(repr(value))
    else:
        try:
            dec = Decimal(value)
        except (InvalidOperation, TypeError) as exc:
            raise ValueError(f"not a number: {value!r}") from exc
    if not dec.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return dec


def _step_scaled(step: Number = ODDS_LADDER_STEP_SIZE) -> int:
    scaled = int(to_decimal(step) * IMPLIED_ODDS_MULTIPLIER)
    if scaled <= 0:
        raise ValueError(f"ladder step must be > 0, got {step!r}")
    return scaled


def scale_odds(probability: Number) -> int:
    """Implied probability in [0, 1] -> venue integer (floor)."""
    scaled = to_decimal(probability) * IMPLIED_ODDS_MULTIPLIER
    return int(scaled.to_integral_value(rounding=ROUND_FLOOR))


def floor_to_ladder(scaled_odds: int, step: Number = ODDS_LADDER_STEP_SIZE) -> int:
    """
    Floor an already-scaled odds integer onto the ladder.

    Flooring keeps the posted maker price at or below the target, so the
    requested edge is never given away by rounding.
    """
    step_scaled = _step_scaled(step)
    return (int(scaled_odds) // step_scaled) * step_scaled


def ladder_odds(probability: Number, step: Number = ODDS_LADDER_STEP_SIZE) -> int:
    return floor_to_ladder(scale_odds(probability), step)


def odds_to_probability(scaled_odds: Number) -> float:
    return float(to_decimal(int(scaled_odds)) / IMPLIED_ODDS_MULTIPLIER)


def taker_probability(best_opposing: Number) -> Decimal:
    """Best taker odds implied by the best opposing maker probability, on the scaled grid."""
    return Decimal(IMPLIED_ODDS_MULTIPLIER - scale_odds(best_opposing)) / IMPLIED_ODDS_MULTIPLIER


def target_probability(best_taker_odds: Number, edge_percent: Number) -> Decimal:
    """Best taker odds shaded down by edge_percent (2 means 2%)."""
    return to_decimal(best_taker_odds) * (1 - to_decimal(edge_percent) / 100)


def scale_amount(amount: Number) -> int:
    """Human stake -> base-token integer units."""
    scaled = to_decimal(amount) * (10 ** BASE_TOKEN_DECIMALS)
    return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))


def unscale_amount(raw: Number) -> float:
    return float(to_decimal(int(raw)) / (10 ** BASE_TOKEN_DECIMALS))
