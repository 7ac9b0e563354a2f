"""
Positional decoders for SX Bet order rows.

The realtime channels deliver each order as an array whose field order is a
protocol contract. REST snapshots come back as objects; they are converted to
the same positional layout so both paths share one decoder.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence

from sxiceberg.core.rounding import odds_to_probability, unscale_amount

STATUS_ACTIVE = "ACTIVE"
STATUS_INACTIVE = "INACTIVE"

# order_book:{token}:{marketHash}
ORDER_BOOK_FIELDS = (
    "orderHash",
    "status",
    "fillAmount",
    "maker",
    "totalBetSize",
    "percentageOdds",
    "expiry",
    "apiExpiry",
    "salt",
    "isMakerBettingOutcomeOne",
    "signature",
    "updateTime",
    "chainVersion",
    "sportXeventId",
)

# active_orders:{token}:{maker}
ACTIVE_ORDER_FIELDS = (
    "orderHash",
    "marketHash",
    "status",
    "fillAmount",
    "totalBetSize",
    "percentageOdds",
    "expiry",
    "apiExpiry",
    "salt",
    "isMakerBettingOutcomeOne",
    "signature",
    "updateTime",
    "chainVersion",
)

# fields up to and including isMakerBettingOutcomeOne are required
_BOOK_REQUIRED = ORDER_BOOK_FIELDS.index("isMakerBettingOutcomeOne") + 1
_ACTIVE_REQUIRED = ACTIVE_ORDER_FIELDS.index("isMakerBettingOutcomeOne") + 1


@dataclass(frozen=True)
class OrderRow:
    """One decoded order as seen on either channel."""
    order_hash: str
    status: str
    fill_amount: int
    maker: str
    total_bet_size: int
    percentage_odds: int
    is_maker_betting_outcome_one: bool
    market_hash: str = ""
    update_time: int = 0

    @property
    def size(self) -> float:
        return unscale_amount(self.total_bet_size)

    @property
    def price(self) -> float:
        return odds_to_probability(self.percentage_odds)

    @property
    def active(self) -> bool:
        return self.status == STATUS_ACTIVE


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1"}
    return bool(value)


def _as_int(value: Any, field: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError(f"{field}: unexpected bool")
    try:
        return int(value)
    except (TypeError, ValueError):
        # scaled amounts sometimes arrive as float-formatted strings
        try:
            return int(float(value))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{field}: not an integer: {value!r}") from exc


def _build(fields: Mapping[str, Any], market_hash: str) -> OrderRow:
    order_hash = fields.get("orderHash")
    if not isinstance(order_hash, str) or not order_hash:
        raise ValueError("orderHash missing")
    odds = _as_int(fields.get("percentageOdds"), "percentageOdds")
    row = OrderRow(
        order_hash=order_hash,
        status=str(fields.get("status") or STATUS_ACTIVE).upper(),
        fill_amount=_as_int(fields.get("fillAmount"), "fillAmount"),
        maker=str(fields.get("maker") or ""),
        total_bet_size=_as_int(fields.get("totalBetSize"), "totalBetSize"),
        percentage_odds=odds,
        is_maker_betting_outcome_one=_as_bool(fields.get("isMakerBettingOutcomeOne")),
        market_hash=market_hash,
        update_time=_as_int(fields.get("updateTime"), "updateTime"),
    )
    if not 0.0 <= row.price <= 1.0:
        raise ValueError(f"percentageOdds out of range: {odds}")
    if row.total_bet_size < 0 or row.fill_amount < 0:
        raise ValueError("negative size")
    return row


def decode_order_book_row(row: Sequence[Any], market_hash: str = "") -> OrderRow:
    if not isinstance(row, (list, tuple)) or len(row) < _BOOK_REQUIRED:
        raise ValueError(f"order book row too short: {row!r}")
    return _build(dict(zip(ORDER_BOOK_FIELDS, row)), market_hash)


def decode_active_order_row(row: Sequence[Any], maker: str) -> OrderRow:
    if not isinstance(row, (list, tuple)) or len(row) < _ACTIVE_REQUIRED:
        raise ValueError(f"active order row too short: {row!r}")
    fields: Dict[str, Any] = dict(zip(ACTIVE_ORDER_FIELDS, row))
    fields["maker"] = maker
    market_hash = fields.get("marketHash")
    if not isinstance(market_hash, str) or not market_hash:
        raise ValueError("marketHash missing")
    return _build(fields, market_hash)


def rest_order_to_row(order: Mapping[str, Any], status: str = STATUS_ACTIVE) -> List[Any]:
    """REST /orders objects only list resting orders, hence the ACTIVE default."""
    fields = dict(order)
    fields.setdefault("status", status)
    return [fields.get(name) for name in ORDER_BOOK_FIELDS]


def decode_rest_order(order: Mapping[str, Any]) -> OrderRow:
    market_hash = str(order.get("marketHash") or "")
    return decode_order_book_row(rest_order_to_row(order), market_hash)
