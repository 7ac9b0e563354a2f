"""
Order and cancellation signing for SX Bet.

Orders are identified by keccak256 over the Solidity-packed order tuple; the
maker signs that 32-byte hash with a personal (EIP-191) signature.
Cancellations are EIP-712 typed data bound to a random salt and a timestamp.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence

from eth_abi.packed import encode_packed
from eth_account.messages import encode_defunct, encode_typed_data
from eth_utils import keccak, to_bytes, to_checksum_address

from sxiceberg.core.errors import SigningError

# effectively non-expiring on-chain expiry (2040-01-01)
NEVER_EXPIRES = 2209006800

ORDER_HASH_TYPES = [
    "bytes32",  # marketHash
    "address",  # baseToken
    "uint256",  # totalBetSize
    "uint256",  # percentageOdds
    "uint256",  # expiry
    "uint256",  # salt
    "address",  # maker
    "address",  # executor
    "bool",     # isMakerBettingOutcomeOne
]

CANCEL_DOMAIN_NAME = "CancelOrderV2SportX"
CANCEL_DOMAIN_VERSION = "1.0"


def _hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()


@dataclass(frozen=True)
class SignedOrder:
    market_hash: str
    maker: str
    base_token: str
    total_bet_size: int
    percentage_odds: int
    api_expiry: int
    expiry: int
    executor: str
    is_maker_betting_outcome_one: bool
    salt: str
    order_hash: str
    signature: str

    def to_payload(self) -> Dict[str, Any]:
        """Body entry for POST /orders/new."""
        return {
            "marketHash": self.market_hash,
            "maker": self.maker,
            "baseToken": self.base_token,
            "totalBetSize": str(self.total_bet_size),
            "percentageOdds": str(self.percentage_odds),
            "apiExpiry": self.api_expiry,
            "expiry": self.expiry,
            "executor": self.executor,
            "isMakerBettingOutcomeOne": self.is_maker_betting_outcome_one,
            "salt": self.salt,
            "signature": self.signature,
        }

    def as_log(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("signature")
        # scaled odds overflow 64-bit JSON integers
        data["percentage_odds"] = str(self.percentage_odds)
        data["total_bet_size"] = str(self.total_bet_size)
        return data


def order_hash(
    market_hash: str,
    base_token: str,
    total_bet_size: int,
    percentage_odds: int,
    expiry: int,
    salt: bytes,
    maker: str,
    executor: str,
    is_maker_betting_outcome_one: bool,
) -> bytes:
    values = [
        to_bytes(hexstr=market_hash),
        to_checksum_address(base_token),
        int(total_bet_size),
        int(percentage_odds),
        int(expiry),
        int.from_bytes(salt, "big"),
        to_checksum_address(maker),
        to_checksum_address(executor),
        bool(is_maker_betting_outcome_one),
    ]
    return keccak(encode_packed(ORDER_HASH_TYPES, values))


def cancel_typed_data(order_hashes: Sequence[str], salt: bytes, timestamp: int, chain_id: int) -> Dict[str, Any]:
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "salt", "type": "bytes32"},
            ],
            "Details": [
                {"name": "orderHashes", "type": "string[]"},
                {"name": "timestamp", "type": "uint256"},
            ],
        },
        "primaryType": "Details",
        "domain": {
            "name": CANCEL_DOMAIN_NAME,
            "version": CANCEL_DOMAIN_VERSION,
            "chainId": chain_id,
            "salt": salt,
        },
        "message": {"orderHashes": list(order_hashes), "timestamp": timestamp},
    }


class OrderSigner:
    """Signs with the operator's local key; maker is the key's address."""

    def __init__(self, account, chain_id: int = 4162) -> None:
        self._account = account
        self.chain_id = chain_id

    @property
    def maker(self) -> str:
        return self._account.address

    def build_order(
        self,
        market_hash: str,
        base_token: str,
        executor: str,
        total_bet_size: int,
        percentage_odds: int,
        is_maker_betting_outcome_one: bool,
        api_expiry: int,
        expiry: int = NEVER_EXPIRES,
        salt: Optional[bytes] = None,
    ) -> SignedOrder:
        salt = salt if salt is not None else secrets.token_bytes(32)
        try:
            digest = order_hash(
                market_hash,
                base_token,
                total_bet_size,
                percentage_odds,
                expiry,
                salt,
                self.maker,
                executor,
                is_maker_betting_outcome_one,
            )
            signed = self._account.sign_message(encode_defunct(primitive=digest))
        except (ValueError, TypeError, OverflowError) as exc:
            raise SigningError(f"order signing failed for {market_hash}: {exc}") from exc
        return SignedOrder(
            market_hash=market_hash,
            maker=self.maker,
            base_token=base_token,
            total_bet_size=int(total_bet_size),
            percentage_odds=int(percentage_odds),
            api_expiry=int(api_expiry),
            expiry=int(expiry),
            executor=executor,
            is_maker_betting_outcome_one=bool(is_maker_betting_outcome_one),
            salt=_hex(salt),
            order_hash=_hex(digest),
            signature=_hex(signed.signature),
        )

    def sign_cancel(
        self,
        order_hashes: List[str],
        salt: Optional[bytes] = None,
        timestamp: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Body for POST /orders/cancel/v2."""
        salt = salt if salt is not None else secrets.token_bytes(32)
        timestamp = timestamp if timestamp is not None else int(time.time())
        try:
            typed = cancel_typed_data(order_hashes, salt, timestamp, self.chain_id)
            signed = self._account.sign_message(encode_typed_data(full_message=typed))
        except (ValueError, TypeError) as exc:
            raise SigningError(f"cancel signing failed: {exc}") from exc
        return {
            "signature": _hex(signed.signature),
            "orderHashes": list(order_hashes),
            "salt": _hex(salt),
            "maker": self.maker,
            "timestamp": timestamp,
        }
