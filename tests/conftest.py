"""
Pytest configuration and fixtures.
Adds src/ to Python path so tests can import sxiceberg without installing it.
"""

import sys
from pathlib import Path

import pytest

# Add the repo root's src/ directory to sys.path
repo_root = Path(__file__).parent.parent
src_path = repo_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from eth_account import Account  # noqa: E402

from sxiceberg.core.rounding import scale_amount, scale_odds  # noqa: E402

TEST_KEY = "0x" + "11" * 32
MARKET = "0x" + "ab" * 32
OTHER_MARKET = "0x" + "cd" * 32
BASE_TOKEN = "0x6629Ce1Cf35Cc1329ebB4F63202F3f197b3F050B"
EXECUTOR = "0x52adf738AAD93c31f798a30b2C74D658e1E9a562"
EXTERNAL_MAKER = "0x" + "22" * 20


@pytest.fixture
def account():
    return Account.from_key(TEST_KEY)


@pytest.fixture
def make_row():
    """Build an order_book channel row (positional) from human units."""
    counter = {"n": 0}

    def _make(
        probability,
        size,
        outcome_one,
        maker=EXTERNAL_MAKER,
        status="ACTIVE",
        filled=0,
        order_hash=None,
    ):
        counter["n"] += 1
        return [
            order_hash or f"0x{counter['n']:064x}",
            status,
            str(scale_amount(filled)),
            maker,
            str(scale_amount(size)),
            str(scale_odds(probability)),
            2209006800,
            1700000300,
            "0x01",
            outcome_one,
            "0xsig",
            1700000000,
            "SXR",
            "L123",
        ]

    return _make
