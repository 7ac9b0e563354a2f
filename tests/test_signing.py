"""
Tests for order and cancellation signing.
"""
import pytest
from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data

from sxiceberg.core.errors import SigningError
from sxiceberg.infra.signing import NEVER_EXPIRES, OrderSigner, cancel_typed_data

from conftest import BASE_TOKEN, EXECUTOR, MARKET

SALT = bytes(range(32))


@pytest.fixture
def signer(account):
    return OrderSigner(account, chain_id=4162)


def build(signer, **overrides):
    kwargs = dict(
        market_hash=MARKET,
        base_token=BASE_TOKEN,
        executor=EXECUTOR,
        total_bet_size=250_000_000,
        percentage_odds=58750000000000000000,
        is_maker_betting_outcome_one=True,
        api_expiry=1700000300,
        salt=SALT,
    )
    kwargs.update(overrides)
    return signer.build_order(**kwargs)


class TestOrderSigning:
    def test_signature_recovers_maker(self, signer, account):
        order = build(signer)
        digest = bytes.fromhex(order.order_hash[2:])
        recovered = Account.recover_message(encode_defunct(primitive=digest), signature=order.signature)
        assert recovered == account.address
        assert order.maker == account.address

    def test_hash_is_deterministic_for_same_salt(self, signer):
        assert build(signer).order_hash == build(signer).order_hash

    def test_hash_binds_every_field(self, signer):
        base = build(signer).order_hash
        assert build(signer, is_maker_betting_outcome_one=False).order_hash != base
        assert build(signer, percentage_odds=58500000000000000000).order_hash != base
        assert build(signer, salt=bytes(32)).order_hash != base

    def test_api_expiry_not_part_of_hash(self, signer):
        assert build(signer, api_expiry=1).order_hash == build(signer).order_hash

    def test_fresh_salt_by_default(self, signer):
        a = build(signer, salt=None)
        b = build(signer, salt=None)
        assert a.salt != b.salt
        assert a.order_hash != b.order_hash

    def test_payload_shape(self, signer):
        payload = build(signer).to_payload()
        assert payload["totalBetSize"] == "250000000"
        assert payload["percentageOdds"] == "58750000000000000000"
        assert payload["expiry"] == NEVER_EXPIRES
        assert payload["isMakerBettingOutcomeOne"] is True
        assert payload["salt"] == "0x" + SALT.hex()
        assert "orderHash" not in payload

    def test_log_view_has_no_signature(self, signer):
        view = build(signer).as_log()
        assert "signature" not in view
        assert view["percentage_odds"] == "58750000000000000000"

    def test_bad_market_hash_raises_signing_error(self, signer):
        with pytest.raises(SigningError):
            build(signer, market_hash="0xzz")


class TestCancelSigning:
    def test_cancel_payload_recovers_maker(self, signer, account):
        hashes = ["0x" + "01" * 32, "0x" + "02" * 32]
        payload = signer.sign_cancel(hashes, salt=SALT, timestamp=1700000000)
        assert payload["orderHashes"] == hashes
        assert payload["maker"] == account.address
        assert payload["timestamp"] == 1700000000
        assert payload["salt"] == "0x" + SALT.hex()

        typed = cancel_typed_data(hashes, SALT, 1700000000, 4162)
        recovered = Account.recover_message(encode_typed_data(full_message=typed), signature=payload["signature"])
        assert recovered == account.address

    def test_domain(self):
        typed = cancel_typed_data([], SALT, 1, 4162)
        assert typed["domain"]["name"] == "CancelOrderV2SportX"
        assert typed["domain"]["version"] == "1.0"
        assert typed["domain"]["chainId"] == 4162
        assert typed["primaryType"] == "Details"
