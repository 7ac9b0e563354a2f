"""
Tests for Settings and the positions loader.
"""
import pytest

from sxiceberg.config.config import Settings
from sxiceberg.config.positions import load_positions

from conftest import MARKET, TEST_KEY

SX_VARS = [
    "SX_BASE_URL", "SX_PRIVATE_KEY", "SX_USER_ADDRESS", "SX_API_KEY", "SX_TICK_INTERVAL_SEC",
    "SX_POST_COOLDOWN_SEC", "SX_HTTP_TIMEOUT", "SX_ACTIVE_ORDER_RETRIES", "SX_LOG_LEVEL",
    "SX_REALTIME_ENABLED", "SX_METRICS_PORT", "SX_POSITIONS_FILE",
]


@pytest.fixture
def env(monkeypatch):
    for key in SX_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("SX_PRIVATE_KEY", TEST_KEY)
    return monkeypatch


class TestSettings:
    def test_defaults(self, env):
        cfg = Settings.load()
        assert cfg.base_url == "https://api.sx.bet"
        assert cfg.chain_id == 4162
        assert cfg.chain_version == "SXR"
        assert cfg.tick_interval == 3.5
        assert cfg.post_cooldown == 5.0
        assert cfg.http_timeout == 5.0
        assert cfg.active_order_retries == 3
        assert cfg.retry_delay == 2.0
        assert cfg.api_expiry_sec == 300
        assert cfg.metrics_port == 0

    def test_overrides(self, env):
        env.setenv("SX_TICK_INTERVAL_SEC", "1.5")
        env.setenv("SX_ACTIVE_ORDER_RETRIES", "5")
        env.setenv("SX_REALTIME_ENABLED", "no")
        cfg = Settings.load()
        assert cfg.tick_interval == 1.5
        assert cfg.active_order_retries == 5
        assert cfg.realtime_enabled is False

    @pytest.mark.parametrize("key,value", [
        ("SX_TICK_INTERVAL_SEC", "0"),
        ("SX_HTTP_TIMEOUT", "-1"),
        ("SX_ACTIVE_ORDER_RETRIES", "0"),
        ("SX_LOG_LEVEL", "LOUD"),
    ])
    def test_invalid_values_rejected(self, env, key, value):
        env.setenv(key, value)
        with pytest.raises(ValueError):
            Settings.load()

    def test_dump_hides_secrets(self, env):
        env.setenv("SX_API_KEY", "secret")
        data = Settings.load().dump()
        assert "private_key" not in data
        assert "api_key" not in data

    def test_signer_and_account(self, env):
        cfg = Settings.load()
        assert cfg.resolve_account() == cfg.resolve_signer().address

    def test_missing_key_is_fatal(self, env):
        env.delenv("SX_PRIVATE_KEY")
        cfg = Settings.load()
        with pytest.raises(RuntimeError):
            cfg.resolve_signer()


class TestPositionsFile:
    def test_loads_markets(self, tmp_path):
        p = tmp_path / "positions.yaml"
        p.write_text(
            f'"{MARKET}":\n'
            "  outcome: 1\n"
            "  maxFill: 1000\n"
            "  increments: 250\n"
            "  edge: 2\n"
            "  maxVig: 0.05\n"
            "broken: 3\n"
        )
        positions = load_positions(str(p))
        assert list(positions) == [MARKET]
        assert positions[MARKET]["maxFill"] == 1000

    def test_unquoted_hex_keys_keep_leading_zeros(self, tmp_path):
        p = tmp_path / "positions.yaml"
        p.write_text("0x00ab:\n  outcome: 2\n")
        assert list(load_positions(str(p))) == ["0x" + "0" * 62 + "ab"]

    def test_missing_file_is_empty(self, tmp_path):
        assert load_positions(str(tmp_path / "nope.yaml")) == {}

    def test_invalid_yaml_is_empty(self, tmp_path):
        p = tmp_path / "positions.yaml"
        p.write_text("a: [unclosed\n")
        assert load_positions(str(p)) == {}
