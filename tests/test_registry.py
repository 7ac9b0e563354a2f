"""
Tests for Position and PositionRegistry.
"""
import pytest

from sxiceberg.orchestrator.registry import Position, PositionRegistry, normalize_start_time

from conftest import MARKET

CONFIG = {"outcome": 2, "maxFill": 1000, "increments": 250, "edge": 1.5, "maxVig": 0.05}


class TestStartTime:
    def test_seconds_become_milliseconds(self):
        assert normalize_start_time(1_700_000_000) == 1_700_000_000_000

    def test_milliseconds_kept(self):
        assert normalize_start_time(1_700_000_000_123) == 1_700_000_000_123

    def test_missing_or_invalid_defaults_to_now(self):
        assert normalize_start_time(None, default_ms=42) == 42
        assert normalize_start_time("soon", default_ms=42) == 42
        assert normalize_start_time(float("nan"), default_ms=42) == 42
        assert normalize_start_time(True, default_ms=42) == 42

    def test_numeric_string_accepted(self):
        assert normalize_start_time("1700000000") == 1_700_000_000_000


class TestPosition:
    def test_from_config(self):
        pos = Position.from_config(MARKET, {**CONFIG, "minOrderSize": 50, "startTime": 1_700_000_000})
        assert pos.outcome == 2
        assert pos.max_fill == 1000.0
        assert pos.increment == 250.0
        assert pos.edge == 1.5
        assert pos.min_order_size == 50.0
        assert pos.start_time_ms == 1_700_000_000_000
        assert pos.current_fill == 0.0

    def test_missing_field_rejected(self):
        config = dict(CONFIG)
        del config["maxVig"]
        with pytest.raises(ValueError, match="max_vig"):
            Position.from_config(MARKET, config)

    @pytest.mark.parametrize("key,value", [("outcome", 3), ("maxFill", 0), ("increments", -5), ("edge", "nan")])
    def test_invalid_values_rejected(self, key, value):
        with pytest.raises(ValueError):
            Position.from_config(MARKET, {**CONFIG, key: value})

    def test_unknown_keys_ignored(self):
        pos = Position.from_config(MARKET, {**CONFIG, "currentFill": 999, "marketDetails": {"teamOneName": "A"}})
        assert pos.current_fill == 0.0
        assert pos.details == {"teamOneName": "A"}


class TestRegistry:
    def test_one_position_per_market(self):
        registry = PositionRegistry()
        registry.start(MARKET, CONFIG)
        registry.start(MARKET, {**CONFIG, "maxFill": 500})
        assert len(registry) == 1
        assert registry.get(MARKET).max_fill == 500.0

    def test_update_merges_fields(self):
        registry = PositionRegistry()
        registry.start(MARKET, {**CONFIG, "startTime": 1_700_000_000})
        pos = registry.update(MARKET, {"edge": 3, "maxVig": 0.01})
        assert pos.edge == 3.0
        assert pos.max_vig == 0.01
        assert pos.max_fill == 1000.0
        assert pos.start_time_ms == 1_700_000_000_000

    def test_update_unknown_market(self):
        assert PositionRegistry().update(MARKET, {"edge": 1}) is None

    def test_invalid_update_keeps_old_position(self):
        registry = PositionRegistry()
        registry.start(MARKET, CONFIG)
        with pytest.raises(ValueError):
            registry.update(MARKET, {"outcome": 7})
        assert registry.get(MARKET).outcome == 2

    def test_remove_and_clear(self):
        registry = PositionRegistry()
        registry.start(MARKET, CONFIG)
        assert registry.remove(MARKET) is not None
        assert registry.remove(MARKET) is None
        registry.start(MARKET, CONFIG)
        assert [p.market_hash for p in registry.clear()] == [MARKET]
        assert MARKET not in registry
