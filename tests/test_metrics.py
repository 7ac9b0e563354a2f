"""Unit tests for the monitor's Prometheus metrics."""

from sxiceberg.monitoring.metrics import IcebergMetrics


def _value(metrics, name, labels=None):
    return metrics.registry.get_sample_value(name, labels or {})


def test_private_registries_do_not_collide():
    a = IcebergMetrics()
    b = IcebergMetrics()
    a.orders_cancelled.inc(3)
    assert _value(a, "orders_cancelled_total") == 3.0
    assert _value(b, "orders_cancelled_total") == 0.0


def test_labelled_metrics():
    metrics = IcebergMetrics()
    metrics.orders_posted.labels(market="0xab").inc()
    metrics.post_failures.labels(market="0xab", reason="InvalidPrice").inc()
    metrics.current_fill.labels(market="0xab").set(250.0)
    assert _value(metrics, "orders_posted_total", {"market": "0xab"}) == 1.0
    assert _value(metrics, "order_post_failures_total", {"market": "0xab", "reason": "InvalidPrice"}) == 1.0
    assert _value(metrics, "position_fill", {"market": "0xab"}) == 250.0


def test_forget_market_drops_gauges():
    metrics = IcebergMetrics()
    metrics.current_fill.labels(market="0xab").set(1.0)
    metrics.market_vig.labels(market="0xab").set(0.05)
    metrics.forget_market("0xab")
    metrics.forget_market("0xab")
    assert _value(metrics, "position_fill", {"market": "0xab"}) is None
    assert _value(metrics, "market_vig", {"market": "0xab"}) is None


def test_forget_market_drops_counters_for_that_market_only():
    metrics = IcebergMetrics()
    for market in ("0xab", "0xcd"):
        metrics.orders_posted.labels(market=market).inc()
        metrics.market_errors.labels(market=market).inc()
        metrics.post_failures.labels(market=market, reason="InvalidPrice").inc()
    metrics.post_failures.labels(market="0xab", reason="ExchangeError").inc()

    metrics.forget_market("0xab")

    assert _value(metrics, "orders_posted_total", {"market": "0xab"}) is None
    assert _value(metrics, "market_errors_total", {"market": "0xab"}) is None
    for reason in ("InvalidPrice", "ExchangeError"):
        assert _value(metrics, "order_post_failures_total", {"market": "0xab", "reason": reason}) is None
    assert _value(metrics, "orders_posted_total", {"market": "0xcd"}) == 1.0
    assert _value(metrics, "order_post_failures_total", {"market": "0xcd", "reason": "InvalidPrice"}) == 1.0
