"""
Prometheus metrics for the iceberg monitor.

Organized into: execution, positions, loop health.
"""

from __future__ import annotations

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server


class IcebergMetrics:
    """Metrics on a private registry so tests can build as many as they like."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        reg = self.registry

        # === Execution ===
        self.orders_posted = Counter(
            'orders_posted_total',
            'Orders accepted by the exchange',
            labelnames=['market'],
            registry=reg
        )
        self.post_failures = Counter(
            'order_post_failures_total',
            'Order posts that failed before or at the exchange',
            labelnames=['market', 'reason'],
            registry=reg
        )
        self.orders_cancelled = Counter(
            'orders_cancelled_total',
            'Order hashes included in successful cancel batches',
            registry=reg
        )
        self.cancel_failures = Counter(
            'order_cancel_failures_total',
            'Cancel batches that failed',
            registry=reg
        )

        # === Positions ===
        self.current_fill = Gauge(
            'position_fill',
            'Matched stake so far (base-token units)',
            labelnames=['market'],
            registry=reg
        )
        self.market_vig = Gauge(
            'market_vig',
            'Last computed market overround',
            labelnames=['market'],
            registry=reg
        )
        self.positions_open = Gauge(
            'positions_open',
            'Markets currently monitored',
            registry=reg
        )
        self.positions_completed = Counter(
            'positions_completed_total',
            'Positions that reached their target fill',
            registry=reg
        )

        # === Loop health ===
        self.ticks = Counter(
            'scheduler_ticks_total',
            'Monitoring ticks run',
            registry=reg
        )
        self.market_errors = Counter(
            'market_errors_total',
            'Unexpected per-market evaluation errors',
            labelnames=['market'],
            registry=reg
        )

    def forget_market(self, market_hash: str) -> None:
        """Drop every series labelled with this market."""
        per_market = (
            (self.orders_posted, ('market',)),
            (self.post_failures, ('market', 'reason')),
            (self.market_errors, ('market',)),
            (self.current_fill, ('market',)),
            (self.market_vig, ('market',)),
        )
        for metric, labelnames in per_market:
            label_sets = {
                tuple(sample.labels[name] for name in labelnames)
                for family in metric.collect()
                for sample in family.samples
                if sample.labels.get('market') == market_hash
            }
            for values in label_sets:
                metric.remove(*values)


def start_metrics_server(metrics: IcebergMetrics, port: int) -> None:
    start_http_server(port, registry=metrics.registry)
