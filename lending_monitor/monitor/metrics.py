"""MetricsRegistry — Prometheus instruments for lending protocol monitoring.

Every component that records observations receives a ``MetricsRegistry``
explicitly; each instance owns a private ``CollectorRegistry`` so tests can
inspect samples without a global scrape target.

Instruments (namespace ``lending``):

- ``health_factor{protocol,user}`` — < 1.0 means liquidatable
- ``utilization_rate{protocol,asset}`` — borrowed / supplied, 0.0–1.0
- ``oracle_staleness_seconds{feed}`` — seconds since last feed update
- ``liquidation_events_total{protocol}`` — LiquidationCall events seen
- ``monitor_cycle_duration_seconds`` — wall-clock span of a cycle
- ``total_deposits`` / ``total_borrows{protocol,asset}``, ``oracle_price_usd{asset}``
- ``alerts_sent_total{level}``, ``alert_delivery_failures_total``,
  ``account_fetch_errors_total``
"""

from __future__ import annotations

from decimal import Decimal

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from lending_monitor.core.fixed_point import to_float
from lending_monitor.monitor.types import AlertLevel

DEFAULT_NAMESPACE = "lending"


class MetricsRegistry:
    """Owns the monitor's Prometheus instruments.

    Usage::

        metrics = MetricsRegistry()
        metrics.set_health_factor("aave-v3", "0xabc...", Decimal("1.05"))
        body = metrics.expose()
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.namespace = namespace
        opts = {"namespace": namespace, "registry": self.registry}

        self.health_factor = Gauge(
            "health_factor",
            "User's health factor (< 1.0 = liquidatable)",
            ["protocol", "user"],
            **opts,
        )
        self.utilization_rate = Gauge(
            "utilization_rate",
            "Asset utilization rate (0.0-1.0)",
            ["protocol", "asset"],
            **opts,
        )
        self.oracle_staleness_seconds = Gauge(
            "oracle_staleness_seconds",
            "Oracle price data staleness in seconds",
            ["feed"],
            **opts,
        )
        self.total_borrows = Gauge(
            "total_borrows",
            "Total borrows per asset",
            ["protocol", "asset"],
            **opts,
        )
        self.total_deposits = Gauge(
            "total_deposits",
            "Total deposits per asset",
            ["protocol", "asset"],
            **opts,
        )
        self.oracle_price_usd = Gauge(
            "oracle_price_usd",
            "Oracle asset price in USD",
            ["asset"],
            **opts,
        )
        self.liquidation_events_total = Counter(
            "liquidation_events_total",
            "Total liquidation events",
            ["protocol"],
            **opts,
        )
        self.monitor_cycle_duration_seconds = Histogram(
            "monitor_cycle_duration_seconds",
            "Monitoring cycle duration in seconds",
            **opts,
        )
        self.alerts_sent_total = Counter(
            "alerts_sent_total",
            "Alerts accepted by the sink",
            ["level"],
            **opts,
        )
        self.alert_delivery_failures_total = Counter(
            "alert_delivery_failures_total",
            "Alerts the sink rejected or could not receive",
            **opts,
        )
        self.account_fetch_errors_total = Counter(
            "account_fetch_errors_total",
            "Account data fetches that failed",
            **opts,
        )

    # ── Recording ────────────────────────────────────────────────

    def set_health_factor(self, protocol: str, user: str, value: Decimal) -> None:
        self.health_factor.labels(protocol=protocol, user=user).set(to_float(value))

    def set_utilization(self, protocol: str, asset: str, value: Decimal) -> None:
        self.utilization_rate.labels(protocol=protocol, asset=asset).set(to_float(value))

    def set_reserve_totals(
        self, protocol: str, asset: str, deposits: Decimal, borrows: Decimal,
    ) -> None:
        self.total_deposits.labels(protocol=protocol, asset=asset).set(to_float(deposits))
        self.total_borrows.labels(protocol=protocol, asset=asset).set(to_float(borrows))

    def set_oracle_staleness(self, feed: str, seconds: float) -> None:
        self.oracle_staleness_seconds.labels(feed=feed).set(seconds)

    def set_oracle_price(self, asset: str, price: Decimal) -> None:
        self.oracle_price_usd.labels(asset=asset).set(to_float(price))

    def inc_liquidations(self, protocol: str) -> None:
        self.liquidation_events_total.labels(protocol=protocol).inc()

    def observe_cycle_duration(self, seconds: float) -> None:
        self.monitor_cycle_duration_seconds.observe(seconds)

    def record_alert_sent(self, level: AlertLevel) -> None:
        self.alerts_sent_total.labels(level=level.value).inc()

    def record_delivery_failure(self) -> None:
        self.alert_delivery_failures_total.inc()

    def record_fetch_error(self) -> None:
        self.account_fetch_errors_total.inc()

    # ── Reading ──────────────────────────────────────────────────

    def sample(self, name: str, labels: dict[str, str] | None = None) -> float | None:
        """Current value of a sample, e.g. ``sample("health_factor", {...})``.

        *name* is given without the namespace prefix.
        """
        full_name = f"{self.namespace}_{name}" if self.namespace else name
        return self.registry.get_sample_value(full_name, labels or {})

    def expose(self) -> bytes:
        """Render all instruments in the Prometheus text format."""
        return generate_latest(self.registry)
