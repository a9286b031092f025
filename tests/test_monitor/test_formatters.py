"""Tests for alert builders — levels, titles, message and metadata formatting."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from lending_monitor.core.types import HealthStatus
from lending_monitor.monitor.formatters import (
    HEALTH_FACTOR_TITLE,
    ORACLE_STALENESS_TITLE,
    UTILIZATION_TITLE,
    format_duration,
    health_factor_alert,
    oracle_staleness_alert,
    utilization_alert,
)
from lending_monitor.monitor.types import AlertLevel
from lending_monitor.risk.health import classify_health_factor

USER = "0x1111111111111111111111111111111111111111"


class TestFormatDuration:
    def test_hours(self) -> None:
        assert format_duration(timedelta(minutes=90)) == "1h30m0s"

    def test_minutes(self) -> None:
        assert format_duration(timedelta(minutes=5)) == "5m0s"

    def test_seconds(self) -> None:
        assert format_duration(timedelta(seconds=7)) == "7s"


# ── Health factor ───────────────────────────────────────────────


class TestHealthFactorAlert:
    def test_warning(self) -> None:
        alert = health_factor_alert(USER, Decimal("1.05"))
        assert alert is not None
        assert alert.level == AlertLevel.WARNING
        assert alert.title == HEALTH_FACTOR_TITLE
        assert alert.message == f"User {USER} health factor: 1.0500"
        assert alert.metadata == {"user": USER, "health_factor": "1.050000"}

    def test_critical(self) -> None:
        alert = health_factor_alert(USER, Decimal("0.95"))
        assert alert is not None
        assert alert.level == AlertLevel.CRITICAL

    def test_healthy_is_none(self) -> None:
        assert health_factor_alert(USER, Decimal("1.2")) is None

    def test_agrees_with_classifier(self) -> None:
        for raw in ("0", "0.5", "0.9999", "1", "1.1", "1.1999", "1.2", "5"):
            value = Decimal(raw)
            status = classify_health_factor(value)
            alert = health_factor_alert(USER, value)
            if status == HealthStatus.HEALTHY:
                assert alert is None
            else:
                assert alert is not None
                assert alert.level == AlertLevel.from_status(status)

    def test_full_precision_in_metadata(self) -> None:
        alert = health_factor_alert(USER, Decimal("1.050000000000000000"))
        assert alert is not None
        assert alert.metadata["health_factor"] == "1.050000"


# ── Oracle staleness ────────────────────────────────────────────


class TestOracleStalenessAlert:
    def test_warning(self) -> None:
        alert = oracle_staleness_alert("ETH/USD", timedelta(minutes=90))
        assert alert is not None
        assert alert.level == AlertLevel.WARNING
        assert alert.title == ORACLE_STALENESS_TITLE
        assert alert.metadata == {
            "feed": "ETH/USD",
            "staleness": "1h30m0s",
            "max_staleness": "1h0m0s",
        }

    def test_critical(self) -> None:
        alert = oracle_staleness_alert("ETH/USD", timedelta(minutes=150))
        assert alert is not None
        assert alert.level == AlertLevel.CRITICAL

    def test_fresh_is_none(self) -> None:
        assert oracle_staleness_alert("ETH/USD", timedelta(minutes=10)) is None


# ── Utilization ─────────────────────────────────────────────────


class TestUtilizationAlert:
    def test_warning(self) -> None:
        alert = utilization_alert("USDC", Decimal("0.93"))
        assert alert is not None
        assert alert.level == AlertLevel.WARNING
        assert alert.title == UTILIZATION_TITLE
        assert alert.message == "Asset USDC utilization: 93.00%"
        assert alert.metadata == {"asset": "USDC", "utilization": "0.9300"}

    def test_critical(self) -> None:
        alert = utilization_alert("USDC", Decimal("0.97"))
        assert alert is not None
        assert alert.level == AlertLevel.CRITICAL

    def test_healthy_is_none(self) -> None:
        assert utilization_alert("USDC", Decimal("0.5")) is None
