"""Pure classifiers for position health, oracle staleness and utilization.

All threshold comparisons happen in :class:`~decimal.Decimal`; nothing here
keeps state between calls, so an account that crosses a boundary back and
forth is reclassified on every evaluation.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from lending_monitor.core.fixed_point import scale
from lending_monitor.core.types import AccountPosition, HealthStatus

# Health factor < 1.0 → liquidatable; < 1.2 → close to liquidation.
HEALTH_FACTOR_CRITICAL = Decimal("1.0")
HEALTH_FACTOR_WARNING = Decimal("1.2")

UTILIZATION_WARNING = Decimal("0.90")
UTILIZATION_CRITICAL = Decimal("0.95")

# Default Chainlink heartbeat tolerance.
ORACLE_MAX_STALENESS = timedelta(hours=1)


def classify_health_factor(health_factor: Decimal) -> HealthStatus:
    """Classify a decimal health factor.

    ``1.0`` is WARNING (not CRITICAL) and ``1.2`` is HEALTHY (not WARNING).
    """
    if health_factor < HEALTH_FACTOR_CRITICAL:
        return HealthStatus.CRITICAL
    if health_factor < HEALTH_FACTOR_WARNING:
        return HealthStatus.WARNING
    return HealthStatus.HEALTHY


def evaluate(position: AccountPosition) -> HealthStatus | None:
    """Classify one account position.

    Returns None for accounts with no debt: their health factor carries no
    liquidation risk and is excluded rather than reported as HEALTHY.
    """
    if not position.has_debt:
        return None
    return classify_health_factor(scale(position.health_factor))


def classify_oracle_staleness(
    staleness: timedelta, max_staleness: timedelta = ORACLE_MAX_STALENESS,
) -> HealthStatus:
    """HEALTHY below *max_staleness*, CRITICAL beyond twice it, else WARNING."""
    if staleness < max_staleness:
        return HealthStatus.HEALTHY
    if staleness > 2 * max_staleness:
        return HealthStatus.CRITICAL
    return HealthStatus.WARNING


def classify_utilization(utilization: Decimal) -> HealthStatus:
    """HEALTHY below 90%, CRITICAL above 95%, WARNING in between (inclusive)."""
    if utilization < UTILIZATION_WARNING:
        return HealthStatus.HEALTHY
    if utilization > UTILIZATION_CRITICAL:
        return HealthStatus.CRITICAL
    return HealthStatus.WARNING
