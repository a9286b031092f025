"""Pure functions that turn observations into Alert objects.

Each builder returns ``None`` when the observation is healthy, so callers
can write ``if (alert := health_factor_alert(...)) is not None``.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from lending_monitor.core.types import HealthStatus
from lending_monitor.monitor.types import Alert, AlertLevel
from lending_monitor.risk.health import (
    ORACLE_MAX_STALENESS,
    classify_health_factor,
    classify_oracle_staleness,
    classify_utilization,
)

HEALTH_FACTOR_TITLE = "Low Health Factor Detected"
ORACLE_STALENESS_TITLE = "Oracle Staleness Detected"
UTILIZATION_TITLE = "High Utilization Detected"


def format_duration(value: timedelta) -> str:
    """Render a duration as ``1h30m0s``."""
    total = int(value.total_seconds())
    hours, rem = divmod(total, 3600)
    minutes, seconds = divmod(rem, 60)
    if hours:
        return f"{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{minutes}m{seconds}s"
    return f"{seconds}s"


def health_factor_alert(user: str, health_factor: Decimal) -> Alert | None:
    """WARNING below 1.2, CRITICAL below 1.0, None otherwise."""
    status = classify_health_factor(health_factor)
    if status == HealthStatus.HEALTHY:
        return None
    return Alert(
        level=AlertLevel.from_status(status),
        title=HEALTH_FACTOR_TITLE,
        message=f"User {user} health factor: {health_factor:.4f}",
        metadata={
            "user": user,
            "health_factor": f"{health_factor:.6f}",
        },
    )


def oracle_staleness_alert(
    feed: str,
    staleness: timedelta,
    max_staleness: timedelta = ORACLE_MAX_STALENESS,
) -> Alert | None:
    """WARNING from *max_staleness*, CRITICAL beyond twice it."""
    status = classify_oracle_staleness(staleness, max_staleness)
    if status == HealthStatus.HEALTHY:
        return None
    return Alert(
        level=AlertLevel.from_status(status),
        title=ORACLE_STALENESS_TITLE,
        message=(
            f"Feed {feed} stale: {format_duration(staleness)} "
            f"(max: {format_duration(max_staleness)})"
        ),
        metadata={
            "feed": feed,
            "staleness": format_duration(staleness),
            "max_staleness": format_duration(max_staleness),
        },
    )


def utilization_alert(asset: str, utilization: Decimal) -> Alert | None:
    """WARNING from 90%, CRITICAL above 95%."""
    status = classify_utilization(utilization)
    if status == HealthStatus.HEALTHY:
        return None
    return Alert(
        level=AlertLevel.from_status(status),
        title=UTILIZATION_TITLE,
        message=f"Asset {asset} utilization: {utilization * 100:.2f}%",
        metadata={
            "asset": asset,
            "utilization": f"{utilization:.4f}",
        },
    )
