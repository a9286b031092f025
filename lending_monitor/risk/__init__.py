"""Risk classification — position health, oracle staleness, utilization."""

from lending_monitor.risk.health import (
    classify_health_factor,
    classify_oracle_staleness,
    classify_utilization,
    evaluate,
)

__all__ = [
    "classify_health_factor",
    "classify_oracle_staleness",
    "classify_utilization",
    "evaluate",
]
