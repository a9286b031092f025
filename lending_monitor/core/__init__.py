"""Core module — config, types, logging, fixed-point helpers."""

from lending_monitor.core.config import Settings, get_settings, load_settings, reset_settings
from lending_monitor.core.exceptions import (
    ConfigError,
    DecodeError,
    DeliveryError,
    MonitorError,
    SubscriptionUnavailableError,
    TransportError,
)
from lending_monitor.core.fixed_point import scale
from lending_monitor.core.logging import setup_logging
from lending_monitor.core.types import (
    AccountPosition,
    DomainEvent,
    HealthStatus,
    LendingEventType,
    LogRecord,
)

__all__ = [
    "AccountPosition",
    "ConfigError",
    "DecodeError",
    "DeliveryError",
    "DomainEvent",
    "HealthStatus",
    "LendingEventType",
    "LogRecord",
    "MonitorError",
    "Settings",
    "SubscriptionUnavailableError",
    "TransportError",
    "get_settings",
    "load_settings",
    "reset_settings",
    "scale",
    "setup_logging",
]
