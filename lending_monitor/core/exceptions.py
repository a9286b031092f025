"""Exception hierarchy for the lending monitor."""

from __future__ import annotations


class MonitorError(Exception):
    """Base exception for all lending monitor errors."""


class ConfigError(MonitorError):
    """Required configuration is missing or invalid (fatal at startup)."""


class TransportError(MonitorError):
    """The chain node or alert sink was unreachable or timed out."""


class SubscriptionUnavailableError(TransportError):
    """The node transport cannot stream logs (e.g. HTTP-only RPC)."""


class DecodeError(MonitorError):
    """A node response could not be decoded into the expected shape."""


class DeliveryError(MonitorError):
    """The alert sink rejected an alert or could not be reached."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
