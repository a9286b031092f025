"""Domain types for the alerting subsystem."""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lending_monitor.core.types import HealthStatus


class AlertLevel(StrEnum):
    """Alert severity as sent to the webhook sink."""

    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"

    @classmethod
    def from_status(cls, status: HealthStatus) -> AlertLevel:
        return _STATUS_LEVEL[status]


_STATUS_LEVEL: dict[HealthStatus, AlertLevel] = {
    HealthStatus.HEALTHY: AlertLevel.INFO,
    HealthStatus.WARNING: AlertLevel.WARNING,
    HealthStatus.CRITICAL: AlertLevel.CRITICAL,
}


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class Alert(BaseModel):
    """Immutable alert; equal content means an equal alert.

    ``metadata`` is copied into a read-only mapping on construction.
    """

    model_config = ConfigDict(frozen=True)

    level: AlertLevel
    title: str
    message: str
    timestamp: datetime.datetime = Field(default_factory=_utcnow)
    metadata: Mapping[str, str] = Field(default_factory=dict, validate_default=True)

    @field_validator("metadata", mode="after")
    @classmethod
    def _freeze_metadata(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready webhook body; ``metadata`` is omitted when empty."""
        payload: dict[str, Any] = {
            "level": self.level.value,
            "title": self.title,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.metadata:
            payload["metadata"] = dict(self.metadata)
        return payload
