"""Alert sinks — webhook delivery over aiohttp."""

from __future__ import annotations

import abc
import asyncio
import json

import aiohttp
import structlog

from lending_monitor.core.config import AlertsConfig
from lending_monitor.core.exceptions import DeliveryError
from lending_monitor.monitor.types import Alert

logger = structlog.stdlib.get_logger()

DEFAULT_TIMEOUT_SECS = 10.0


class AlertSink(abc.ABC):
    """Base class for alert delivery targets."""

    @abc.abstractmethod
    async def send(self, alert: Alert) -> None:
        """Deliver one alert. Raises DeliveryError on any failure."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class WebhookSink(AlertSink):
    """POSTs alerts as JSON to a webhook; 2xx/3xx is success.

    Exactly one request per ``send`` call, bounded by *timeout_secs*.
    """

    def __init__(self, webhook_url: str, timeout_secs: float = DEFAULT_TIMEOUT_SECS) -> None:
        self._webhook_url = webhook_url
        self._timeout = aiohttp.ClientTimeout(total=timeout_secs)
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_config(cls, config: AlertsConfig) -> WebhookSink:
        return cls(config.webhook_url.get_secret_value(), timeout_secs=config.timeout_secs)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def send(self, alert: Alert) -> None:
        try:
            body = json.dumps(alert.to_payload())
        except (TypeError, ValueError) as exc:
            raise DeliveryError(f"failed to serialise alert: {exc}") from exc

        try:
            session = self._get_session()
            async with session.post(
                self._webhook_url,
                data=body,
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            ) as resp:
                if 200 <= resp.status < 400:
                    return
                text = await resp.text(errors="replace")
                raise DeliveryError(
                    f"webhook responded {resp.status}: {text[:200]}",
                    status=resp.status,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise DeliveryError(f"failed to send webhook: {exc!r}") from exc

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
