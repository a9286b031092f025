"""Alert dispatcher — delivers alerts to a sink under an explicit retry policy."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass

import structlog

from lending_monitor.core.exceptions import DeliveryError
from lending_monitor.monitor.channels import AlertSink
from lending_monitor.monitor.metrics import MetricsRegistry
from lending_monitor.monitor.types import Alert

# Dedicated structured logger for alert decisions.
decision_logger = structlog.get_logger("decision_log")

logger = structlog.stdlib.get_logger()

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to attempt delivery and how long to wait in between.

    The default (one attempt) means no retry.
    """

    max_attempts: int = 1
    backoff_secs: float = 1.0
    backoff_multiplier: float = 2.0

    def delays(self) -> Iterator[float]:
        """Waits before attempts 2..max_attempts."""
        delay = self.backoff_secs
        for _ in range(max(self.max_attempts, 1) - 1):
            yield delay
            delay *= self.backoff_multiplier


NO_RETRY = RetryPolicy()


class AlertDispatcher:
    """Delivers alerts to a single sink.

    - Every alert is logged via *decision_logger* before delivery.
    - No deduplication: equivalent alerts are delivered every time.
    - Failures raise :class:`DeliveryError` after the retry policy is spent.
    """

    def __init__(
        self,
        sink: AlertSink,
        retry_policy: RetryPolicy = NO_RETRY,
        metrics: MetricsRegistry | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._sink = sink
        self._retry_policy = retry_policy
        self._metrics = metrics
        self._sleep = sleep

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def deliver(self, alert: Alert) -> None:
        """Send *alert*; raises DeliveryError if every attempt fails."""
        self._log_decision(alert)
        delays = self._retry_policy.delays()
        attempt = 1
        while True:
            try:
                await self._sink.send(alert)
            except DeliveryError as exc:
                delay = next(delays, None)
                if delay is None:
                    if self._metrics is not None:
                        self._metrics.record_delivery_failure()
                    raise
                logger.warning(
                    "alert_delivery_retry",
                    title=alert.title,
                    attempt=attempt,
                    delay=delay,
                    error=str(exc),
                )
                attempt += 1
                await self._sleep(delay)
                continue

            if self._metrics is not None:
                self._metrics.record_alert_sent(alert.level)
            logger.info(
                "alert_sent",
                level=alert.level.value,
                title=alert.title,
                attempts=attempt,
            )
            return

    def _log_decision(self, alert: Alert) -> None:
        decision_logger.info(
            "decision",
            level=alert.level.value,
            title=alert.title,
            message=alert.message,
            metadata=dict(alert.metadata),
        )

    async def close(self) -> None:
        await self._sink.close()
