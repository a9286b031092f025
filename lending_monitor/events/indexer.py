"""EventIndexer — classifies pool logs from a backfill range and a live stream.

Indexed events are logged and counted; LiquidationCall events also bump
``liquidation_events_total``.  Events are not persisted.
"""

from __future__ import annotations

import asyncio
from collections import Counter

import structlog

from lending_monitor.chain.logs import LogSource
from lending_monitor.core.exceptions import MonitorError, SubscriptionUnavailableError
from lending_monitor.core.types import (
    DomainEvent,
    LendingEventType,
    LiquidationCallEvent,
    LogRecord,
    UnknownEvent,
)
from lending_monitor.events.classifier import classify_log
from lending_monitor.monitor.metrics import MetricsRegistry

logger = structlog.stdlib.get_logger()


class EventIndexer:
    """Feeds logs from a :class:`LogSource` through the classifier.

    Usage::

        indexer = EventIndexer(source, metrics)
        await indexer.start(from_block=19_000_000)
        # ...
        await indexer.stop()
    """

    def __init__(
        self,
        source: LogSource,
        metrics: MetricsRegistry,
        protocol: str = "aave-v3",
    ) -> None:
        self._source = source
        self._metrics = metrics
        self._protocol = protocol
        self._counts: Counter[LendingEventType] = Counter()
        self._live = False
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def counts(self) -> dict[LendingEventType, int]:
        """Events classified so far, by type."""
        return dict(self._counts)

    @property
    def live(self) -> bool:
        """Whether a live subscription is currently being consumed."""
        return self._live

    # ── Classification ───────────────────────────────────────────

    def process(self, log: LogRecord) -> DomainEvent:
        """Classify one log and record its side effects."""
        event = classify_log(log)
        self._counts[event.event_type] += 1

        if isinstance(event, LiquidationCallEvent):
            self._metrics.inc_liquidations(self._protocol)
            logger.warning(
                "liquidation_event_detected",
                block=event.block_number,
                tx=event.tx_hash,
                collateral_asset=event.collateral_asset,
                debt_asset=event.debt_asset,
                user=event.user,
            )
        elif isinstance(event, UnknownEvent):
            logger.debug(
                "unknown_event",
                block=event.block_number,
                tx=event.tx_hash,
                topic=event.signature,
            )
        else:
            logger.info(
                "lending_event_detected",
                event_type=event.event_type.value,
                block=event.block_number,
                tx=event.tx_hash,
                reserve=event.reserve,
            )
        return event

    async def backfill(self, from_block: int, to_block: int | None = None) -> list[DomainEvent]:
        """Classify the logs of a bounded block range.

        A failed range query is logged and yields no events.
        """
        try:
            logs = await self._source.get_logs(from_block, to_block)
        except MonitorError as exc:
            logger.error(
                "historical_logs_failed",
                from_block=from_block,
                to_block=to_block,
                error=str(exc),
            )
            return []

        logger.info("historical_logs_retrieved", count=len(logs), from_block=from_block)
        return [self.process(log) for log in logs]

    async def run_live(self) -> bool:
        """Classify streamed logs until stopped.

        Returns False when the transport cannot stream or the stream
        breaks; live classification is then simply unavailable.
        """
        try:
            async for log in self._source.subscribe():
                self._live = True
                if self._stop_event.is_set():
                    break
                self.process(log)
        except SubscriptionUnavailableError as exc:
            logger.warning(
                "live_subscription_unavailable",
                error=str(exc),
                hint="Use a WebSocket RPC endpoint (ws:// or wss://)",
            )
            return False
        except MonitorError as exc:
            logger.error("live_subscription_error", error=str(exc))
            return False
        finally:
            self._live = False
        return True

    # ── Lifecycle ────────────────────────────────────────────────

    async def run(self, from_block: int = 0) -> None:
        """Backfill from *from_block* (if set), then follow the live stream.

        Without a usable stream the indexer idles until stopped.
        """
        logger.info("event_indexing_started", from_block=from_block)
        if from_block > 0:
            await self.backfill(from_block)
        if not self._stop_event.is_set():
            await self.run_live()
        await self._stop_event.wait()

    async def start(self, from_block: int = 0) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run(from_block))

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("event_indexing_stopped", counts={k.value: v for k, v in self._counts.items()})
