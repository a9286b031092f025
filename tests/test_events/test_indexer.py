"""Tests for EventIndexer — backfill, live stream, liquidation counting."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from prometheus_client import CollectorRegistry

from lending_monitor.chain.logs import LogSource
from lending_monitor.core.exceptions import SubscriptionUnavailableError, TransportError
from lending_monitor.core.types import LendingEventType, LogRecord
from lending_monitor.events.classifier import LIQUIDATION_CALL_TOPIC, SUPPLY_TOPIC
from lending_monitor.events.indexer import EventIndexer
from lending_monitor.monitor.metrics import MetricsRegistry

PAD = "0x" + "0" * 24


# ── Helpers ─────────────────────────────────────────────────────


def _liquidation_log(block: int = 1) -> LogRecord:
    return LogRecord(
        topics=[LIQUIDATION_CALL_TOPIC, PAD + "11" * 20, PAD + "22" * 20, PAD + "33" * 20],
        block_number=block,
        tx_hash=f"0x{block:064x}",
    )


def _supply_log(block: int = 1) -> LogRecord:
    return LogRecord(topics=[SUPPLY_TOPIC, PAD + "44" * 20], block_number=block)


class FakeLogSource(LogSource):
    """In-memory log source for testing."""

    def __init__(
        self,
        history: list[LogRecord] | None = None,
        stream: list[LogRecord] | None = None,
        history_error: Exception | None = None,
        stream_error: Exception | None = None,
    ) -> None:
        self.history = history or []
        self.stream = stream or []
        self.history_error = history_error
        self.stream_error = stream_error
        self.ranges: list[tuple[int, int | None]] = []

    async def get_logs(self, from_block: int, to_block: int | None = None) -> list[LogRecord]:
        self.ranges.append((from_block, to_block))
        if self.history_error is not None:
            raise self.history_error
        return list(self.history)

    async def subscribe(self) -> AsyncIterator[LogRecord]:
        if self.stream_error is not None:
            raise self.stream_error
        for log in self.stream:
            yield log


def _indexer(source: LogSource) -> tuple[EventIndexer, MetricsRegistry]:
    metrics = MetricsRegistry(registry=CollectorRegistry())
    return EventIndexer(source, metrics, protocol="aave-v3"), metrics


def _liquidations(metrics: MetricsRegistry) -> float:
    return metrics.sample("liquidation_events_total", {"protocol": "aave-v3"}) or 0.0


# ── process ─────────────────────────────────────────────────────


class TestProcess:
    def test_liquidation_increments_counter(self) -> None:
        indexer, metrics = _indexer(FakeLogSource())
        event = indexer.process(_liquidation_log())
        assert event.event_type == LendingEventType.LIQUIDATION_CALL
        assert _liquidations(metrics) == 1.0

    def test_supply_does_not_increment_counter(self) -> None:
        indexer, metrics = _indexer(FakeLogSource())
        indexer.process(_supply_log())
        assert _liquidations(metrics) == 0.0
        assert indexer.counts == {LendingEventType.SUPPLY: 1}

    def test_unknown_is_counted_not_raised(self) -> None:
        indexer, _ = _indexer(FakeLogSource())
        event = indexer.process(LogRecord(topics=[]))
        assert event.event_type == LendingEventType.UNKNOWN
        assert indexer.counts[LendingEventType.UNKNOWN] == 1


# ── backfill ────────────────────────────────────────────────────


class TestBackfill:
    async def test_backfill_classifies_history(self) -> None:
        source = FakeLogSource(history=[_supply_log(10), _liquidation_log(11)])
        indexer, metrics = _indexer(source)
        events = await indexer.backfill(10, 20)
        assert [e.event_type for e in events] == [
            LendingEventType.SUPPLY,
            LendingEventType.LIQUIDATION_CALL,
        ]
        assert source.ranges == [(10, 20)]
        assert _liquidations(metrics) == 1.0

    async def test_backfill_failure_returns_empty(self) -> None:
        source = FakeLogSource(history_error=TransportError("boom"))
        indexer, _ = _indexer(source)
        assert await indexer.backfill(10) == []


# ── live ────────────────────────────────────────────────────────


class TestRunLive:
    async def test_stream_is_classified(self) -> None:
        source = FakeLogSource(stream=[_liquidation_log(1), _liquidation_log(2)])
        indexer, metrics = _indexer(source)
        assert await indexer.run_live() is True
        assert _liquidations(metrics) == 2.0
        assert indexer.live is False

    async def test_subscription_unavailable(self) -> None:
        source = FakeLogSource(stream_error=SubscriptionUnavailableError("http only"))
        indexer, metrics = _indexer(source)
        assert await indexer.run_live() is False
        assert _liquidations(metrics) == 0.0

    async def test_stream_error(self) -> None:
        source = FakeLogSource(stream_error=TransportError("closed"))
        indexer, _ = _indexer(source)
        assert await indexer.run_live() is False


# ── Lifecycle ───────────────────────────────────────────────────


class TestLifecycle:
    async def test_start_backfills_then_idles_until_stop(self) -> None:
        source = FakeLogSource(
            history=[_liquidation_log(5)],
            stream_error=SubscriptionUnavailableError("http only"),
        )
        indexer, metrics = _indexer(source)
        await indexer.start(from_block=5)
        await asyncio.sleep(0.01)
        assert source.ranges == [(5, None)]
        assert _liquidations(metrics) == 1.0

        await indexer.stop()
        assert indexer._task is None

    async def test_live_only_skips_backfill(self) -> None:
        source = FakeLogSource(stream=[_supply_log()])
        indexer, _ = _indexer(source)
        await indexer.start(from_block=0)
        await asyncio.sleep(0.01)
        await indexer.stop()
        assert source.ranges == []
        assert indexer.counts == {LendingEventType.SUPPLY: 1}
