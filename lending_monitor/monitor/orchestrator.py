"""PositionMonitor — runs the per-tick health check over monitored accounts.

One cycle fetches every monitored account, updates the health factor gauge,
classifies the position and, when it is not healthy, builds and delivers an
alert.  Oracle feeds and reserves configured for the cycle are checked the
same way afterwards.  A failure for one account, feed or reserve is logged
and never affects the others; the cycle duration is observed regardless.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum

import structlog

from lending_monitor.chain.contracts import AccountDataSource, PriceFeedReader, ReserveReader
from lending_monitor.core.config import OracleFeedConfig, ReserveConfig
from lending_monitor.core.exceptions import DeliveryError, MonitorError
from lending_monitor.core.fixed_point import scale
from lending_monitor.core.types import HealthStatus
from lending_monitor.monitor.dispatcher import AlertDispatcher
from lending_monitor.monitor.formatters import (
    health_factor_alert,
    oracle_staleness_alert,
    utilization_alert,
)
from lending_monitor.monitor.metrics import MetricsRegistry
from lending_monitor.monitor.types import Alert
from lending_monitor.risk.health import evaluate

logger = structlog.stdlib.get_logger()


class MonitorState(StrEnum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"


@dataclass
class CycleReport:
    """Counts for one monitoring cycle."""

    accounts_fetched: int = 0
    accounts_failed: int = 0
    accounts_without_debt: int = 0
    feeds_failed: int = 0
    reserves_failed: int = 0
    alerts_sent: int = 0
    delivery_failures: int = 0
    cancelled: bool = False
    duration_secs: float = 0.0


class PositionMonitor:
    """Periodic health check over a fixed list of accounts.

    Usage::

        monitor = PositionMonitor(
            accounts=AavePoolReader(rpc, pool),
            addresses=["0xabc..."],
            metrics=MetricsRegistry(),
            dispatcher=dispatcher,  # None disables alerts
        )
        await monitor.start()
        # ...
        await monitor.stop()
    """

    def __init__(
        self,
        accounts: AccountDataSource,
        addresses: list[str],
        metrics: MetricsRegistry,
        dispatcher: AlertDispatcher | None = None,
        protocol: str = "aave-v3",
        interval_secs: float = 30.0,
        feeds: list[OracleFeedConfig] | None = None,
        feed_reader: PriceFeedReader | None = None,
        reserves: list[ReserveConfig] | None = None,
        reserve_reader: ReserveReader | None = None,
    ) -> None:
        self._accounts = accounts
        self._addresses = list(addresses)
        self._metrics = metrics
        self._dispatcher = dispatcher
        self._protocol = protocol
        self._interval_secs = interval_secs
        self._feeds = list(feeds or []) if feed_reader is not None else []
        self._feed_reader = feed_reader
        self._reserves = list(reserves or []) if reserve_reader is not None else []
        self._reserve_reader = reserve_reader

        self._state = MonitorState.IDLE
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._cycle_count = 0

    # ── Properties ───────────────────────────────────────────────

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def addresses(self) -> list[str]:
        return list(self._addresses)

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        """Run the monitoring loop in a background task."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self.run())

    def request_stop(self) -> None:
        """Ask the loop to stop; safe to call from a signal handler."""
        self._stop_event.set()

    async def stop(self) -> None:
        """Request a stop and wait for the in-flight account to finish."""
        self.request_stop()
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._state = MonitorState.STOPPED

    async def run(self) -> None:
        """Run a cycle now, then one per interval, until stopped."""
        logger.info(
            "monitor_started",
            protocol=self._protocol,
            addresses=len(self._addresses),
            feeds=len(self._feeds),
            reserves=len(self._reserves),
            interval_secs=self._interval_secs,
        )
        try:
            while not self._stop_event.is_set():
                started = time.monotonic()
                try:
                    await self.run_cycle()
                except Exception:
                    logger.exception("monitor_cycle_error")

                remaining = max(0.0, self._interval_secs - (time.monotonic() - started))
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._state = MonitorState.STOPPED
            logger.info("monitor_stopped", cycles=self._cycle_count)

    # ── Cycle ────────────────────────────────────────────────────

    async def run_cycle(self) -> CycleReport:
        """Check every account, then feeds and reserves, once."""
        report = CycleReport()
        self._state = MonitorState.RUNNING
        started = time.monotonic()
        try:
            for address in self._addresses:
                if self._stop_event.is_set():
                    report.cancelled = True
                    break
                await self._check_account(address, report)

            for feed in self._feeds:
                if self._stop_event.is_set():
                    report.cancelled = True
                    break
                await self._check_feed(feed, report)

            for reserve in self._reserves:
                if self._stop_event.is_set():
                    report.cancelled = True
                    break
                await self._check_reserve(reserve, report)
        finally:
            report.duration_secs = time.monotonic() - started
            self._metrics.observe_cycle_duration(report.duration_secs)
            self._cycle_count += 1
            self._state = (
                MonitorState.STOPPED if self._stop_event.is_set() else MonitorState.IDLE
            )
            logger.info(
                "monitor_cycle_complete",
                duration_ms=int(report.duration_secs * 1000),
                addresses_checked=report.accounts_fetched,
                addresses_failed=report.accounts_failed,
                alerts_sent=report.alerts_sent,
                cancelled=report.cancelled,
            )
        return report

    async def _check_account(self, address: str, report: CycleReport) -> None:
        try:
            position = await self._accounts.get_user_account_data(address)
        except MonitorError as exc:
            report.accounts_failed += 1
            self._metrics.record_fetch_error()
            logger.error("account_fetch_failed", address=address, error=str(exc))
            return
        report.accounts_fetched += 1

        status = evaluate(position)
        if status is None:
            report.accounts_without_debt += 1
            logger.debug("account_without_debt", address=address)
            return

        health_factor = scale(position.health_factor)
        self._metrics.set_health_factor(self._protocol, address, health_factor)
        logger.info(
            "position_status",
            address=address,
            health_factor=f"{health_factor:.4f}",
            total_collateral=str(position.total_collateral),
            total_debt=str(position.total_debt),
            status=status.value,
        )

        if status == HealthStatus.CRITICAL:
            logger.error(
                "liquidatable_position",
                address=address,
                health_factor=f"{health_factor:.4f}",
            )
        elif status == HealthStatus.WARNING:
            logger.warning(
                "low_health_factor",
                address=address,
                health_factor=f"{health_factor:.4f}",
            )

        await self._dispatch(health_factor_alert(address, health_factor), report)

    async def _check_feed(self, feed: OracleFeedConfig, report: CycleReport) -> None:
        assert self._feed_reader is not None
        try:
            observed = await self._feed_reader.read(feed)
        except MonitorError as exc:
            report.feeds_failed += 1
            logger.error("oracle_feed_fetch_failed", feed=feed.name, error=str(exc))
            return

        self._metrics.set_oracle_staleness(feed.name, observed.staleness_secs)
        if feed.asset and observed.price is not None:
            self._metrics.set_oracle_price(feed.asset, observed.price)

        alert = oracle_staleness_alert(
            feed.name,
            timedelta(seconds=observed.staleness_secs),
            timedelta(seconds=observed.max_staleness_secs),
        )
        await self._dispatch(alert, report)

    async def _check_reserve(self, reserve: ReserveConfig, report: CycleReport) -> None:
        assert self._reserve_reader is not None
        try:
            observed = await self._reserve_reader.read(reserve)
        except MonitorError as exc:
            report.reserves_failed += 1
            logger.error("reserve_fetch_failed", asset=reserve.asset, error=str(exc))
            return

        self._metrics.set_utilization(self._protocol, reserve.asset, observed.utilization)
        self._metrics.set_reserve_totals(
            self._protocol, reserve.asset, observed.total_deposits, observed.total_borrows,
        )
        await self._dispatch(utilization_alert(reserve.asset, observed.utilization), report)

    async def _dispatch(self, alert: Alert | None, report: CycleReport) -> None:
        if alert is None:
            return
        if self._dispatcher is None:
            logger.debug("alert_dispatch_disabled", title=alert.title)
            return
        try:
            await self._dispatcher.deliver(alert)
        except DeliveryError as exc:
            report.delivery_failures += 1
            logger.error(
                "alert_delivery_failed",
                level=alert.level.value,
                title=alert.title,
                error=str(exc),
            )
            return
        report.alerts_sent += 1
