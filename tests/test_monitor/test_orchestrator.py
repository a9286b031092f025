"""Tests for PositionMonitor — cycle isolation, alerts, metrics, lifecycle."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from aiohttp import test_utils, web
from prometheus_client import CollectorRegistry

from lending_monitor.chain.contracts import AavePoolReader, AccountDataSource
from lending_monitor.core.config import AAVE_V3_POOL, OracleFeedConfig, ReserveConfig
from lending_monitor.core.exceptions import DecodeError, DeliveryError, TransportError
from lending_monitor.core.types import AccountPosition, OracleFeedStatus, UtilizationStatus
from lending_monitor.monitor.channels import AlertSink, WebhookSink
from lending_monitor.monitor.dispatcher import AlertDispatcher
from lending_monitor.monitor.metrics import MetricsRegistry
from lending_monitor.monitor.orchestrator import MonitorState, PositionMonitor
from lending_monitor.monitor.types import Alert, AlertLevel

WAD = 10**18
ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
CAROL = "0x3333333333333333333333333333333333333333"


# ── Helpers ─────────────────────────────────────────────────────


def _position(address: str, hf: str, debt: int = 5 * WAD) -> AccountPosition:
    return AccountPosition(
        address=address,
        total_collateral=10 * WAD,
        total_debt=debt,
        health_factor=int(Decimal(hf) * WAD),
    )


class FakeAccounts(AccountDataSource):
    """Returns canned positions; an Exception value is raised instead."""

    def __init__(self, results: dict[str, AccountPosition | Exception]) -> None:
        self.results = results
        self.calls: list[str] = []

    async def get_user_account_data(self, address: str) -> AccountPosition:
        self.calls.append(address)
        result = self.results[address]
        if isinstance(result, Exception):
            raise result
        return result


class FakeSink(AlertSink):
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[Alert] = []
        self._fail = fail

    async def send(self, alert: Alert) -> None:
        if self._fail:
            raise DeliveryError("fake error", status=503)
        self.sent.append(alert)

    async def close(self) -> None:
        pass


class FakeFeedReader:
    def __init__(self, staleness_secs: float) -> None:
        self.staleness_secs = staleness_secs

    async def read(self, feed: OracleFeedConfig) -> OracleFeedStatus:
        return OracleFeedStatus(
            feed=feed.name,
            staleness_secs=self.staleness_secs,
            max_staleness_secs=feed.max_staleness_secs,
            price=Decimal("2500"),
        )


class FakeReserveReader:
    def __init__(self, utilization: str) -> None:
        self.utilization = Decimal(utilization)

    async def read(self, reserve: ReserveConfig) -> UtilizationStatus:
        return UtilizationStatus(
            asset=reserve.asset,
            utilization=self.utilization,
            total_deposits=Decimal(100),
            total_borrows=self.utilization * 100,
        )


def _monitor(
    results: dict[str, AccountPosition | Exception],
    sink: FakeSink | None = None,
    **kw: object,
) -> tuple[PositionMonitor, MetricsRegistry, FakeSink]:
    sink = sink or FakeSink()
    metrics = MetricsRegistry(registry=CollectorRegistry())
    monitor = PositionMonitor(
        accounts=FakeAccounts(results),
        addresses=list(results),
        metrics=metrics,
        dispatcher=AlertDispatcher(sink, metrics=metrics),
        **kw,  # type: ignore[arg-type]
    )
    return monitor, metrics, sink


def _hf(metrics: MetricsRegistry, user: str) -> float | None:
    return metrics.sample("health_factor", {"protocol": "aave-v3", "user": user})


# ── Accounts ────────────────────────────────────────────────────


class TestAccountChecks:
    async def test_warning_position_alerts(self) -> None:
        monitor, metrics, sink = _monitor({ALICE: _position(ALICE, "1.05")})
        report = await monitor.run_cycle()

        assert _hf(metrics, ALICE) == 1.05
        assert len(sink.sent) == 1
        assert sink.sent[0].level == AlertLevel.WARNING
        assert sink.sent[0].metadata["user"] == ALICE
        assert report.accounts_fetched == 1
        assert report.alerts_sent == 1

    async def test_critical_position_alerts(self) -> None:
        monitor, _, sink = _monitor({ALICE: _position(ALICE, "0.95")})
        await monitor.run_cycle()
        assert [a.level for a in sink.sent] == [AlertLevel.CRITICAL]

    async def test_healthy_position_no_alert(self) -> None:
        monitor, metrics, sink = _monitor({ALICE: _position(ALICE, "1.5")})
        await monitor.run_cycle()
        assert _hf(metrics, ALICE) == 1.5
        assert sink.sent == []

    async def test_zero_debt_no_gauge_no_alert(self) -> None:
        monitor, metrics, sink = _monitor({ALICE: _position(ALICE, "0.5", debt=0)})
        report = await monitor.run_cycle()
        assert _hf(metrics, ALICE) is None
        assert sink.sent == []
        assert report.accounts_without_debt == 1

    async def test_failing_account_is_isolated(self) -> None:
        monitor, metrics, sink = _monitor({
            ALICE: _position(ALICE, "1.05"),
            BOB: TransportError("timeout"),
            CAROL: _position(CAROL, "0.95"),
        })
        report = await monitor.run_cycle()

        assert _hf(metrics, ALICE) == 1.05
        assert _hf(metrics, BOB) is None
        assert _hf(metrics, CAROL) == 0.95
        assert len(sink.sent) == 2
        assert report.accounts_failed == 1
        assert metrics.sample("account_fetch_errors_total") == 1.0

    async def test_decode_error_is_isolated(self) -> None:
        monitor, _, sink = _monitor({
            ALICE: DecodeError("short"),
            BOB: _position(BOB, "1.1"),
        })
        await monitor.run_cycle()
        assert len(sink.sent) == 1

    async def test_no_debounce_across_cycles(self) -> None:
        monitor, _, sink = _monitor({ALICE: _position(ALICE, "1.05")})
        await monitor.run_cycle()
        await monitor.run_cycle()
        assert len(sink.sent) == 2
        assert monitor.cycle_count == 2

    async def test_delivery_failure_continues_cycle(self) -> None:
        monitor, metrics, _ = _monitor(
            {ALICE: _position(ALICE, "0.95"), BOB: _position(BOB, "1.05")},
            sink=FakeSink(fail=True),
        )
        report = await monitor.run_cycle()
        assert report.delivery_failures == 2
        assert report.accounts_fetched == 2
        assert _hf(metrics, BOB) == 1.05

    async def test_without_dispatcher(self) -> None:
        metrics = MetricsRegistry(registry=CollectorRegistry())
        monitor = PositionMonitor(
            accounts=FakeAccounts({ALICE: _position(ALICE, "0.5")}),
            addresses=[ALICE],
            metrics=metrics,
        )
        report = await monitor.run_cycle()
        assert _hf(metrics, ALICE) == 0.5
        assert report.alerts_sent == 0

    async def test_cycle_duration_observed(self) -> None:
        monitor, metrics, _ = _monitor({ALICE: TransportError("x")})
        await monitor.run_cycle()
        assert metrics.sample("monitor_cycle_duration_seconds_count") == 1.0

    async def test_empty_address_list(self) -> None:
        monitor, metrics, _ = _monitor({})
        report = await monitor.run_cycle()
        assert report.accounts_fetched == 0
        assert metrics.sample("monitor_cycle_duration_seconds_count") == 1.0


class TestCycleIsolation:
    async def test_undecodable_webhook_error_does_not_abort_cycle(self) -> None:
        async def _handler(request: web.Request) -> web.Response:
            return web.Response(status=500, body=b"\xff\xfe\xfa bad")

        app = web.Application()
        app.router.add_post("/hook", _handler)
        accounts = FakeAccounts({
            ALICE: _position(ALICE, "1.05"),
            BOB: _position(BOB, "1.1"),
        })
        metrics = MetricsRegistry(registry=CollectorRegistry())
        async with test_utils.TestServer(app) as server:
            dispatcher = AlertDispatcher(
                WebhookSink(str(server.make_url("/hook"))), metrics=metrics,
            )
            monitor = PositionMonitor(
                accounts=accounts,
                addresses=[ALICE, BOB],
                metrics=metrics,
                dispatcher=dispatcher,
            )
            try:
                report = await monitor.run_cycle()
            finally:
                await dispatcher.close()

        assert accounts.calls == [ALICE, BOB]
        assert report.delivery_failures == 2
        assert _hf(metrics, BOB) == 1.1

    async def test_invalid_address_does_not_abort_cycle(self) -> None:
        words = (10 * WAD, 5 * WAD, 0, 8250, 8000, 1_050_000_000_000_000_000)
        rpc = MagicMock()
        rpc.eth_call = AsyncMock(return_value="0x" + "".join(f"{w:064x}" for w in words))
        metrics = MetricsRegistry(registry=CollectorRegistry())
        monitor = PositionMonitor(
            accounts=AavePoolReader(rpc, AAVE_V3_POOL),
            addresses=["0xdeadbeef", ALICE],
            metrics=metrics,
        )

        report = await monitor.run_cycle()

        assert rpc.eth_call.call_count == 1
        assert report.accounts_failed == 1
        assert report.accounts_fetched == 1
        assert _hf(metrics, ALICE) == 1.05


# ── Feeds and reserves ──────────────────────────────────────────


class TestMarketChecks:
    async def test_stale_feed_alerts(self) -> None:
        feed = OracleFeedConfig(name="ETH/USD", address=ALICE, asset="WETH")
        monitor, metrics, sink = _monitor(
            {}, feeds=[feed], feed_reader=FakeFeedReader(staleness_secs=5400),
        )
        await monitor.run_cycle()
        assert metrics.sample("oracle_staleness_seconds", {"feed": "ETH/USD"}) == 5400.0
        assert metrics.sample("oracle_price_usd", {"asset": "WETH"}) == 2500.0
        assert [a.level for a in sink.sent] == [AlertLevel.WARNING]

    async def test_fresh_feed_no_alert(self) -> None:
        feed = OracleFeedConfig(name="ETH/USD", address=ALICE)
        monitor, _, sink = _monitor({}, feeds=[feed], feed_reader=FakeFeedReader(60))
        await monitor.run_cycle()
        assert sink.sent == []

    async def test_feeds_ignored_without_reader(self) -> None:
        feed = OracleFeedConfig(name="ETH/USD", address=ALICE)
        monitor, metrics, _ = _monitor({}, feeds=[feed])
        await monitor.run_cycle()
        assert metrics.sample("oracle_staleness_seconds", {"feed": "ETH/USD"}) is None

    async def test_high_utilization_alerts(self) -> None:
        reserve = ReserveConfig(asset="USDC", a_token=ALICE, debt_token=BOB)
        monitor, metrics, sink = _monitor(
            {}, reserves=[reserve], reserve_reader=FakeReserveReader("0.97"),
        )
        await monitor.run_cycle()
        labels = {"protocol": "aave-v3", "asset": "USDC"}
        assert metrics.sample("utilization_rate", labels) == 0.97
        assert metrics.sample("total_deposits", labels) == 100.0
        assert [a.level for a in sink.sent] == [AlertLevel.CRITICAL]


# ── Lifecycle ───────────────────────────────────────────────────


class TestLifecycle:
    async def test_stop_requested_skips_remaining_accounts(self) -> None:
        monitor, _, _ = _monitor({ALICE: _position(ALICE, "1.5"), BOB: _position(BOB, "1.5")})
        accounts = monitor._accounts
        assert isinstance(accounts, FakeAccounts)

        original = accounts.get_user_account_data

        async def _fetch_then_stop(address: str) -> AccountPosition:
            monitor.request_stop()
            return await original(address)

        accounts.get_user_account_data = _fetch_then_stop  # type: ignore[method-assign]
        report = await monitor.run_cycle()

        assert accounts.calls == [ALICE]
        assert report.cancelled is True
        assert monitor.state == MonitorState.STOPPED

    async def test_start_runs_first_cycle_immediately(self) -> None:
        monitor, metrics, _ = _monitor({ALICE: _position(ALICE, "1.5")}, interval_secs=60)
        assert monitor.state == MonitorState.IDLE
        await monitor.start()
        await asyncio.sleep(0.01)
        assert monitor.cycle_count == 1
        assert _hf(metrics, ALICE) == 1.5

        await monitor.stop()
        assert monitor.state == MonitorState.STOPPED
        assert monitor.cycle_count == 1

    async def test_runs_on_interval(self) -> None:
        monitor, _, _ = _monitor({ALICE: _position(ALICE, "1.5")}, interval_secs=0.01)
        await monitor.start()
        await asyncio.sleep(0.1)
        await monitor.stop()
        assert monitor.cycle_count >= 2
