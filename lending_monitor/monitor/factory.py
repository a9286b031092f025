"""Convenience factory for wiring the monitoring stack."""

from __future__ import annotations

from lending_monitor.chain.contracts import AavePoolReader, PriceFeedReader, ReserveReader
from lending_monitor.chain.rpc import JsonRpcClient
from lending_monitor.core.config import AlertsConfig, Settings, parse_addresses
from lending_monitor.monitor.channels import WebhookSink
from lending_monitor.monitor.dispatcher import AlertDispatcher, RetryPolicy
from lending_monitor.monitor.metrics import MetricsRegistry
from lending_monitor.monitor.orchestrator import PositionMonitor


def create_dispatcher(
    config: AlertsConfig,
    metrics: MetricsRegistry | None = None,
) -> AlertDispatcher | None:
    """Build a webhook dispatcher, or None when no webhook is configured."""
    if not config.enabled:
        return None
    return AlertDispatcher(
        sink=WebhookSink.from_config(config),
        retry_policy=RetryPolicy(
            max_attempts=config.max_attempts,
            backoff_secs=config.backoff_secs,
        ),
        metrics=metrics,
    )


def create_monitor_stack(
    settings: Settings,
    rpc: JsonRpcClient,
    metrics: MetricsRegistry,
) -> tuple[PositionMonitor, AlertDispatcher | None]:
    """Build a position monitor + optional dispatcher from config.

    Returns:
        (monitor, dispatcher_or_None)
    """
    dispatcher = create_dispatcher(settings.alerts, metrics)
    monitor_cfg = settings.monitor

    monitor = PositionMonitor(
        accounts=AavePoolReader(rpc, settings.chain.pool_address),
        addresses=parse_addresses(monitor_cfg.addresses),
        metrics=metrics,
        dispatcher=dispatcher,
        protocol=monitor_cfg.protocol,
        interval_secs=monitor_cfg.interval_secs,
        feeds=monitor_cfg.feeds,
        feed_reader=PriceFeedReader(rpc) if monitor_cfg.feeds else None,
        reserves=monitor_cfg.reserves,
        reserve_reader=ReserveReader(rpc) if monitor_cfg.reserves else None,
    )
    return monitor, dispatcher
