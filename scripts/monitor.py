#!/usr/bin/env python3
"""Position monitor entrypoint — health factor metrics and alerts.

Usage::

    # Run with config/settings.yaml
    python scripts/monitor.py

    # Override endpoints and addresses
    python scripts/monitor.py --rpc-url https://eth.llamarpc.com \\
        --addresses 0xabc...,0xdef... --webhook-url https://hooks.example/alert

    # Override log level
    python scripts/monitor.py --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog
from pydantic import SecretStr

from lending_monitor.chain.rpc import JsonRpcClient
from lending_monitor.core.config import Settings, load_settings, require_runtime
from lending_monitor.core.exceptions import ConfigError, MonitorError
from lending_monitor.core.logging import setup_logging
from lending_monitor.monitor.factory import create_monitor_stack
from lending_monitor.monitor.metrics import MetricsRegistry
from lending_monitor.monitor.metrics_server import start_metrics_server

logger = structlog.get_logger(__name__)


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return *settings* with non-empty CLI flags applied."""
    if args.rpc_url:
        settings.chain.rpc_url = args.rpc_url
    if args.addresses:
        settings.monitor.addresses = args.addresses.split(",")
    if args.interval:
        settings.monitor.interval_secs = args.interval
    if args.webhook_url:
        settings.alerts.webhook_url = SecretStr(args.webhook_url)
    if args.metrics_port:
        settings.metrics.port = args.metrics_port
    return settings


async def run(args: argparse.Namespace) -> int:
    """Start the monitor and metrics server and run until interrupted."""
    try:
        settings = apply_overrides(load_settings(args.config), args)
        setup_logging(level=args.log_level, service="monitor")
        require_runtime(settings)
    except ConfigError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 1

    rpc = JsonRpcClient(settings.chain.rpc_url, settings.chain.request_timeout_secs)
    await rpc.connect()
    try:
        chain_id = await rpc.chain_id()
    except MonitorError as exc:
        logger.error("rpc_connect_failed", url=settings.chain.rpc_url, error=str(exc))
        await rpc.close()
        return 1
    logger.info("rpc_connected", chain_id=chain_id)

    metrics = MetricsRegistry()
    monitor, dispatcher = create_monitor_stack(settings, rpc, metrics)
    if not monitor.addresses:
        logger.warning("no_addresses_configured")

    runner = await start_metrics_server(
        metrics, host=settings.metrics.host, port=settings.metrics.port,
    )
    logger.info(
        "monitor_configured",
        addresses=len(monitor.addresses),
        interval_secs=settings.monitor.interval_secs,
        metrics_port=settings.metrics.port,
        alerts="enabled" if dispatcher else "disabled",
    )

    await monitor.start()

    # ── Wait for shutdown signal ─────────────────────────────────
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows: signal handlers not supported on ProactorEventLoop
            pass

    try:
        await stop_event.wait()
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")

    # ── Graceful shutdown ────────────────────────────────────────
    await monitor.stop()
    if dispatcher is not None:
        await dispatcher.close()
    await runner.cleanup()
    await rpc.close()

    logger.info("monitor_exited", cycles=monitor.cycle_count)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Monitor lending positions and export health metrics.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument("--rpc-url", default=None, help="Ethereum RPC URL")
    parser.add_argument(
        "--addresses",
        default=None,
        help="Addresses to monitor (comma-separated)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Monitoring interval in seconds",
    )
    parser.add_argument("--webhook-url", default=None, help="Alert webhook URL")
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Prometheus metrics port",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
