#!/usr/bin/env python3
"""Event indexer entrypoint — classifies Supply/Borrow/Repay/LiquidationCall logs.

Usage::

    # Live only (needs a ws:// or wss:// endpoint for streaming)
    python scripts/indexer.py --rpc-url https://... --ws-url wss://...

    # Backfill from a block, then follow live
    python scripts/indexer.py --from-block 19000000
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog

from lending_monitor.chain.logs import ChainLogSource
from lending_monitor.chain.rpc import JsonRpcClient
from lending_monitor.core.config import load_settings
from lending_monitor.core.exceptions import ConfigError
from lending_monitor.core.logging import setup_logging
from lending_monitor.events.classifier import watched_topics
from lending_monitor.events.indexer import EventIndexer
from lending_monitor.monitor.metrics import MetricsRegistry
from lending_monitor.monitor.metrics_server import start_metrics_server

logger = structlog.get_logger(__name__)


async def run(args: argparse.Namespace) -> int:
    """Index pool events until interrupted."""
    try:
        settings = load_settings(args.config)
        setup_logging(level=args.log_level, service="indexer")
    except ConfigError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 1

    rpc_url = args.rpc_url or settings.chain.rpc_url
    ws_url = args.ws_url or settings.chain.ws_url
    from_block = args.from_block if args.from_block is not None else settings.indexer.from_block
    if not rpc_url:
        print("configuration error: chain.rpc_url is required", file=sys.stderr)
        return 1

    rpc = JsonRpcClient(rpc_url, settings.chain.request_timeout_secs)
    await rpc.connect()

    metrics = MetricsRegistry()
    source = ChainLogSource(
        rpc,
        address=settings.chain.pool_address,
        topics=watched_topics(),
        ws_url=ws_url,
    )
    indexer = EventIndexer(source, metrics, protocol=settings.monitor.protocol)
    runner = await start_metrics_server(
        metrics, host=settings.metrics.host, port=settings.indexer.metrics_port,
    )

    logger.info(
        "indexer_configured",
        pool=settings.chain.pool_address,
        from_block=from_block,
        streaming=bool(ws_url),
    )
    await indexer.start(from_block=from_block)

    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            pass

    await stop_event.wait()

    await indexer.stop()
    await runner.cleanup()
    await rpc.close()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Classify lending pool events from history and a live stream.",
    )
    parser.add_argument("--config", default=None, help="Path to settings YAML")
    parser.add_argument("--rpc-url", default=None, help="HTTP RPC URL for eth_getLogs")
    parser.add_argument("--ws-url", default=None, help="WebSocket RPC URL for eth_subscribe")
    parser.add_argument(
        "--from-block",
        type=int,
        default=None,
        help="Starting block number (0 = live only)",
    )
    parser.add_argument("--log-level", default=None, help="Log level override")
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
