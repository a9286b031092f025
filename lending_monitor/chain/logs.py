"""Pool log sources — historical ``eth_getLogs`` and live ``eth_subscribe``."""

from __future__ import annotations

import abc
import json
from collections.abc import AsyncIterator
from typing import Any

import structlog
import websockets
from web3 import Web3

from lending_monitor.chain.rpc import JsonRpcClient, from_quantity
from lending_monitor.core.exceptions import (
    DecodeError,
    SubscriptionUnavailableError,
    TransportError,
)
from lending_monitor.core.types import LogRecord

logger = structlog.stdlib.get_logger()


def parse_log(raw: dict[str, Any]) -> LogRecord:
    """Convert a JSON-RPC log object into a :class:`LogRecord`."""
    if not isinstance(raw, dict):
        raise DecodeError(f"log is not an object: {raw!r}")
    topics = raw.get("topics") or []
    if not isinstance(topics, list):
        raise DecodeError("log topics is not a list")
    return LogRecord(
        topics=[str(t) for t in topics],
        block_number=from_quantity(raw.get("blockNumber", 0)),
        tx_hash=str(raw.get("transactionHash", "")),
        address=str(raw.get("address", "")),
    )


class LogSource(abc.ABC):
    """Supplies pool logs either for a bounded range or as a live stream."""

    @abc.abstractmethod
    async def get_logs(self, from_block: int, to_block: int | None = None) -> list[LogRecord]:
        """Return logs in ``[from_block, to_block]`` (``None`` = latest)."""

    @abc.abstractmethod
    def subscribe(self) -> AsyncIterator[LogRecord]:
        """Yield logs as they arrive.

        Raises :class:`SubscriptionUnavailableError` on first iteration if
        the transport cannot stream.
        """


class ChainLogSource(LogSource):
    """Log source backed by a node's HTTP and WebSocket endpoints."""

    def __init__(
        self,
        rpc: JsonRpcClient,
        address: str,
        topics: list[str],
        ws_url: str = "",
    ) -> None:
        self._rpc = rpc
        self._address = Web3.to_checksum_address(address)
        # A nested list ORs the signatures in topic position 0.
        self._topic_filter: list[Any] = [list(topics)]
        self._ws_url = ws_url

    async def get_logs(self, from_block: int, to_block: int | None = None) -> list[LogRecord]:
        raw_logs = await self._rpc.get_logs(
            self._address, self._topic_filter, from_block, to_block,
        )
        return [parse_log(raw) for raw in raw_logs]

    async def subscribe(self) -> AsyncIterator[LogRecord]:
        if not self._ws_url.startswith(("ws://", "wss://")):
            raise SubscriptionUnavailableError(
                "log streaming needs a WebSocket endpoint (ws:// or wss://)"
            )
        try:
            ws = await websockets.connect(self._ws_url)
        except (OSError, websockets.exceptions.WebSocketException) as exc:
            raise SubscriptionUnavailableError(
                f"failed to connect to {self._ws_url}"
            ) from exc

        try:
            await ws.send(json.dumps({
                "jsonrpc": "2.0",
                "id": 1,
                "method": "eth_subscribe",
                "params": ["logs", {"address": self._address, "topics": self._topic_filter}],
            }))
            try:
                reply = json.loads(await ws.recv())
            except json.JSONDecodeError as exc:
                raise SubscriptionUnavailableError("invalid eth_subscribe reply") from exc
            if not isinstance(reply, dict) or reply.get("error") or "result" not in reply:
                raise SubscriptionUnavailableError(
                    f"eth_subscribe rejected: {reply!r}"[:200]
                )
            subscription_id = reply["result"]
            logger.info("log_subscription_started", subscription=subscription_id)

            async for raw_msg in ws:
                try:
                    msg = json.loads(raw_msg)
                except json.JSONDecodeError:
                    logger.warning("ws_invalid_json", raw=str(raw_msg)[:200])
                    continue
                if not isinstance(msg, dict) or msg.get("method") != "eth_subscription":
                    continue
                params = msg.get("params")
                if not isinstance(params, dict):
                    logger.warning("ws_unexpected_frame", raw=str(raw_msg)[:200])
                    continue
                if params.get("subscription") != subscription_id:
                    continue
                result = params.get("result")
                if not isinstance(result, dict):
                    logger.warning("ws_unexpected_frame", raw=str(raw_msg)[:200])
                    continue
                if result.get("removed"):
                    # Reorged-out log; skip.
                    continue
                try:
                    yield parse_log(result)
                except DecodeError:
                    logger.warning("log_decode_failed", raw=str(result)[:200])
        except websockets.exceptions.ConnectionClosed as exc:
            raise TransportError("log subscription connection closed") from exc
        finally:
            await ws.close()
