"""Minimal async Ethereum JSON-RPC client over HTTP."""

from __future__ import annotations

import itertools
from typing import Any

import httpx
import structlog

from lending_monitor.core.exceptions import DecodeError, TransportError

logger = structlog.stdlib.get_logger()


def to_quantity(value: int) -> str:
    """Encode an int as a JSON-RPC hex quantity."""
    return hex(value)


def from_quantity(value: Any) -> int:
    """Decode a JSON-RPC hex quantity (ints pass through)."""
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise DecodeError(f"expected hex quantity, got {value!r}")
    try:
        return int(value, 16)
    except ValueError as exc:
        raise DecodeError(f"invalid hex quantity {value!r}") from exc


class JsonRpcClient:
    """Sends JSON-RPC requests to a chain node.

    Transport failures, timeouts and non-200 responses raise
    :class:`TransportError`; unparseable bodies raise :class:`DecodeError`.

    Usage::

        rpc = JsonRpcClient("https://eth.llamarpc.com")
        await rpc.connect()
        head = await rpc.block_number()
        await rpc.close()
    """

    def __init__(self, url: str, timeout_secs: float = 10.0) -> None:
        self._url = url
        self._timeout_secs = timeout_secs
        self._http: httpx.AsyncClient | None = None
        self._ids = itertools.count(1)

    @property
    def url(self) -> str:
        return self._url

    @property
    def connected(self) -> bool:
        return self._http is not None and not self._http.is_closed

    async def connect(self) -> None:
        """Create the httpx async client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout_secs))

    async def close(self) -> None:
        """Close the httpx async client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def request(self, method: str, params: list[Any]) -> Any:
        """Send one JSON-RPC call and return its ``result``."""
        if self._http is None:
            await self.connect()
        assert self._http is not None

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = await self._http.post(self._url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"{method}: node returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"{method}: request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise DecodeError(f"{method}: node returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise DecodeError(f"{method}: node returned non-object")
        if body.get("error"):
            err = body["error"]
            message = err.get("message", err) if isinstance(err, dict) else err
            raise TransportError(f"{method}: {message}")
        if "result" not in body:
            raise DecodeError(f"{method}: response has no result")
        return body["result"]

    # ── Convenience wrappers ─────────────────────────────────────

    async def chain_id(self) -> int:
        return from_quantity(await self.request("eth_chainId", []))

    async def block_number(self) -> int:
        return from_quantity(await self.request("eth_blockNumber", []))

    async def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        """Execute a read-only contract call; returns the raw hex result."""
        result = await self.request("eth_call", [{"to": to, "data": data}, block])
        if not isinstance(result, str):
            raise DecodeError(f"eth_call returned {type(result).__name__}")
        return result

    async def get_logs(
        self,
        address: str,
        topics: list[Any],
        from_block: int,
        to_block: int | None = None,
    ) -> list[dict[str, Any]]:
        """``eth_getLogs`` for one contract over a block range."""
        query = {
            "address": address,
            "topics": topics,
            "fromBlock": to_quantity(from_block),
            "toBlock": to_quantity(to_block) if to_block is not None else "latest",
        }
        result = await self.request("eth_getLogs", [query])
        if not isinstance(result, list):
            raise DecodeError("eth_getLogs returned non-list")
        return result
