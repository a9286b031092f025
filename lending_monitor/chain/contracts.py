"""Read-only contract calls: Aave pool account data, price feeds, reserves.

Calls are ABI-encoded by hand — every function used here takes at most one
address argument and returns static 32-byte words.
"""

from __future__ import annotations

import abc
import time
from decimal import Decimal

from web3 import Web3

from lending_monitor.chain.rpc import JsonRpcClient
from lending_monitor.core.config import OracleFeedConfig, ReserveConfig
from lending_monitor.core.exceptions import DecodeError
from lending_monitor.core.fixed_point import scale
from lending_monitor.core.types import AccountPosition, OracleFeedStatus, UtilizationStatus

_WORD_HEX = 64


def selector(signature: str) -> str:
    """4-byte function selector as 0x-hex."""
    return Web3.to_hex(Web3.keccak(text=signature)[:4])


GET_USER_ACCOUNT_DATA = selector("getUserAccountData(address)")
LATEST_ROUND_DATA = selector("latestRoundData()")
TOTAL_SUPPLY = selector("totalSupply()")


def encode_address(address: str) -> str:
    """ABI-encode an address argument (no 0x prefix)."""
    if not Web3.is_address(address):
        raise DecodeError(f"cannot encode invalid address {address!r}")
    return address.lower().removeprefix("0x").rjust(_WORD_HEX, "0")


def decode_words(data: str, count: int) -> list[int]:
    """Split a hex return value into *count* unsigned 256-bit words."""
    body = data.removeprefix("0x")
    if len(body) < count * _WORD_HEX:
        raise DecodeError(
            f"expected {count} words, got {len(body) / _WORD_HEX:.1f}"
        )
    try:
        return [
            int(body[i * _WORD_HEX:(i + 1) * _WORD_HEX], 16) for i in range(count)
        ]
    except ValueError as exc:
        raise DecodeError("return data is not hex") from exc


def to_signed(word: int) -> int:
    """Interpret a 256-bit word as two's-complement int256."""
    return word - (1 << 256) if word >= 1 << 255 else word


class AccountDataSource(abc.ABC):
    """Returns one account's position per call; no batching."""

    @abc.abstractmethod
    async def get_user_account_data(self, address: str) -> AccountPosition:
        """Fetch a fresh position; raises TransportError or DecodeError."""


class AavePoolReader(AccountDataSource):
    """Fetches ``getUserAccountData`` from an Aave v3 Pool."""

    def __init__(self, rpc: JsonRpcClient, pool_address: str) -> None:
        self._rpc = rpc
        self._pool = Web3.to_checksum_address(pool_address)

    @property
    def pool_address(self) -> str:
        return self._pool

    async def get_user_account_data(self, address: str) -> AccountPosition:
        data = GET_USER_ACCOUNT_DATA + encode_address(address)
        raw = await self._rpc.eth_call(self._pool, data)
        collateral, debt, available, threshold, ltv, hf = decode_words(raw, 6)
        return AccountPosition(
            address=address,
            total_collateral=collateral,
            total_debt=debt,
            available_borrows=available,
            liquidation_threshold=threshold,
            ltv=ltv,
            health_factor=hf,
        )


class PriceFeedReader:
    """Reads staleness and answer from Chainlink-style aggregators."""

    def __init__(self, rpc: JsonRpcClient) -> None:
        self._rpc = rpc

    async def read(self, feed: OracleFeedConfig, now: float | None = None) -> OracleFeedStatus:
        raw = await self._rpc.eth_call(Web3.to_checksum_address(feed.address), LATEST_ROUND_DATA)
        _round_id, answer, _started_at, updated_at, _answered_in = decode_words(raw, 5)
        current = time.time() if now is None else now
        return OracleFeedStatus(
            feed=feed.name,
            staleness_secs=max(0.0, current - updated_at),
            max_staleness_secs=feed.max_staleness_secs,
            price=scale(to_signed(answer), feed.decimals),
        )


class ReserveReader:
    """Derives utilization from aToken and variable debt token supplies."""

    def __init__(self, rpc: JsonRpcClient) -> None:
        self._rpc = rpc

    async def _total_supply(self, token: str) -> int:
        raw = await self._rpc.eth_call(Web3.to_checksum_address(token), TOTAL_SUPPLY)
        return decode_words(raw, 1)[0]

    async def read(self, reserve: ReserveConfig) -> UtilizationStatus:
        deposits = scale(await self._total_supply(reserve.a_token), reserve.decimals)
        borrows = scale(await self._total_supply(reserve.debt_token), reserve.decimals)
        utilization = borrows / deposits if deposits > 0 else Decimal(0)
        return UtilizationStatus(
            asset=reserve.asset,
            utilization=utilization,
            total_deposits=deposits,
            total_borrows=borrows,
        )
