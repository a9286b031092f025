"""Chain collaborators — JSON-RPC transport, contract readers, log sources."""

from lending_monitor.chain.contracts import (
    AavePoolReader,
    AccountDataSource,
    PriceFeedReader,
    ReserveReader,
)
from lending_monitor.chain.logs import ChainLogSource, LogSource, parse_log
from lending_monitor.chain.rpc import JsonRpcClient

__all__ = [
    "AavePoolReader",
    "AccountDataSource",
    "ChainLogSource",
    "JsonRpcClient",
    "LogSource",
    "PriceFeedReader",
    "ReserveReader",
    "parse_log",
]
