"""Classify raw pool log topics into typed lending events.

``topics[0]`` is the keccak-256 hash of the event signature; the indexed
parameters follow in ABI order.  Supply, Borrow and Repay index the reserve
at position 1; LiquidationCall indexes collateral asset, debt asset and
user at positions 1–3.  Anything unrecognised or malformed becomes an
:class:`UnknownEvent` — classification never raises.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from typing import NamedTuple

from web3 import Web3

from lending_monitor.core.types import (
    BorrowEvent,
    DomainEvent,
    LendingEventType,
    LiquidationCallEvent,
    LogRecord,
    RepayEvent,
    SupplyEvent,
    UnknownEvent,
)

SUPPLY_SIGNATURE = "Supply(address,address,address,uint256,uint16)"
BORROW_SIGNATURE = "Borrow(address,address,address,uint256,uint8,uint256,uint16)"
REPAY_SIGNATURE = "Repay(address,address,address,uint256,bool)"
LIQUIDATION_CALL_SIGNATURE = (
    "LiquidationCall(address,address,address,uint256,uint256,address,bool)"
)

_TOPIC_RE = re.compile(r"^0x[0-9a-f]{64}$")

TopicLike = str | bytes


def event_topic(signature: str) -> str:
    """Return the lowercase 0x-prefixed keccak-256 topic for *signature*."""
    return Web3.to_hex(Web3.keccak(text=signature))


SUPPLY_TOPIC = event_topic(SUPPLY_SIGNATURE)
BORROW_TOPIC = event_topic(BORROW_SIGNATURE)
REPAY_TOPIC = event_topic(REPAY_SIGNATURE)
LIQUIDATION_CALL_TOPIC = event_topic(LIQUIDATION_CALL_SIGNATURE)


def _normalize_topic(topic: TopicLike) -> str | None:
    if isinstance(topic, bytes | bytearray):
        text = "0x" + bytes(topic).hex()
    elif isinstance(topic, str):
        text = topic.lower()
        if not text.startswith("0x"):
            text = "0x" + text
    else:
        return None
    return text if _TOPIC_RE.match(text) else None


def _topic_address(topic: str) -> str:
    """Indexed addresses are left-padded to 32 bytes; keep the low 20."""
    return Web3.to_checksum_address("0x" + topic[-40:])


def _supply(t: list[str], block: int, tx: str) -> DomainEvent:
    return SupplyEvent(block_number=block, tx_hash=tx, reserve=_topic_address(t[1]))


def _borrow(t: list[str], block: int, tx: str) -> DomainEvent:
    return BorrowEvent(block_number=block, tx_hash=tx, reserve=_topic_address(t[1]))


def _repay(t: list[str], block: int, tx: str) -> DomainEvent:
    return RepayEvent(block_number=block, tx_hash=tx, reserve=_topic_address(t[1]))


def _liquidation(t: list[str], block: int, tx: str) -> DomainEvent:
    return LiquidationCallEvent(
        block_number=block,
        tx_hash=tx,
        collateral_asset=_topic_address(t[1]),
        debt_asset=_topic_address(t[2]),
        user=_topic_address(t[3]),
    )


class EventRule(NamedTuple):
    """Lookup-table entry: event kind, minimum topic count, builder."""

    event_type: LendingEventType
    required_topics: int
    build: Callable[[list[str], int, str], DomainEvent]


EVENT_TABLE: dict[str, EventRule] = {
    SUPPLY_TOPIC: EventRule(LendingEventType.SUPPLY, 2, _supply),
    BORROW_TOPIC: EventRule(LendingEventType.BORROW, 2, _borrow),
    REPAY_TOPIC: EventRule(LendingEventType.REPAY, 2, _repay),
    LIQUIDATION_CALL_TOPIC: EventRule(LendingEventType.LIQUIDATION_CALL, 4, _liquidation),
}


def classify(
    topics: Sequence[TopicLike],
    block_number: int = 0,
    tx_hash: str = "",
) -> DomainEvent:
    """Map a log's topic list to a typed event.

    Block number and tx hash are passed through unchanged.
    """
    if not topics:
        return UnknownEvent(block_number=block_number, tx_hash=tx_hash)

    normalized = [_normalize_topic(t) for t in topics]
    signature = normalized[0]
    rule = EVENT_TABLE.get(signature) if signature else None
    if rule is None:
        return UnknownEvent(
            block_number=block_number, tx_hash=tx_hash, signature=signature,
        )

    indexed = normalized[: rule.required_topics]
    if len(indexed) < rule.required_topics or any(t is None for t in indexed):
        return UnknownEvent(
            block_number=block_number, tx_hash=tx_hash, signature=signature,
        )
    return rule.build(indexed, block_number, tx_hash)  # type: ignore[arg-type]


def classify_log(log: LogRecord) -> DomainEvent:
    """Classify a :class:`LogRecord`."""
    return classify(log.topics, block_number=log.block_number, tx_hash=log.tx_hash)


def watched_topics() -> list[str]:
    """Signature topics to filter pool logs on."""
    return list(EVENT_TABLE)
