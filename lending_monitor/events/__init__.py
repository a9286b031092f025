"""On-chain event classification and indexing."""

from lending_monitor.events.classifier import (
    EVENT_TABLE,
    LIQUIDATION_CALL_TOPIC,
    classify,
    classify_log,
    watched_topics,
)
from lending_monitor.events.indexer import EventIndexer

__all__ = [
    "EVENT_TABLE",
    "EventIndexer",
    "LIQUIDATION_CALL_TOPIC",
    "classify",
    "classify_log",
    "watched_topics",
]
