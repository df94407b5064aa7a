"""Ledger event ingestion and suspicious pattern detection."""
from .indexer import EventIndexer, PatternDetector
from .ledger import LedgerEventSource, TRANSFER_TOPIC, APPROVAL_TOPIC

__all__ = [
    "EventIndexer", "PatternDetector",
    "LedgerEventSource", "TRANSFER_TOPIC", "APPROVAL_TOPIC"
]
