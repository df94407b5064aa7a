"""Event indexer with per-account sliding-window pattern detection."""

import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

import structlog

from ..models import (
    BlockMeta, Clock, LabelType, Severity, SuspicionLabel,
    TransactionKind, TransactionRecord, normalize_address, utcnow
)
from ..rpc import RpcError
from .ledger import LedgerEventSource

logger = structlog.get_logger()

MAX_UINT256 = 2**256 - 1

SuspiciousHandler = Callable[[str, TransactionRecord, list[SuspicionLabel]], Awaitable[object]]


class PatternDetector:
    """Fixed heuristics over one account's own rolling history."""

    HISTORY_WINDOW = timedelta(hours=24)
    FREQUENCY_WINDOW = timedelta(hours=1)
    FREQUENCY_LIMIT = 10
    DRAIN_WINDOW = timedelta(minutes=5)
    DRAIN_MIN_OUTGOING = 3
    NEW_RECIPIENT_MIN_HISTORY = 5
    UNLIMITED_APPROVAL = MAX_UINT256 // 2

    def evaluate(
        self,
        account: str,
        record: TransactionRecord,
        history: list[TransactionRecord],
        now: datetime
    ) -> list[SuspicionLabel]:
        """
        Classify a transfer against the account's history.

        `history` already contains `record` as its last entry.
        """
        labels = []

        # Pattern: high frequency
        hour_ago = now - self.FREQUENCY_WINDOW
        in_last_hour = [tx for tx in history if tx.timestamp > hour_ago]
        if len(in_last_hour) > self.FREQUENCY_LIMIT:
            labels.append(SuspicionLabel(
                type=LabelType.HIGH_FREQUENCY,
                severity=Severity.MEDIUM,
                description=f"High transaction frequency (>{self.FREQUENCY_LIMIT}/hour)"
            ))

        # Pattern: draining (all outgoing, no incoming)
        window_start = now - self.DRAIN_WINDOW
        recent = [tx for tx in history if tx.timestamp > window_start]
        outgoing = sum(1 for tx in recent if tx.from_address == account)
        incoming = sum(1 for tx in recent if tx.to_address == account)
        if outgoing >= self.DRAIN_MIN_OUTGOING and incoming == 0:
            labels.append(SuspicionLabel(
                type=LabelType.DRAIN_PATTERN,
                severity=Severity.HIGH,
                description="Potential wallet draining (multiple outgoing, no incoming)"
            ))

        # Pattern: new recipient, only once the account has a baseline
        known_recipients = {tx.to_address for tx in history[:-1]}
        if len(history) > self.NEW_RECIPIENT_MIN_HISTORY and record.to_address not in known_recipients:
            labels.append(SuspicionLabel(
                type=LabelType.NEW_RECIPIENT,
                severity=Severity.LOW,
                description="Transfer to new recipient"
            ))

        return labels

    def evaluate_approval(self, record: TransactionRecord) -> list[SuspicionLabel]:
        if record.amount >= self.UNLIMITED_APPROVAL:
            return [SuspicionLabel(
                type=LabelType.UNLIMITED_APPROVAL,
                severity=Severity.HIGH,
                description="Unlimited token approval"
            )]
        return []


class EventIndexer:
    """
    Real-time listener for ledger Transfer and Approval events.

    Keeps a 24h transaction history per sender, runs the PatternDetector
    on every event and hands suspicious ones to the registered handler.
    Without a reachable ledger source it stays offline and every query
    returns empty results.
    """

    # accounts share a fixed pool of locks; one account always maps to the same lock
    LOCK_STRIPES = 64

    def __init__(
        self,
        source: Optional[LedgerEventSource] = None,
        detector: Optional[PatternDetector] = None,
        clock: Clock = utcnow
    ):
        self.source = source
        self.detector = detector or PatternDetector()
        self.clock = clock
        self.on_suspicious: Optional[SuspiciousHandler] = None

        self.is_listening = False
        self.event_counts = {"transfers": 0, "approvals": 0, "suspicious": 0}

        self.recent_transactions: dict[str, list[TransactionRecord]] = {}
        self._locks = [asyncio.Lock() for _ in range(self.LOCK_STRIPES)]

    async def start(self):
        """Subscribe to the ledger source, or stay offline."""
        if self.is_listening:
            return

        if self.source is None:
            logger.warning("Event indexer: ledger not configured, running in offline mode")
            return

        self.source.subscribe(self.on_transfer, self.on_approval)
        try:
            await self.source.start()
        except RpcError as e:
            logger.warning("Event indexer: ledger unavailable, running in offline mode", error=str(e))
            return

        self.is_listening = True
        logger.info("Event indexer listening to Transfer and Approval events")

    async def stop(self):
        if self.source is not None and self.is_listening:
            await self.source.stop()
        self.is_listening = False
        logger.info("Event indexer stopped")

    async def on_transfer(
        self,
        from_address: str,
        to_address: str,
        amount: int,
        meta: Optional[BlockMeta] = None
    ) -> list[SuspicionLabel]:
        """Record a transfer against its sender and evaluate it."""
        meta = meta or BlockMeta()
        sender = normalize_address(from_address)

        async with self._lock_for(sender):
            self.event_counts["transfers"] += 1
            now = self.clock()
            record = TransactionRecord(
                kind=TransactionKind.TRANSFER,
                from_address=sender,
                to_address=normalize_address(to_address),
                amount=int(amount),
                timestamp=now,
                block_number=meta.block_number,
                tx_hash=meta.tx_hash
            )

            history = self._add_to_cache(sender, record, now)
            labels = self.detector.evaluate(sender, record, history, now)

            if labels:
                logger.warning(
                    "Suspicious transfer detected",
                    sender=sender,
                    recipient=record.to_address,
                    reasons=[label.description for label in labels]
                )
                await self._flag(sender, record, labels)

        return labels

    async def on_approval(
        self,
        owner: str,
        spender: str,
        amount: int,
        meta: Optional[BlockMeta] = None
    ) -> list[SuspicionLabel]:
        """Evaluate an approval. Approvals are not added to the transfer history."""
        meta = meta or BlockMeta()
        owner = normalize_address(owner)

        async with self._lock_for(owner):
            self.event_counts["approvals"] += 1
            record = TransactionRecord(
                kind=TransactionKind.APPROVAL,
                from_address=owner,
                to_address=normalize_address(spender),
                amount=int(amount),
                timestamp=self.clock(),
                block_number=meta.block_number,
                tx_hash=meta.tx_hash
            )

            labels = self.detector.evaluate_approval(record)
            if labels:
                logger.warning("Unlimited approval detected", owner=owner, spender=record.to_address)
                await self._flag(owner, record, labels)

        return labels

    def _lock_for(self, account: str) -> asyncio.Lock:
        return self._locks[hash(account) % self.LOCK_STRIPES]

    async def _flag(self, wallet: str, record: TransactionRecord, labels: list[SuspicionLabel]):
        self.event_counts["suspicious"] += 1
        if self.on_suspicious is not None:
            await self.on_suspicious(wallet, record, labels)

    def _add_to_cache(
        self,
        wallet: str,
        record: TransactionRecord,
        now: datetime
    ) -> list[TransactionRecord]:
        cutoff = now - self.detector.HISTORY_WINDOW
        history = self.recent_transactions.get(wallet, [])
        history.append(record)
        cleaned = [tx for tx in history if tx.timestamp > cutoff]
        self.recent_transactions[wallet] = cleaned
        return cleaned

    def get_wallet_history(self, wallet: str) -> list[TransactionRecord]:
        return list(self.recent_transactions.get(normalize_address(wallet), []))

    def get_stats(self) -> dict:
        return {
            "is_listening": self.is_listening,
            "event_counts": dict(self.event_counts),
            "cached_wallets": len(self.recent_transactions),
        }
