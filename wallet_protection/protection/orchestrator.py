"""Protection policy: scores suspicious activity and drives enforcement."""

import asyncio
from typing import Any, Optional, Union

import structlog

from ..alerts import AlertDispatcher, WebhookNotifier
from ..config import Settings, get_settings
from ..models import LabelType, Severity, SuspicionLabel, TransactionRecord, normalize_address
from ..monitors import EventIndexer, LedgerEventSource
from ..rpc import JsonRpcClient, RpcError
from ..scoring import RiskScorer
from .guard import GuardContract, JsonRpcGuardContract

logger = structlog.get_logger()

Pattern = Union[str, SuspicionLabel]


def classify_pattern(pattern: str) -> LabelType:
    """Map a free-text pattern description to a label type."""
    if "frequency" in pattern:
        return LabelType.HIGH_FREQUENCY
    if "draining" in pattern:
        return LabelType.DRAIN_PATTERN
    if "approval" in pattern:
        return LabelType.UNLIMITED_APPROVAL
    if "blacklist" in pattern:
        return LabelType.BLACKLIST_INTERACTION
    if "new recipient" in pattern:
        return LabelType.NEW_RECIPIENT
    return LabelType.LARGE_TRANSACTION


def pattern_severity(pattern: str) -> Severity:
    if "draining" in pattern or "blacklist" in pattern:
        return Severity.HIGH
    if "frequency" in pattern or "approval" in pattern:
        return Severity.MEDIUM
    return Severity.LOW


def to_label(pattern: Pattern) -> SuspicionLabel:
    if isinstance(pattern, SuspicionLabel):
        return pattern
    return SuspicionLabel(
        type=classify_pattern(pattern),
        severity=pattern_severity(pattern),
        description=pattern
    )


class WalletProtectionService:
    """
    Orchestrates the protection components.

    Suspicious activity from the EventIndexer is scored by the RiskScorer;
    the resulting score picks the alert tier and, at AUTO_LOCK_THRESHOLD,
    an on-chain lock through the guard contract. Guard failures never
    propagate: locks report False and status reads report None.
    """

    AUTO_LOCK_THRESHOLD = 80
    MEDIUM_THRESHOLD = 50
    LOW_THRESHOLD = 30
    LOCK_STRIPES = 64

    def __init__(
        self,
        indexer: EventIndexer,
        risk_scorer: RiskScorer,
        alerts: AlertDispatcher,
        guard: Optional[GuardContract] = None
    ):
        self.indexer = indexer
        self.risk_scorer = risk_scorer
        self.alerts = alerts
        self.guard = guard
        self._wallet_locks = [asyncio.Lock() for _ in range(self.LOCK_STRIPES)]

        self.indexer.on_suspicious = self._on_indexer_flag

        if self.guard is None:
            logger.warning("Guard contract not configured, running in read-only mode")

    async def start(self):
        await self.indexer.start()

    async def stop(self):
        await self.indexer.stop()
        if self.indexer.source is not None:
            await self.indexer.source.close()
        if self.guard is not None:
            await self.guard.close()
        await self.alerts.close()

    def _lock_for(self, wallet: str) -> asyncio.Lock:
        return self._wallet_locks[hash(normalize_address(wallet)) % self.LOCK_STRIPES]

    async def _on_indexer_flag(self, wallet: str, record: TransactionRecord, labels: list[SuspicionLabel]):
        await self.process_suspicious_activity(wallet, labels, record)

    async def process_suspicious_activity(
        self,
        wallet: str,
        patterns: list[Pattern],
        transaction: Optional[Any] = None
    ) -> dict:
        """Score a wallet's suspicious activity and act on the result."""
        labels = [to_label(p) for p in patterns]
        descriptions = [label.description or label.type.value for label in labels]

        logger.info(
            "Processing suspicious activity",
            wallet=wallet,
            patterns=descriptions,
            tx_hash=getattr(transaction, "tx_hash", None)
        )

        async with self._lock_for(wallet):
            score = self.risk_scorer.calculate_risk_score(wallet, labels)
            logger.info("Risk score computed", wallet=wallet, score=score)

            await self._update_on_chain_score(wallet, score)

            locked = False
            if score >= self.AUTO_LOCK_THRESHOLD:
                locked = True
                await self.lock_wallet(wallet, f"Auto-locked: risk score {score}")
                await self.alerts.send_high_risk_alert(wallet, score, descriptions)
            elif score >= self.MEDIUM_THRESHOLD:
                await self.alerts.send_medium_risk_alert(wallet, score, descriptions)
            elif score >= self.LOW_THRESHOLD:
                await self.alerts.send_low_risk_alert(wallet, score, descriptions)

        return {"wallet": wallet, "score": score, "action": "locked" if locked else "monitored"}

    async def lock_wallet(self, wallet: str, reason: str) -> bool:
        """Lock a wallet on-chain. Returns False on any failure."""
        if self.guard is None:
            logger.warning("Cannot lock wallet: guard contract not available", wallet=wallet)
            return False

        logger.warning("Locking wallet", wallet=wallet, reason=reason)
        try:
            tx_hash = await self.guard.lock_wallet(wallet, reason)
        except RpcError as e:
            logger.error("Failed to lock wallet", wallet=wallet, error=str(e))
            return False

        logger.info("Wallet locked", wallet=wallet, tx_hash=tx_hash)
        return True

    async def _update_on_chain_score(self, wallet: str, score: int):
        if self.guard is None:
            return
        try:
            await self.guard.update_risk_score(wallet, score)
        except RpcError as e:
            logger.debug("Could not update on-chain score", wallet=wallet, error=str(e))

    async def manual_lock(self, wallet: str, reason: str, locked_by: str) -> bool:
        """Officer-initiated lock; notifies only when the lock went through."""
        logger.warning("Manual lock requested", wallet=wallet, locked_by=locked_by)

        success = await self.lock_wallet(wallet, reason)
        if success:
            await self.alerts.send_manual_lock_notification(wallet, reason, locked_by)

        return success

    async def request_judicial_freeze(self, wallet: str, case_hash: str, requested_by: str) -> dict:
        """
        Record a freeze request for the judges.

        The freeze itself is executed by the multi-signature approval flow,
        not by this service, so the guard contract is not called here.
        """
        logger.info("Judicial freeze requested", wallet=wallet, requested_by=requested_by)
        await self.alerts.send_judicial_freeze_request(wallet, case_hash, requested_by)

        return {
            "status": "pending",
            "message": "Judicial freeze request submitted for multi-sig approval",
        }

    async def get_wallet_status(self, wallet: str) -> dict:
        profile = self.risk_scorer.get_profile(wallet)
        history = self.indexer.get_wallet_history(wallet)

        on_chain_status = None
        if self.guard is not None:
            try:
                status = await self.guard.get_lock_status(wallet)
                on_chain_status = status.to_dict()
            except RpcError as e:
                logger.debug("Lock status unavailable", wallet=wallet, error=str(e))

        return {
            "wallet": wallet,
            "risk_profile": profile.to_dict() if profile else None,
            "recent_transactions": len(history),
            "on_chain_status": on_chain_status,
            "is_blacklisted": self.risk_scorer.is_blacklisted(wallet),
            "is_whitelisted": self.risk_scorer.is_whitelisted(wallet),
        }

    def get_stats(self) -> dict:
        return {
            "indexer": self.indexer.get_stats(),
            "risk_scorer": self.risk_scorer.get_stats(),
            "guard_contract_available": self.guard is not None,
        }


def create_protection_system(settings: Optional[Settings] = None) -> WalletProtectionService:
    """Wire indexer, scorer, alerts and guard from configuration."""
    settings = settings or get_settings()

    source = None
    if settings.ledger_configured:
        source = LedgerEventSource(
            JsonRpcClient(settings.rpc_url, timeout=settings.rpc_timeout_seconds),
            settings.ledger_contract_address,
            poll_interval=settings.poll_interval_seconds,
            start_block=settings.start_block,
            max_blocks_per_poll=settings.max_blocks_per_poll
        )

    guard = None
    if settings.guard_configured:
        guard = JsonRpcGuardContract(
            JsonRpcClient(settings.rpc_url, timeout=settings.rpc_timeout_seconds),
            settings.guard_contract_address,
            settings.monitor_address,
            call_timeout=settings.rpc_timeout_seconds,
            receipt_timeout=settings.receipt_timeout_seconds,
            receipt_poll_interval=settings.receipt_poll_seconds
        )

    notifier = WebhookNotifier(settings.alert_webhook_url) if settings.alert_webhook_url else None

    return WalletProtectionService(
        indexer=EventIndexer(source),
        risk_scorer=RiskScorer(),
        alerts=AlertDispatcher(notifier),
        guard=guard
    )
