"""Weighted, time-decayed wallet risk scoring with blacklist / whitelist."""

import threading
from datetime import timedelta
from typing import Iterable, Optional

import structlog

from ..models import (
    ZERO_ADDRESS, Clock, LabelType, RiskProfile, SuspicionLabel,
    normalize_address, utcnow
)

logger = structlog.get_logger()


class RiskScorer:
    """
    Assigns risk scores (0-100) to wallets from suspicion labels.

    Scores accumulate on top of the wallet's current score and decay by
    one point per full hour since the previous scoring call. No network
    access; all state is in memory.
    """

    WEIGHTS = {
        LabelType.HIGH_FREQUENCY: 20,
        LabelType.LARGE_TRANSACTION: 15,
        LabelType.NEW_RECIPIENT: 5,
        LabelType.DRAIN_PATTERN: 30,
        LabelType.UNLIMITED_APPROVAL: 25,
        LabelType.BLACKLIST_INTERACTION: 40,
    }

    AUTO_LOCK_THRESHOLD = 80
    MAX_SCORE = 100
    DECAY_PERIOD = timedelta(hours=1)

    KNOWN_BAD = [
        ZERO_ADDRESS,
    ]

    def __init__(self, clock: Clock = utcnow):
        self.clock = clock
        self.wallet_scores: dict[str, RiskProfile] = {}
        self.blacklist: set[str] = {normalize_address(a) for a in self.KNOWN_BAD}
        self.whitelist: set[str] = set()
        self._lock = threading.Lock()

    def calculate_risk_score(self, wallet: str, labels: Iterable[SuspicionLabel]) -> int:
        """Score a wallet against a new set of labels and update its profile."""
        wallet = normalize_address(wallet)
        labels = list(labels)

        with self._lock:
            profile = self.wallet_scores.get(wallet)
            score = profile.current_score if profile else 0

            for label in labels:
                score += self.WEIGHTS[LabelType(label.type)]

            now = self.clock()
            score = self._apply_decay(score, profile, now)
            score = min(self.MAX_SCORE, max(0, score))

            self._update_profile(wallet, score, labels, profile, now)

        return score

    def _apply_decay(self, score: int, profile: Optional[RiskProfile], now) -> int:
        """Subtract one point per full hour since the previous scoring call."""
        if profile is None or profile.last_updated is None:
            return score

        hours = int((now - profile.last_updated) / self.DECAY_PERIOD)
        return max(0, score - max(0, hours))

    def _update_profile(
        self,
        wallet: str,
        score: int,
        labels: list[SuspicionLabel],
        profile: Optional[RiskProfile],
        now
    ):
        if profile is None:
            profile = RiskProfile(address=wallet)
            self.wallet_scores[wallet] = profile

        profile.current_score = score
        profile.highest_score = max(profile.highest_score, score)
        profile.last_updated = now
        if labels:
            profile.flag_count += 1
        profile.recent_labels = [LabelType(label.type).value for label in labels]

    def should_auto_lock(self, wallet: str) -> bool:
        profile = self.wallet_scores.get(normalize_address(wallet))
        if profile is None:
            return False
        return profile.current_score >= self.AUTO_LOCK_THRESHOLD

    def get_profile(self, wallet: str) -> Optional[RiskProfile]:
        return self.wallet_scores.get(normalize_address(wallet))

    def get_score(self, wallet: str) -> int:
        profile = self.get_profile(wallet)
        return profile.current_score if profile else 0

    def is_blacklisted(self, address: str) -> bool:
        return normalize_address(address) in self.blacklist

    def is_whitelisted(self, address: str) -> bool:
        return normalize_address(address) in self.whitelist

    def add_to_blacklist(self, address: str, reason: str = ""):
        with self._lock:
            self.blacklist.add(normalize_address(address))
        logger.warning("Added to blacklist", address=address, reason=reason)

    def add_to_whitelist(self, address: str):
        with self._lock:
            self.whitelist.add(normalize_address(address))
        logger.info("Added to whitelist", address=address)

    def reset_score(self, wallet: str):
        """Clear the current score after manual review. Watermark and counters stay."""
        with self._lock:
            profile = self.wallet_scores.get(normalize_address(wallet))
            if profile is None:
                return
            profile.current_score = 0
            profile.recent_labels = []
        logger.info("Reset risk score", wallet=wallet)

    def get_high_risk_wallets(self, threshold: float = 50) -> list[RiskProfile]:
        """Get wallets at or above threshold, highest score first."""
        with self._lock:
            profiles = [p for p in self.wallet_scores.values() if p.current_score >= threshold]
        return sorted(profiles, key=lambda p: p.current_score, reverse=True)

    def get_stats(self) -> dict:
        high = medium = low = 0
        with self._lock:
            for profile in self.wallet_scores.values():
                if profile.current_score >= 70:
                    high += 1
                elif profile.current_score >= 30:
                    medium += 1
                else:
                    low += 1

            return {
                "total_profiles": len(self.wallet_scores),
                "high_risk": high,
                "medium_risk": medium,
                "low_risk": low,
                "blacklist_size": len(self.blacklist),
                "whitelist_size": len(self.whitelist),
            }
